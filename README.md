# cspnet

Link-layer interfaces for the CubeSat Space Protocol. Each interface turns
outgoing packets into the bytes its link carries, and turns incoming bytes
back into complete packets that are handed to a `deliver` callback of your
choice (typically the input queue of your router).

## Modules

| Module            | Contents                                                                 |
|-------------------|--------------------------------------------------------------------------|
| `cspnet.errors`   | `ErrorCode` and the `CspError` exception                                 |
| `cspnet.packet`   | `CspId`, `Packet`, `Interface`, `InterfaceStats`, `HeaderCodecV2`, `Priority`, `HeaderFlag` |
| `cspnet.kiss`     | `KissInterface`, `KissMode` and `kiss_encode`: KISS framing for serial lines |
| `cspnet.i2c`      | `I2cInterface` and `I2cFrame`: whole packets in I2C frames               |
| `cspnet.loopback` | `LoopbackInterface`: every transmitted packet is delivered back          |
| `cspnet.tun`      | `TunInterface` and `TunConfig`: packets wrapped inside packets, with pluggable encryption |
| `cspnet.udp`      | `UdpInterface` and `UdpConfig`: one packet per UDP datagram              |
| `cspnet.zmqhub`   | `ZmqHubInterface`, `make_endpoint`, `subscription_filters`: publish/subscribe through a ZeroMQ hub |
| `cspnet.usart`    | `Usart`, `UsartConfig`, `validate_baudrate` and `open_kiss_interface`    |

## The common shape

Every interface derives from `cspnet.packet.Interface`. It has a `name`,
an `addr`, a `netmask` and traffic counters in `stats`. It is built with a
`deliver` callable, which is called as `deliver(packet, interface)` for each
received packet. Outgoing traffic goes through
`transmit(packet, via, from_me)`; links that receive raw bytes also have an
`rx(...)` method.

Packets are `Packet(id, data)`, where `id` is a `CspId` (priority, flags,
source, destination, ports) and `data` a `bytearray`. Headers are packed
with `HeaderCodecV2`, the 6-byte big-endian version 2 header; any object
with `header_size`, `pack(csp_id)` and `unpack(frame)` can be passed as
`codec` instead.

Errors are raised as `CspError`; its `code` is an `ErrorCode`.

## Examples

Loop a packet back to the local node:

```python
from cspnet.loopback import LoopbackInterface
from cspnet.packet import CspId, Packet

received = []
lo = LoopbackInterface(lambda packet, iface: received.append(packet))
lo.transmit(Packet(CspId(dst=5, dport=10), b"hello"))
assert received[0].data == b"hello"
```

KISS framing, and a round trip through a `KissInterface`:

```python
from cspnet.kiss import KissInterface, kiss_encode
from cspnet.packet import CspId, Packet

assert kiss_encode(b"\x01\xc0\x02") == b"\xc0\x00\x01\xdb\xdc\x02\xc0"

wire, received = [], []
kiss = KissInterface(tx_func=wire.append,
                     deliver=lambda packet, iface: received.append(packet))
kiss.transmit(Packet(CspId(src=1, dst=2), b"\xc0\xdb"))
kiss.rx(wire[0])
assert received[0].data == b"\xc0\xdb"
```

`KissInterface` takes optional `append_checksum(packet)` and
`verify_checksum(packet)` callables; without them no checksum is used.

ZeroMQ hub endpoints and subscription filters:

```python
from cspnet.zmqhub import make_endpoint, subscription_filters

make_endpoint("localhost", 6000)        # "tcp://localhost:6000"
filters = subscription_filters(10, 8)   # 12 two-byte prefixes
```

`ZmqHubInterface.from_host(host, addr, deliver, ...)` connects to a hub,
subscribing to everything when `promisc` is true and to those filters
otherwise. Call `start()` to receive in a background thread and `close()`
(or use it as a context manager) to stop.

A serial line with KISS on it:

```python
from cspnet.usart import UsartConfig, open_kiss_interface

interface, usart = open_kiss_interface(UsartConfig("/dev/ttyUSB0", 115200),
                                       addr=1, deliver=my_router_input)
...
usart.close()
```

Only the baud rates in `cspnet.usart.SUPPORTED_BAUDRATES` are accepted; the
line is always run as 8N1.

## What is not included

The package has no router, routing table or connection handling: received
packets are only handed to your `deliver` callable. There are no CAN or
Ethernet links and no fragment reassembly for them; the links offered are
the ones listed above. The tunnel interface does no encryption of its own:
without `encrypt` and `decrypt` callables every packet through it fails.

## Requirements

Python 3.10 or later. `pyzmq` is used by `cspnet.zmqhub` and `pyserial` by
`cspnet.usart`. Tests run with `pytest`.