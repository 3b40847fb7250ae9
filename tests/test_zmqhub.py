import threading
import time

import pytest
import zmq

from cspnet.errors import CspError, ErrorCode
from cspnet.packet import CspId, HeaderCodecV2, Packet
from cspnet.zmqhub import (
    ZMQHUB_IF_NAME,
    ZMQPROXY_PUBLISH_PORT,
    ZMQPROXY_SUBSCRIBE_PORT,
    ZmqHubInterface,
    make_endpoint,
    subscription_filters,
)

CODEC = HeaderCodecV2()
NOWHERE = "tcp://127.0.0.1:1"


@pytest.fixture
def hub():
    received = []
    iface = ZmqHubInterface(
        3, NOWHERE, NOWHERE, deliver=lambda packet, ifc: received.append(packet)
    )
    yield iface, received
    iface.close()


def test_make_endpoint_format():
    assert make_endpoint("localhost", 6000) == "tcp://localhost:6000"


def test_make_endpoint_rejects_bad_port():
    with pytest.raises(CspError) as info:
        make_endpoint("localhost", 70000)
    assert info.value.code == ErrorCode.INVAL


def test_subscription_filters_cover_every_priority():
    filters = subscription_filters(10, 8, 14)
    assert len(filters) == 12
    values = [int.from_bytes(f, "big") for f in filters]
    for prio in range(4):
        own, subnet, broadcast = values[prio * 3 : prio * 3 + 3]
        assert own >> 14 == prio and own & 0x3FFF == 10
        assert subnet >> 14 == prio and subnet & 10 == 10
        assert broadcast & 0x3FFF == 16383


def test_subscription_filters_pin_first_prefix():
    assert subscription_filters(10, 8, 14)[0] == b"\x00\x0a"


def test_subscription_filters_reject_large_netmask():
    with pytest.raises(CspError) as info:
        subscription_filters(1, 15, 14)
    assert info.value.code == ErrorCode.INVAL


def test_default_name_and_truncation():
    with ZmqHubInterface(1, NOWHERE, NOWHERE) as iface:
        assert iface.name == ZMQHUB_IF_NAME
    with ZmqHubInterface(1, NOWHERE, NOWHERE, name="VERYLONGINTERFACENAME") as iface:
        assert len(iface.name) == 10
        assert "VERYLONGINTERFACENAME".startswith(iface.name)


def test_from_host_uses_hub_ports_and_filters():
    with ZmqHubInterface.from_host("127.0.0.1", 5, netmask=4) as iface:
        assert iface.publish_endpoint == make_endpoint("127.0.0.1", ZMQPROXY_SUBSCRIBE_PORT)
        assert iface.subscribe_endpoint == make_endpoint("127.0.0.1", ZMQPROXY_PUBLISH_PORT)
        assert iface.filters == subscription_filters(5, 4, 14)
        assert iface.addr == 5
    with ZmqHubInterface.from_host("127.0.0.1", 5, promisc=True) as iface:
        assert iface.filters is None


def test_handle_message_delivers_packet(hub):
    iface, received = hub
    csp_id = CspId(pri=1, src=2, dst=3, dport=4, sport=5)
    packet = iface.handle_message(CODEC.pack(csp_id) + b"abc")
    assert packet.id == csp_id
    assert bytes(packet.data) == b"abc"
    assert received == [packet]


def test_handle_message_rejects_short(hub):
    iface, received = hub
    with pytest.raises(CspError) as info:
        iface.handle_message(b"\x00\x01")
    assert info.value.code == ErrorCode.INVAL
    assert received == []


def test_handle_message_rejects_oversize(hub):
    iface, received = hub
    with pytest.raises(CspError):
        iface.handle_message(CODEC.pack(CspId()) + bytes(1000))
    assert iface.stats.rx_error == 1
    assert received == []


def test_transmit_after_close_raises():
    iface = ZmqHubInterface(1, NOWHERE, NOWHERE)
    iface.close()
    with pytest.raises(CspError) as info:
        iface.transmit(Packet(CspId(dst=2), b"x"))
    assert info.value.code == ErrorCode.INVAL


def test_transmit_publishes_packed_frame():
    ctx = zmq.Context()
    sub = ctx.socket(zmq.SUB)
    sub.setsockopt(zmq.SUBSCRIBE, b"")
    port = sub.bind_to_random_port("tcp://127.0.0.1")
    iface = ZmqHubInterface(3, f"tcp://127.0.0.1:{port}", NOWHERE)
    packet = Packet(CspId(pri=2, src=3, dst=9, dport=10, sport=20), b"hello")
    try:
        got = None
        deadline = time.monotonic() + 5
        while got is None and time.monotonic() < deadline:
            iface.transmit(packet.copy())
            if sub.poll(100):
                got = sub.recv()
        assert got == CODEC.pack(packet.id) + b"hello"
    finally:
        iface.close()
        sub.close(linger=0)
        ctx.term()


def _run_receiver(filters, frames, wanted_dst):
    ctx = zmq.Context()
    pub = ctx.socket(zmq.PUB)
    port = pub.bind_to_random_port("tcp://127.0.0.1")
    received = []
    arrived = threading.Event()

    def deliver(packet, ifc):
        received.append(packet)
        if packet.id.dst == wanted_dst:
            arrived.set()

    iface = ZmqHubInterface(wanted_dst, NOWHERE, f"tcp://127.0.0.1:{port}", deliver=deliver, filters=filters)
    try:
        iface.start()
        deadline = time.monotonic() + 5
        while not arrived.is_set() and time.monotonic() < deadline:
            for frame in frames:
                pub.send(frame)
            arrived.wait(0.1)
    finally:
        iface.close()
        pub.close(linger=0)
        ctx.term()
    return arrived.is_set(), received


def test_receiver_thread_delivers():
    csp_id = CspId(pri=2, src=1, dst=7, dport=3, sport=4)
    ok, received = _run_receiver(None, [CODEC.pack(csp_id) + b"data"], 7)
    assert ok
    assert received[0].id == csp_id
    assert bytes(received[0].data) == b"data"


def test_filters_only_pass_own_address():
    own = CODEC.pack(CspId(pri=2, src=1, dst=7)) + b"mine"
    other = CODEC.pack(CspId(pri=2, src=1, dst=9)) + b"theirs"
    ok, received = _run_receiver(subscription_filters(7, 8), [other, own], 7)
    assert ok
    assert all(packet.id.dst == 7 for packet in received)