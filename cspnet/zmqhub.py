"""ZeroMQ hub interface: packets published to and subscribed from a hub proxy.

The hub forwards everything it receives on its subscribe port to every client
connected to its publish port. A client may subscribe to all traffic or only
to frames whose first two bytes (priority and destination) match its address,
its subnet broadcast or the global broadcast.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Optional

import zmq

from .errors import CspError, ErrorCode
from .packet import (
    DEFAULT_BUFFER_SIZE,
    IFLIST_NAME_MAX,
    NO_VIA_ADDRESS,
    HeaderCodecV2,
    Interface,
    Packet,
)

log = logging.getLogger(__name__)

#: Max payload data.
ZMQ_MTU = 2048
#: Hub port that clients publish (transmit) to.
ZMQPROXY_SUBSCRIBE_PORT = 6000
#: Hub port that clients subscribe (receive) from.
ZMQPROXY_PUBLISH_PORT = 7000
#: Default interface name.
ZMQHUB_IF_NAME = "ZMQHUB"

_GLOBAL_BROADCAST = 16383
_POLL_MS = 100


def make_endpoint(host: str, port: int) -> str:
    """Connection string for ``host`` and ``port``."""
    if not 0 <= port <= 0xFFFF:
        raise CspError(ErrorCode.INVAL, f"port {port} is out of range")
    return f"tcp://{host}:{port}"


def subscription_filters(addr: int, netmask: int, host_bits: int = HeaderCodecV2.host_bits) -> list:
    """Two byte prefixes matching ``addr``, its subnet broadcast and the global broadcast.

    One set of three is made for each of the four priorities.
    """
    if not 0 <= netmask <= host_bits:
        raise CspError(ErrorCode.INVAL, f"netmask {netmask} is outside 0..{host_bits}")
    hostmask = (1 << (host_bits - netmask)) - 1
    filters = []
    for prio in range(4):
        base = prio << 14
        for value in (base | addr, base | addr | hostmask, base | _GLOBAL_BROADCAST):
            filters.append((value & 0xFFFF).to_bytes(2, "big"))
    return filters


class ZmqHubInterface(Interface):
    """Interface publishing to one endpoint and subscribing to another.

    ``filters`` is a list of byte prefixes to subscribe to; None subscribes
    to everything. ``secret_key`` enables CURVE security with a shared key.
    """

    def __init__(
        self,
        addr,
        publish_endpoint: str,
        subscribe_endpoint: str,
        deliver=None,
        name: Optional[str] = None,
        codec=None,
        filters: Optional[Iterable[bytes]] = None,
        secret_key=None,
    ):
        super().__init__((name or ZMQHUB_IF_NAME)[:IFLIST_NAME_MAX], addr, 0, deliver)
        self.codec = codec if codec is not None else HeaderCodecV2()
        self.publish_endpoint = publish_endpoint
        self.subscribe_endpoint = subscribe_endpoint
        self.filters = None if filters is None else [bytes(f) for f in filters]
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._publisher = None
        self._subscriber = None
        self._context = zmq.Context()
        try:
            self._publisher = self._context.socket(zmq.PUB)
            self._subscriber = self._context.socket(zmq.SUB)
            if secret_key is not None:
                self._apply_curve(secret_key)
            self._publisher.connect(publish_endpoint)
            self._subscriber.connect(subscribe_endpoint)
            for prefix in self.filters if self.filters is not None else [b""]:
                self._subscriber.setsockopt(zmq.SUBSCRIBE, prefix)
        except zmq.ZMQError as exc:
            self._close_sockets()
            raise CspError(ErrorCode.DRIVER, f"ZMQ setup of {self.name} failed: {exc}") from exc

    @classmethod
    def from_host(
        cls,
        host: str,
        addr,
        deliver=None,
        name: Optional[str] = None,
        netmask: int = 0,
        promisc: bool = False,
        subport: int = ZMQPROXY_SUBSCRIBE_PORT,
        pubport: int = ZMQPROXY_PUBLISH_PORT,
    ) -> "ZmqHubInterface":
        """Connect to a hub on ``host``, filtering on ``addr`` unless ``promisc``."""
        publish = make_endpoint(host, subport)
        subscribe = make_endpoint(host, pubport)
        filters = None if promisc else subscription_filters(addr, netmask, HeaderCodecV2.host_bits)
        log.info("ZMQ init %s: addr: %s, pub(tx): [%s], sub(rx): [%s]", name, addr, publish, subscribe)
        return cls(addr, publish, subscribe, deliver, name, None, filters)

    def _apply_curve(self, secret_key) -> None:
        key = secret_key.encode() if isinstance(secret_key, str) else bytes(secret_key)
        public = zmq.curve_public(key)
        for sock in (self._publisher, self._subscriber):
            sock.setsockopt(zmq.CURVE_SERVERKEY, public)
            sock.setsockopt(zmq.CURVE_PUBLICKEY, public)
            sock.setsockopt(zmq.CURVE_SECRETKEY, key)

    def handle_message(self, message) -> Packet:
        """Parse one received message, deliver its packet and return it."""
        frame = bytes(message)
        header_size = self.codec.header_size
        if len(frame) < header_size:
            raise CspError(
                ErrorCode.INVAL,
                f"message of {len(frame)} bytes, expected at least {header_size}",
            )
        if len(frame) > DEFAULT_BUFFER_SIZE + header_size:
            self.stats.rx_error += 1
            raise CspError(ErrorCode.INVAL, f"message of {len(frame)} bytes exceeds the buffer size")
        try:
            packet = self.codec.unpack(frame)
        except CspError:
            self.stats.rx_error += 1
            raise
        self.deliver(packet)
        return packet

    def start(self) -> None:
        """Start the receiving thread."""
        if self._subscriber is None:
            raise CspError(ErrorCode.INVAL, f"interface {self.name} is closed")
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=f"{self.name}-rx", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        poller = zmq.Poller()
        poller.register(self._subscriber, zmq.POLLIN)
        while not self._stop.is_set():
            try:
                events = dict(poller.poll(_POLL_MS))
                if self._subscriber not in events:
                    continue
                message = self._subscriber.recv(zmq.NOBLOCK)
            except zmq.ZMQError as exc:
                if self._stop.is_set():
                    break
                log.warning("ZMQ RX error %s: %s", self.name, exc)
                continue
            try:
                self.handle_message(message)
            except CspError as exc:
                log.warning("ZMQ RX %s: %s", self.name, exc)

    def _close_sockets(self) -> None:
        for sock in (self._publisher, self._subscriber):
            if sock is not None:
                sock.close(linger=0)
        self._publisher = None
        self._subscriber = None
        if self._context is not None:
            self._context.term()
            self._context = None

    def close(self) -> None:
        """Stop the receiving thread and release the sockets."""
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None:
            thread.join()
        with self._lock:
            self._close_sockets()

    def transmit(self, packet: Packet, via=NO_VIA_ADDRESS, from_me=True) -> None:
        """Pack ``packet`` and publish it to the hub."""
        frame = self.codec.pack(packet.id) + bytes(packet.data)
        with self._lock:
            if self._publisher is None:
                raise CspError(ErrorCode.INVAL, f"interface {self.name} is closed")
            try:
                self._publisher.send(frame)
            except zmq.ZMQError as exc:
                log.warning("ZMQ send error: %s", exc)
                self.stats.tx_error += 1

    def __enter__(self) -> "ZmqHubInterface":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()