"""UDP interface: each packet is sent whole, as one datagram, to a fixed peer."""

from __future__ import annotations

import logging
import socket
import threading
import time
from dataclasses import dataclass
from typing import Optional

from .errors import CspError, ErrorCode
from .packet import DEFAULT_BUFFER_SIZE, NO_VIA_ADDRESS, HeaderCodecV2, Interface, Packet

log = logging.getLogger(__name__)

#: Name of the UDP interface.
UDP_NAME = "UDP"
#: Default local and remote port.
UDP_DEFAULT_PORT = 9600
#: Datagrams of this many bytes or fewer are rejected.
UDP_SHORT_FRAME = 4

_NOMEM_BACKOFF_S = 0.01
_BIND_RETRY_S = 1.0


@dataclass
class UdpConfig:
    """Peer host, local listening port and remote port."""

    host: str
    lport: int = UDP_DEFAULT_PORT
    rport: int = UDP_DEFAULT_PORT


class UdpInterface(Interface):
    """Sends packets to ``config.host:config.rport`` and receives on ``config.lport``."""

    def __init__(self, config: UdpConfig, deliver=None, codec=None):
        super().__init__(UDP_NAME, 0, 0, deliver)
        try:
            socket.inet_aton(config.host)
        except OSError as exc:
            raise CspError(ErrorCode.INVAL, f"unknown peer address {config.host}") from exc
        self.config = config
        self.codec = codec if codec is not None else HeaderCodecV2()
        self.poll_interval = 0.5
        self._sock: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    @property
    def local_port(self) -> Optional[int]:
        """Port the socket is bound to, or None when closed."""
        sock = self._sock
        return sock.getsockname()[1] if sock is not None else None

    def open(self) -> None:
        """Create the socket and bind it to all addresses on the local port."""
        if self._sock is not None:
            return
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind(("", self.config.lport))
        except OSError:
            sock.close()
            raise
        sock.settimeout(self.poll_interval)
        self._sock = sock

    def rx_work(self) -> Packet:
        """Receive one datagram, deliver its packet and return it.

        Raises ``TimeoutError`` when nothing arrives within the poll interval.
        """
        sock = self._sock
        if sock is None:
            raise CspError(ErrorCode.INVAL, "socket is not open")
        frame = sock.recv(DEFAULT_BUFFER_SIZE + self.codec.header_size)
        if len(frame) <= UDP_SHORT_FRAME:
            raise CspError(ErrorCode.NOMEM, f"received datagram of {len(frame)} bytes is too short")
        try:
            packet = self.codec.unpack(frame)
        except CspError as exc:
            raise CspError(ErrorCode.INVAL, f"error in packet header: {exc.message}") from exc
        self.deliver(packet)
        return packet

    def start(self) -> None:
        """Start the receiving thread, binding the socket if it is not yet open."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=f"{self.name}-rx", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.open()
                break
            except OSError as exc:
                log.warning("UDP server waiting for port %d: %s", self.config.lport, exc)
                if self._stop.wait(_BIND_RETRY_S):
                    return

        while not self._stop.is_set():
            try:
                self.rx_work()
            except TimeoutError:
                continue
            except CspError as exc:
                if exc.code == ErrorCode.INVAL:
                    self.stats.rx_error += 1
                elif exc.code == ErrorCode.NOMEM:
                    time.sleep(_NOMEM_BACKOFF_S)
                else:
                    log.warning("UDP receive failed: %s", exc)
            except OSError as exc:
                if self._stop.is_set():
                    break
                log.warning("UDP receive error: %s", exc)
                self._stop.wait(_NOMEM_BACKOFF_S)

    def close(self) -> None:
        """Stop the receiving thread and close the socket."""
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None:
            thread.join(self.poll_interval * 4 + _BIND_RETRY_S)
        sock, self._sock = self._sock, None
        if sock is not None:
            sock.close()

    def transmit(self, packet: Packet, via=NO_VIA_ADDRESS, from_me=True) -> None:
        """Pack ``packet`` and send it to the peer; without a socket it is dropped."""
        sock = self._sock
        if sock is None:
            log.warning("UDP socket is not open, dropping packet")
            self.stats.drop += 1
            return
        frame = self.codec.pack(packet.id) + bytes(packet.data)
        try:
            sock.sendto(frame, (self.config.host, self.config.rport))
        except OSError as exc:
            log.warning("UDP send failed: %s", exc)
            self.stats.tx_error += 1

    def __enter__(self) -> "UdpInterface":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()