"""KISS interface: byte-stuffed framing of packets over a serial line."""

from __future__ import annotations

import threading
from contextlib import AbstractContextManager
from enum import Enum
from typing import Callable, Optional

from .errors import CspError, ErrorCode
from .packet import DEFAULT_BUFFER_SIZE, NO_VIA_ADDRESS, HeaderCodecV2, Interface, Packet

#: Default interface name.
KISS_DEFAULT_NAME = "KISS"

FEND = 0xC0
FESC = 0xDB
TFEND = 0xDC
TFESC = 0xDD
TNC_DATA = 0x00


class KissMode(Enum):
    """Receiver state."""

    NOT_STARTED = 0
    STARTED = 1
    ESCAPED = 2
    SKIP_FRAME = 3


def kiss_encode(frame) -> bytes:
    """Wrap ``frame`` in start and end markers, escaping special bytes."""
    out = bytearray((FEND, TNC_DATA))
    for byte in bytes(frame):
        if byte == FEND:
            out += bytes((FESC, TFEND))
        elif byte == FESC:
            out += bytes((FESC, TFESC))
        else:
            out.append(byte)
    out.append(FEND)
    return bytes(out)


KissTx = Callable[[bytes], object]
ChecksumAppend = Callable[[Packet], None]
ChecksumVerify = Callable[[Packet], bool]


class KissInterface(Interface):
    """A serial interface framing packets with KISS.

    ``tx_func(data)`` writes bytes to the line. ``append_checksum(packet)``
    adds a checksum to an outgoing packet; ``verify_checksum(packet)`` checks
    and strips it on a received packet, returning False (or raising
    ``CspError``) when it does not match. Without them no checksum is used.
    """

    def __init__(
        self,
        name=KISS_DEFAULT_NAME,
        addr=0,
        tx_func: Optional[KissTx] = None,
        deliver=None,
        codec=None,
        append_checksum: Optional[ChecksumAppend] = None,
        verify_checksum: Optional[ChecksumVerify] = None,
        lock: Optional[AbstractContextManager] = None,
    ):
        super().__init__(name, addr, 0, deliver)
        if tx_func is None:
            raise CspError(ErrorCode.INVAL, "a KISS interface needs a transmit function")
        self.codec = codec if codec is not None else HeaderCodecV2()
        self.mode = KissMode.NOT_STARTED
        self._tx_func = tx_func
        self._append_checksum = append_checksum
        self._verify_checksum = verify_checksum
        self._lock = lock if lock is not None else threading.Lock()
        self._rx_buffer = bytearray()
        self._rx_first = False

    @property
    def max_frame_length(self) -> int:
        """Longest frame (header and data) that fits a packet buffer."""
        return DEFAULT_BUFFER_SIZE + self.codec.header_size

    def transmit(self, packet: Packet, via=NO_VIA_ADDRESS, from_me=True) -> None:
        """Frame ``packet`` and write it to the line."""
        with self._lock:
            if self._append_checksum is not None:
                self._append_checksum(packet)
            frame = self.codec.pack(packet.id) + bytes(packet.data)
            self._tx_func(kiss_encode(frame))

    def rx(self, data) -> None:
        """Decode received bytes, delivering every complete packet."""
        for byte in bytes(data):
            if len(self._rx_buffer) >= self.max_frame_length:
                self.stats.rx_error += 1
                self.mode = KissMode.NOT_STARTED
                self._rx_buffer = bytearray()

            if self.mode is KissMode.NOT_STARTED:
                if byte != FEND:
                    continue
                self._rx_buffer = bytearray()
                self.mode = KissMode.STARTED
                self._rx_first = True

            elif self.mode is KissMode.STARTED:
                if byte == FESC:
                    self.mode = KissMode.ESCAPED
                elif byte == FEND:
                    if self._rx_buffer:
                        self._accept()
                elif self._rx_first:
                    self._rx_first = False
                else:
                    self._rx_buffer.append(byte)

            elif self.mode is KissMode.ESCAPED:
                if byte == TFESC:
                    self._rx_buffer.append(FESC)
                elif byte == TFEND:
                    self._rx_buffer.append(FEND)
                self.mode = KissMode.STARTED

            elif self.mode is KissMode.SKIP_FRAME:
                if byte == FEND:
                    self.mode = KissMode.NOT_STARTED

    def _accept(self) -> None:
        frame = bytes(self._rx_buffer)
        self._rx_buffer = bytearray()
        self.mode = KissMode.NOT_STARTED
        try:
            packet = self.codec.unpack(frame)
        except CspError:
            self.stats.rx_error += 1
            return
        self.stats.frame += 1
        if self._verify_checksum is not None:
            try:
                valid = self._verify_checksum(packet)
            except CspError:
                valid = False
            if not valid:
                self.stats.rx_error += 1
                return
        self.deliver(packet)