"""I2C interface: packets carried whole in I2C frames."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from .errors import CspError, ErrorCode
from .packet import NO_VIA_ADDRESS, HeaderCodecV2, Interface, Packet

#: Default interface name.
I2C_DEFAULT_NAME = "I2C"
#: Only 7 address bits exist on the bus.
I2C_ADDR_MASK = 0x7F
#: Shortest frame that is accepted.
I2C_MIN_FRAME = 4


@dataclass(frozen=True)
class I2cFrame:
    """One outgoing frame: physical destination and packed packet bytes."""

    dest: int
    data: bytes


I2cTx = Callable[[I2cFrame], Optional[int]]


class I2cInterface(Interface):
    """An I2C interface.

    ``tx_func(frame)`` sends one ``I2cFrame``; it signals failure by raising
    or by returning a non-zero error code.
    """

    def __init__(
        self,
        name=I2C_DEFAULT_NAME,
        addr=0,
        tx_func: Optional[I2cTx] = None,
        deliver=None,
        codec=None,
    ):
        super().__init__(name, addr, 0, deliver)
        if tx_func is None:
            raise CspError(ErrorCode.INVAL, "an I2C interface needs a transmit function")
        self.codec = codec if codec is not None else HeaderCodecV2()
        self._tx_func = tx_func

    def transmit(self, packet: Packet, via=NO_VIA_ADDRESS, from_me=True) -> None:
        """Pack ``packet`` and hand it to the driver, addressed to ``via`` or its destination."""
        if packet.id.dst == self.addr:
            self.deliver(packet)
            return
        frame = self.codec.pack(packet.id) + bytes(packet.data)
        dest = (via if via != NO_VIA_ADDRESS else packet.id.dst) & I2C_ADDR_MASK
        result = self._tx_func(I2cFrame(dest, frame))
        if result is not None and result != ErrorCode.NONE:
            try:
                code = ErrorCode(result)
            except ValueError:
                code = ErrorCode.DRIVER
            raise CspError(code, f"I2C driver returned {result}")

    def rx(self, frame) -> None:
        """Parse one received frame and deliver its packet; bad frames are counted and dropped."""
        frame = bytes(frame)
        if len(frame) < I2C_MIN_FRAME:
            self.stats.frame += 1
            return
        try:
            packet = self.codec.unpack(frame)
        except CspError:
            self.stats.frame += 1
            return
        self.deliver(packet)