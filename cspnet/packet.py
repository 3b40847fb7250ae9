"""Packets, header identifiers, the version 2 header codec and the interface base."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import IntEnum, IntFlag
from typing import Callable, Optional

from .errors import CspError, ErrorCode

#: Data capacity of a packet buffer in bytes.
DEFAULT_BUFFER_SIZE = 256
#: Listen on all ports.
ANY_PORT = 255
#: Route entry without a via address.
NO_VIA_ADDRESS = 0xFFFF
#: Longest interface name that is compared.
IFLIST_NAME_MAX = 10


class Priority(IntEnum):
    """Message priority."""

    CRITICAL = 0
    HIGH = 1
    NORM = 2
    LOW = 3


class HeaderFlag(IntFlag):
    """Flags carried in the packet header."""

    NONE = 0x00
    CRC32 = 0x01
    RDP = 0x02
    HMAC = 0x08
    FRAG = 0x10
    RES3 = 0x20
    RES2 = 0x40
    RES1 = 0x80


@dataclass
class CspId:
    """Unpacked packet header."""

    pri: int = Priority.NORM
    flags: int = 0
    src: int = 0
    dst: int = 0
    dport: int = 0
    sport: int = 0

    def copy(self) -> "CspId":
        return replace(self)


@dataclass
class Packet:
    """A packet: header identifier plus payload."""

    id: CspId = field(default_factory=CspId)
    data: bytearray = field(default_factory=bytearray)

    def __post_init__(self) -> None:
        self.data = bytearray(self.data)

    @property
    def length(self) -> int:
        return len(self.data)

    def copy(self) -> "Packet":
        return Packet(self.id.copy(), bytearray(self.data))


class HeaderCodecV2:
    """Packs and unpacks the 6 byte big-endian version 2 header.

    Layout from the most significant bit: priority (2), destination (14),
    source (14), destination port (6), source port (6), flags (6).
    """

    header_size = 6
    host_bits = 14
    port_bits = 6
    max_nodeid = (1 << 14) - 1
    max_port = (1 << 6) - 1

    def pack(self, csp_id: CspId) -> bytes:
        value = (
            (int(csp_id.pri) & 0x3) << 46
            | (csp_id.dst & 0x3FFF) << 32
            | (csp_id.src & 0x3FFF) << 18
            | (csp_id.dport & 0x3F) << 12
            | (csp_id.sport & 0x3F) << 6
            | (int(csp_id.flags) & 0x3F)
        )
        return value.to_bytes(self.header_size, "big")

    def unpack(self, frame) -> Packet:
        """Parse a frame into a packet, stripping the header."""
        frame = bytes(frame)
        if len(frame) < self.header_size:
            raise CspError(
                ErrorCode.INVAL,
                f"frame of {len(frame)} bytes is shorter than the {self.header_size} byte header",
            )
        value = int.from_bytes(frame[: self.header_size], "big")
        csp_id = CspId(
            pri=(value >> 46) & 0x3,
            dst=(value >> 32) & 0x3FFF,
            src=(value >> 18) & 0x3FFF,
            dport=(value >> 12) & 0x3F,
            sport=(value >> 6) & 0x3F,
            flags=value & 0x3F,
        )
        return Packet(csp_id, bytearray(frame[self.header_size :]))


@dataclass
class InterfaceStats:
    """Traffic counters of an interface."""

    tx: int = 0
    rx: int = 0
    tx_error: int = 0
    rx_error: int = 0
    drop: int = 0
    autherr: int = 0
    frame: int = 0
    txbytes: int = 0
    rxbytes: int = 0
    irq: int = 0


Deliver = Callable[[Packet, "Interface"], None]


class Interface:
    """Base of all interfaces: settings, counters and the path into the router."""

    def __init__(self, name, addr=0, netmask=0, deliver: Optional[Deliver] = None):
        if not name:
            raise CspError(ErrorCode.INVAL, "interface name is required")
        self.name = name
        self.addr = addr
        self.netmask = netmask
        self.is_default = False
        self.stats = InterfaceStats()
        self._deliver = deliver

    def deliver(self, packet: Packet) -> None:
        """Hand a received packet to the router."""
        if self._deliver is None:
            raise CspError(ErrorCode.NOSYS, f"interface {self.name} has no receiver")
        self._deliver(packet, self)

    def transmit(self, packet: Packet, via=NO_VIA_ADDRESS, from_me=True) -> None:
        """Send a packet towards ``via``; interfaces without a medium refuse."""
        raise CspError(ErrorCode.NOTSUP, f"interface {self.name} cannot transmit")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, addr={self.addr}, netmask={self.netmask})"