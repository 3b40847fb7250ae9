"""Tunnel interface: packets wrapped, encrypted, inside other packets."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from .errors import CspError
from .packet import NO_VIA_ADDRESS, CspId, HeaderCodecV2, Interface, Packet

#: Name of the tunnel interface.
TUN_NAME = "TUN"

Encrypt = Callable[[bytes], Optional[bytes]]
Decrypt = Callable[[bytes], Optional[bytes]]


@dataclass
class TunConfig:
    """Tunnel end points: the local source and the remote destination."""

    tun_src: int
    tun_dst: int


def _no_crypto(data: bytes) -> Optional[bytes]:
    return None


class TunInterface(Interface):
    """Wraps outgoing packets and unwraps packets addressed to the tunnel.

    ``encrypt(frame)`` and ``decrypt(ciphertext)`` return the transformed
    bytes, or None on failure. Without them every packet fails.
    """

    def __init__(
        self,
        config: TunConfig,
        deliver=None,
        codec=None,
        encrypt: Optional[Encrypt] = None,
        decrypt: Optional[Decrypt] = None,
    ):
        super().__init__(TUN_NAME, 0, 0, deliver)
        self.config = config
        self.codec = codec if codec is not None else HeaderCodecV2()
        self._encrypt = encrypt if encrypt is not None else _no_crypto
        self._decrypt = decrypt if decrypt is not None else _no_crypto

    def transmit(self, packet: Packet, via=NO_VIA_ADDRESS, from_me=True) -> None:
        """Unwrap a tunnel packet or wrap an outgoing one, then deliver the result."""
        if packet.id.dst == self.config.tun_src:
            self._unwrap(packet)
        else:
            self._wrap(packet)

    def _unwrap(self, packet: Packet) -> None:
        frame = self._decrypt(bytes(packet.data))
        if frame is None:
            self.stats.rx_error += 1
            return
        try:
            inner = self.codec.unpack(frame)
        except CspError:
            self.stats.rx_error += 1
            return
        self.deliver(inner)

    def _wrap(self, packet: Packet) -> None:
        frame = self.codec.pack(packet.id) + bytes(packet.data)
        ciphertext = self._encrypt(frame)
        if ciphertext is None:
            self.stats.tx_error += 1
            return
        outer_id = CspId(
            pri=packet.id.pri,
            flags=0,
            src=self.config.tun_src,
            dst=self.config.tun_dst,
            dport=0,
            sport=0,
        )
        self.deliver(Packet(outer_id, ciphertext))