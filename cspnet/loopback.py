"""Loopback interface: every transmitted packet is received again."""

from __future__ import annotations

from .packet import NO_VIA_ADDRESS, Interface, Packet

#: Name of the loopback interface.
LOOPBACK_NAME = "LOOP"


class LoopbackInterface(Interface):
    """Delivers everything it transmits back into the router."""

    def __init__(self, deliver=None):
        super().__init__(LOOPBACK_NAME, 0, 0, deliver)

    def transmit(self, packet: Packet, via=NO_VIA_ADDRESS, from_me=True) -> None:
        self.deliver(packet)