import pytest

from cspnet.errors import CspError, ErrorCode
from cspnet.i2c import I2cFrame, I2cInterface
from cspnet.packet import CspId, HeaderCodecV2, Packet


def make_iface(result=None):
    sent = []
    received = []

    def tx(frame):
        sent.append(frame)
        return result

    iface = I2cInterface("I2C", addr=5, tx_func=tx, deliver=lambda p, i: received.append((p, i)))
    return iface, sent, received


def test_transmit_to_destination():
    iface, sent, _ = make_iface()
    packet = Packet(CspId(pri=2, src=5, dst=9, dport=1, sport=2), b"abc")
    iface.transmit(packet)
    assert sent == [I2cFrame(9, HeaderCodecV2().pack(packet.id) + b"abc")]


def test_transmit_uses_via_masked_to_seven_bits():
    iface, sent, _ = make_iface()
    iface.transmit(Packet(CspId(src=5, dst=9), b"x"), via=0x1FF)
    assert sent[0].dest == 0x7F


def test_destination_masked_to_seven_bits():
    iface, sent, _ = make_iface()
    iface.transmit(Packet(CspId(src=5, dst=0x85), b"x"))
    assert sent[0].dest == 0x05


def test_loopback_to_own_address():
    iface, sent, received = make_iface()
    packet = Packet(CspId(dst=5), b"me")
    iface.transmit(packet)
    assert sent == []
    assert received == [(packet, iface)]


def test_driver_error_code_raised():
    iface, _, _ = make_iface(result=ErrorCode.BUSY)
    with pytest.raises(CspError) as info:
        iface.transmit(Packet(CspId(dst=9), b"x"))
    assert info.value.code == ErrorCode.BUSY


def test_rx_round_trip():
    iface, sent, received = make_iface()
    packet = Packet(CspId(pri=1, src=5, dst=9, dport=3, sport=4), b"payload")
    iface.transmit(packet)
    iface.rx(sent[0].data)
    assert received[0][0].id == packet.id
    assert received[0][0].data == b"payload"


def test_rx_short_frame_is_dropped():
    iface, _, received = make_iface()
    iface.rx(b"\x01\x02\x03")
    assert received == []
    assert iface.stats.frame == 1


def test_missing_tx_func_is_invalid():
    with pytest.raises(CspError) as info:
        I2cInterface("I2C", tx_func=None)
    assert info.value.code == ErrorCode.INVAL