"""Tests for HID packet wrapping and response reassembly."""

import struct

import pytest

from ledger_thorchain.errors import TransportError, ValidationError
from ledger_thorchain.protocol.framing import (
    FIRST_HEADER_SIZE,
    NEXT_HEADER_SIZE,
    TAG_APDU,
    unwrap_packets,
    unwrap_response_apdu,
    wrap_command_apdu,
)
from ledger_thorchain.config import DEFAULT_CHANNEL, PACKET_SIZE


def test_wrap_packets_are_64_bytes():
    """Every wrapped packet must be exactly the packet size."""
    for length in (0, 1, 57, 58, 59, 200, 300):
        packets = wrap_command_apdu(bytes(length))
        assert all(len(p) == PACKET_SIZE for p in packets)


def test_wrap_first_packet_header():
    """First packet: channel, tag, sequence 0, then the APDU length."""
    apdu = bytes([0x55, 0x00, 0x00, 0x00, 0x00])
    packets = wrap_command_apdu(apdu)
    assert len(packets) == 1
    channel, tag, seq, length = struct.unpack(">HBHH", packets[0][:FIRST_HEADER_SIZE])
    assert channel == DEFAULT_CHANNEL
    assert tag == TAG_APDU
    assert seq == 0
    assert length == 5
    assert packets[0][FIRST_HEADER_SIZE:FIRST_HEADER_SIZE + 5] == apdu
    assert packets[0][FIRST_HEADER_SIZE + 5:] == b"\x00" * (PACKET_SIZE - 12)


def test_wrap_packet_count_boundaries():
    """57 bytes fit the first packet; each continuation carries 59."""
    assert len(wrap_command_apdu(bytes(57))) == 1
    assert len(wrap_command_apdu(bytes(58))) == 2
    assert len(wrap_command_apdu(bytes(57 + 59))) == 2
    assert len(wrap_command_apdu(bytes(57 + 60))) == 3


def test_wrap_continuation_sequence_numbers():
    packets = wrap_command_apdu(bytes(range(200)))
    for index, packet in enumerate(packets):
        channel, tag, seq = struct.unpack(">HBH", packet[:NEXT_HEADER_SIZE])
        assert channel == DEFAULT_CHANNEL
        assert tag == TAG_APDU
        assert seq == index


def test_wrap_custom_channel():
    packets = wrap_command_apdu(b"\x01\x02", channel=0x8001)
    assert packets[0][:2] == b"\x80\x01"


def test_wrap_rejects_tiny_packet_size():
    with pytest.raises(ValidationError):
        wrap_command_apdu(b"\x01", packet_size=7)


def test_roundtrip_through_unwrap():
    """Wrapped bytes unwrap to the original, for single and multi packet."""
    for length in (2, 57, 58, 255, 260):
        data = bytes(i % 256 for i in range(length))
        assert unwrap_packets(wrap_command_apdu(data)) == data


def test_unwrap_reads_only_needed_packets():
    """Unwrap stops once the declared length has been collected."""
    data = bytes(range(100))
    packets = wrap_command_apdu(data) + [b"\xff" * PACKET_SIZE]
    consumed = []

    def read():
        packet = packets[len(consumed)]
        consumed.append(packet)
        return packet

    assert unwrap_response_apdu(read) == data
    assert len(consumed) == 2


def test_unwrap_lost_connection():
    """Running out of packets before completion is a transport failure."""
    packets = wrap_command_apdu(bytes(100))[:1]
    with pytest.raises(TransportError, match="lost connection"):
        unwrap_packets(packets)


def test_unwrap_no_packets():
    with pytest.raises(TransportError, match="lost connection"):
        unwrap_packets([])


def test_unwrap_rejects_wrong_channel():
    packets = wrap_command_apdu(b"\x90\x00", channel=0x0202)
    with pytest.raises(TransportError, match="channel"):
        unwrap_packets(packets)


def test_unwrap_rejects_bad_tag():
    packet = bytearray(wrap_command_apdu(b"\x90\x00")[0])
    packet[2] = 0x06
    with pytest.raises(TransportError, match="tag"):
        unwrap_packets([bytes(packet)])


def test_unwrap_rejects_out_of_order_sequence():
    packets = wrap_command_apdu(bytes(150))
    packets[1], packets[2] = packets[2], packets[1]
    with pytest.raises(TransportError, match="sequence"):
        unwrap_packets(packets)


def test_unwrap_ignores_hidapi_extra_bytes():
    """Reports longer than the packet size are truncated before parsing."""
    packets = [p + b"\xee" for p in wrap_command_apdu(b"\x01\x02\x90\x00")]
    assert unwrap_packets(packets) == b"\x01\x02\x90\x00"
