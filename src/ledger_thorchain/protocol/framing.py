"""Ledger HID packet framing for APDUs over 64-byte USB reports.

Packet layout::

    first packet
    +---------+-----+----------+-------------+-------------------------+
    | Channel | Tag | Sequence | APDU length |  APDU bytes ...         |
    | 2 bytes | 1 B | 2 bytes  | 2 bytes     |  up to size - 7 bytes   |
    +---------+-----+----------+-------------+-------------------------+

    continuation packets
    +---------+-----+----------+---------------------------------------+
    | Channel | Tag | Sequence |  APDU bytes ...                       |
    | 2 bytes | 1 B | 2 bytes  |  up to size - 5 bytes                 |
    +---------+-----+----------+---------------------------------------+

- Channel: multiplexing tag, 0x0101 for the Ledger APDU channel
- Tag: 0x05 (APDU)
- Sequence: big-endian packet index starting at 0
- APDU length: big-endian total length, first packet only
- Every packet is zero-padded to the full packet size
"""

from __future__ import annotations

import struct
from typing import Callable, Iterable, Iterator

from ..config import DEFAULT_CHANNEL, PACKET_SIZE
from ..errors import TransportError, ValidationError

TAG_APDU = 0x05
FIRST_HEADER_SIZE = 7  # channel(2) + tag(1) + seq(2) + length(2)
NEXT_HEADER_SIZE = 5  # channel(2) + tag(1) + seq(2)
MAX_APDU_LENGTH = 0xFFFF

PacketSource = Callable[[], "bytes | None"]


def wrap_command_apdu(
    command: bytes,
    channel: int = DEFAULT_CHANNEL,
    packet_size: int = PACKET_SIZE,
) -> list[bytes]:
    """Split an APDU into fixed-size HID packets.

    Args:
        command: The complete APDU (header + data).
        channel: Channel identifier written at the start of every packet.
        packet_size: Transport report size; every returned packet has it.

    Returns:
        A list of ``packet_size``-byte packets to be written in order.
    """
    if packet_size < FIRST_HEADER_SIZE + 1:
        raise ValidationError(
            f"Packet size must be at least {FIRST_HEADER_SIZE + 1} bytes, got {packet_size}"
        )
    if len(command) > MAX_APDU_LENGTH:
        raise ValidationError(f"APDU too long for framing: {len(command)} bytes")

    packets: list[bytes] = []
    sequence = 0
    offset = 0

    header = struct.pack(">HBHH", channel, TAG_APDU, sequence, len(command))
    block = command[: packet_size - FIRST_HEADER_SIZE]
    packets.append(_pad(header + block, packet_size))
    offset += len(block)

    while offset < len(command):
        sequence += 1
        header = struct.pack(">HBH", channel, TAG_APDU, sequence)
        block = command[offset : offset + packet_size - NEXT_HEADER_SIZE]
        packets.append(_pad(header + block, packet_size))
        offset += len(block)

    return packets


def unwrap_response_apdu(
    read_packet: PacketSource,
    channel: int = DEFAULT_CHANNEL,
    packet_size: int = PACKET_SIZE,
) -> bytes:
    """Reassemble a response APDU from inbound HID packets.

    Args:
        read_packet: Callable returning the next packet, or ``None`` when
            the transport has nothing more to give (timeout, closed).
        channel: Expected channel identifier.
        packet_size: Transport report size.

    Returns:
        The reassembled response bytes (payload followed by status word).

    Raises:
        TransportError: If a packet has the wrong channel, tag or sequence,
            or the stream ends before the declared length is reached.
    """
    result = bytearray()
    expected_length: int | None = None
    sequence = 0

    while expected_length is None or len(result) < expected_length:
        packet = read_packet()
        if not packet:
            raise TransportError("lost connection")

        body = _check_header(packet[:packet_size], channel, sequence)
        if sequence == 0:
            if len(body) < 2:
                raise TransportError("Truncated first response packet")
            expected_length = struct.unpack(">H", body[:2])[0]
            body = body[2:]

        remaining = expected_length - len(result)
        result += body[:remaining]
        sequence += 1

    return bytes(result)


def unwrap_packets(
    packets: Iterable[bytes],
    channel: int = DEFAULT_CHANNEL,
    packet_size: int = PACKET_SIZE,
) -> bytes:
    """Convenience wrapper reassembling a response from a packet sequence."""
    iterator: Iterator[bytes] = iter(packets)
    return unwrap_response_apdu(lambda: next(iterator, None), channel, packet_size)


def _check_header(packet: bytes, channel: int, sequence: int) -> bytes:
    if len(packet) < NEXT_HEADER_SIZE:
        raise TransportError(f"Short packet ({len(packet)} bytes)")
    got_channel, tag, got_sequence = struct.unpack(">HBH", packet[:NEXT_HEADER_SIZE])
    if got_channel != channel:
        raise TransportError(
            f"Invalid channel 0x{got_channel:04X}, expected 0x{channel:04X}"
        )
    if tag != TAG_APDU:
        raise TransportError(f"Invalid tag 0x{tag:02X}")
    if got_sequence != sequence:
        raise TransportError(f"Invalid sequence {got_sequence}, expected {sequence}")
    return packet[NEXT_HEADER_SIZE:]


def _pad(data: bytes, packet_size: int) -> bytes:
    return data + b"\x00" * (packet_size - len(data))
