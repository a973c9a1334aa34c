"""Chunked exchange engine for payloads larger than one APDU.

A signing request is sent as a sequence of APDUs: the encoded derivation
path first, then the transaction in chunks of at most 250 bytes. The app
revision decides how each APDU header describes its position:

- ``V1``: ``CLA INS index count Lc`` with a 1-based index and total count
- ``V2``: ``CLA INS descriptor mode Lc`` where the descriptor is 0 for the
  path packet, 1 for interior chunks and 2 for the final chunk, and
  ``mode`` selects legacy Amino JSON (0) or textual (1) signing

Only the response of the last APDU carries data; earlier ones acknowledge.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Callable, Sequence

from ..config import CHUNK_SIZE, DEFAULT_CLA
from ..errors import ValidationError
from .commands import MAX_DATA_LENGTH
from .parser import check_response, parse_response

logger = logging.getLogger(__name__)

MAX_PACKET_COUNT = 0xFF


class ChunkPolicy(Enum):
    """Header scheme used by a given app revision."""

    V1 = 1
    V2 = 2

    def __str__(self) -> str:
        return self.name.lower()


class ChunkRole(IntEnum):
    """Payload descriptor values used by the V2 scheme."""

    INIT = 0
    ADD = 1
    LAST = 2


class SignMode(IntEnum):
    """P2 values accepted by the V2 sign instruction."""

    LEGACY_AMINO_JSON = 0
    TEXTUAL = 1


@dataclass(frozen=True)
class ChunkPlan:
    """How a payload is cut into APDUs for one sign or hash operation."""

    total_chunks: int
    chunk_size: int
    policy: ChunkPolicy
    leading_path: bool = True


def split_chunks(data: bytes, chunk_size: int = CHUNK_SIZE) -> list[bytes]:
    """Cut ``data`` into consecutive pieces of at most ``chunk_size`` bytes."""
    if not 0 < chunk_size <= MAX_DATA_LENGTH:
        raise ValidationError(f"Chunk size must be 1-{MAX_DATA_LENGTH}, got {chunk_size}")
    return [data[offset : offset + chunk_size] for offset in range(0, len(data), chunk_size)]


def plan_chunks(
    payload_length: int,
    policy: ChunkPolicy,
    chunk_size: int = CHUNK_SIZE,
    leading_path: bool = True,
) -> ChunkPlan:
    """Compute the chunk plan for a payload.

    Raises:
        ValidationError: If the APDU count would not fit the single-byte
            packet count field.
    """
    total = math.ceil(payload_length / chunk_size) + (1 if leading_path else 0)
    if total > MAX_PACKET_COUNT:
        raise ValidationError(
            f"Payload of {payload_length} bytes needs {total} packets "
            f"(max {MAX_PACKET_COUNT})"
        )
    return ChunkPlan(
        total_chunks=total,
        chunk_size=chunk_size,
        policy=policy,
        leading_path=leading_path,
    )


def _v1_header(cla: int, ins: int, index: int, count: int, role: ChunkRole, p2: int) -> bytes:
    return bytes([cla, ins, index, count])


def _v2_header(cla: int, ins: int, index: int, count: int, role: ChunkRole, p2: int) -> bytes:
    return bytes([cla, ins, role, p2])


HEADER_BUILDERS: dict[ChunkPolicy, Callable[..., bytes]] = {
    ChunkPolicy.V1: _v1_header,
    ChunkPolicy.V2: _v2_header,
}


def validate_sign_mode(mode: int) -> SignMode:
    try:
        return SignMode(mode)
    except ValueError:
        raise ValidationError(
            "Only SIGN_MODE_LEGACY_AMINO_JSON (P2=0) and SIGN_MODE_TEXTUAL (P2=1) "
            f"are allowed, got {mode}"
        ) from None


def _chunk_role(index: int, count: int, is_path: bool) -> ChunkRole:
    if is_path:
        return ChunkRole.INIT
    return ChunkRole.LAST if index == count else ChunkRole.ADD


def build_chunked_apdus(
    plan: ChunkPlan,
    ins: int,
    data: bytes,
    path_bytes: bytes | None = None,
    p2: int = 0,
    cla: int = DEFAULT_CLA,
) -> list[bytes]:
    """Build every APDU of a chunked sequence according to ``plan``."""
    pieces = split_chunks(data, plan.chunk_size)
    if plan.leading_path:
        if path_bytes is None:
            raise ValidationError("Plan expects a leading path packet but no path was given")
        pieces.insert(0, path_bytes)
    if len(pieces) != plan.total_chunks:
        raise ValidationError(
            f"Plan expects {plan.total_chunks} packets, payload makes {len(pieces)}"
        )

    header_for = HEADER_BUILDERS[plan.policy]
    apdus = []
    for index, piece in enumerate(pieces, start=1):
        if len(piece) > MAX_DATA_LENGTH:
            raise ValidationError(f"Chunk {index} is {len(piece)} bytes, exceeds Lc range")
        role = _chunk_role(index, plan.total_chunks, plan.leading_path and index == 1)
        header = header_for(cla, ins, index, plan.total_chunks, role, p2)
        apdus.append(header + bytes([len(piece)]) + piece)
    return apdus


def build_sign_apdus(
    policy: ChunkPolicy,
    ins: int,
    path_bytes: bytes,
    transaction: bytes,
    mode: int = SignMode.LEGACY_AMINO_JSON,
    cla: int = DEFAULT_CLA,
    chunk_size: int = CHUNK_SIZE,
) -> list[bytes]:
    """Build the APDUs that sign ``transaction`` with the key at the path.

    The mode selector is only transmitted by the V2 scheme, where it must
    be 0 or 1.
    """
    p2 = 0
    if policy is ChunkPolicy.V2:
        p2 = validate_sign_mode(mode)
    plan = plan_chunks(len(transaction), policy, chunk_size, leading_path=True)
    return build_chunked_apdus(plan, ins, transaction, path_bytes, p2, cla)


def build_data_apdus(
    policy: ChunkPolicy,
    ins: int,
    data: bytes,
    cla: int = DEFAULT_CLA,
    chunk_size: int = CHUNK_SIZE,
) -> list[bytes]:
    """Build APDUs that stream ``data`` alone, without a path packet."""
    if not data:
        raise ValidationError("Nothing to send: payload is empty")
    plan = plan_chunks(len(data), policy, chunk_size, leading_path=False)
    return build_chunked_apdus(plan, ins, data, cla=cla)


class ChunkedExchange:
    """Drive a sequence of APDUs through an exchange function.

    Usage::

        engine = ChunkedExchange(transport.exchange)
        signature = engine.run(build_sign_apdus(...))
    """

    def __init__(self, exchange: Callable[[bytes], bytes]) -> None:
        self._exchange = exchange

    def run(self, apdus: Sequence[bytes]) -> bytes:
        """Send ``apdus`` in order and return the last response payload.

        The sequence stops at the first failure; nothing is retried.

        Raises:
            TransportError: If an exchange fails.
            StatusWordError: If any step returns a non-success status word.
        """
        final = b""
        total = len(apdus)
        for index, apdu in enumerate(apdus, start=1):
            logger.debug("chunk %d/%d (%d bytes)", index, total, len(apdu) - 5)
            response = parse_response(self._exchange(apdu))
            final = check_response(response, ins=apdu[1])
        return final
