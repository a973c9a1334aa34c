"""Instruction constants and single-exchange APDU builders.

Every APDU starts with a five-byte header::

    +-----+-----+----+----+----+------------------+
    | CLA | INS | P1 | P2 | Lc |  data (Lc bytes) |
    +-----+-----+----+----+----+------------------+

THORChain and the legacy Cosmos app share CLA 0x55 but number their
instructions differently; :func:`instructions_for` picks the table.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from ..config import DEFAULT_CLA, AppFamily
from ..errors import ValidationError

MAX_DATA_LENGTH = 0xFF
MAX_HRP_LENGTH = 83
HRP_MIN_BYTE = 33
HRP_MAX_BYTE = 126


class CosmosIns(IntEnum):
    """Instruction codes of the legacy Cosmos app."""

    GET_VERSION = 0
    GET_PUBKEY_SECP256K1 = 1
    SIGN_SECP256K1 = 2
    SHOW_ADDR_SECP256K1 = 3
    HASH = 100
    GET_PUBKEY_SECP256K1_TEST = 101
    SIGN_SECP256K1_TEST = 103


class ThorchainIns(IntEnum):
    """Instruction codes of the THORChain app."""

    GET_VERSION = 0
    SIGN_SECP256K1 = 2
    GET_ADDR_SECP256K1 = 4


@dataclass(frozen=True)
class InstructionSet:
    """The instruction bytes one app family answers to."""

    get_version: int
    sign: int
    get_address: int | None = None
    get_pubkey: int | None = None
    hash: int | None = None
    sign_test: int | None = None


INSTRUCTION_SETS: dict[AppFamily, InstructionSet] = {
    AppFamily.THORCHAIN: InstructionSet(
        get_version=ThorchainIns.GET_VERSION,
        sign=ThorchainIns.SIGN_SECP256K1,
        get_address=ThorchainIns.GET_ADDR_SECP256K1,
    ),
    AppFamily.COSMOS: InstructionSet(
        get_version=CosmosIns.GET_VERSION,
        sign=CosmosIns.SIGN_SECP256K1,
        get_address=CosmosIns.SHOW_ADDR_SECP256K1,
        get_pubkey=CosmosIns.GET_PUBKEY_SECP256K1,
        hash=CosmosIns.HASH,
        sign_test=CosmosIns.SIGN_SECP256K1_TEST,
    ),
}


def instructions_for(family: AppFamily) -> InstructionSet:
    return INSTRUCTION_SETS[family]


def build_apdu(cla: int, ins: int, p1: int = 0, p2: int = 0, data: bytes = b"") -> bytes:
    """Build one APDU, checking every header field fits its byte.

    Raises:
        ValidationError: If a header value is outside 0-255 or ``data``
            is longer than the single-byte Lc field allows.
    """
    for name, value in (("CLA", cla), ("INS", ins), ("P1", p1), ("P2", p2)):
        if not 0 <= value <= 0xFF:
            raise ValidationError(f"{name} must be 0-255, got {value}")
    if len(data) > MAX_DATA_LENGTH:
        raise ValidationError(
            f"APDU data must be at most {MAX_DATA_LENGTH} bytes, got {len(data)}"
        )
    return bytes([cla, ins, p1, p2, len(data)]) + data


def validate_hrp(hrp: str) -> bytes:
    """Check a bech32 human-readable prefix and return its bytes.

    Every character must be in [33, 126] and the prefix at most 83 long.
    """
    if len(hrp) > MAX_HRP_LENGTH:
        raise ValidationError(
            f"HRP must be at most {MAX_HRP_LENGTH} characters, got {len(hrp)}"
        )
    if not hrp.isascii() or any(not HRP_MIN_BYTE <= ord(c) <= HRP_MAX_BYTE for c in hrp):
        raise ValidationError(
            f"All characters in the HRP must be in the [{HRP_MIN_BYTE}, {HRP_MAX_BYTE}] range"
        )
    return hrp.encode("ascii")


def build_get_version(cla: int = DEFAULT_CLA, ins: int = ThorchainIns.GET_VERSION) -> bytes:
    """Build the GET_VERSION command (no data)."""
    return build_apdu(cla, ins)


def build_get_address(
    path_bytes: bytes,
    hrp: str,
    require_confirmation: bool = False,
    cla: int = DEFAULT_CLA,
    ins: int = ThorchainIns.GET_ADDR_SECP256K1,
) -> bytes:
    """Build a GET_ADDR command.

    Data is ``hrp length | hrp | encoded path``; P1 asks the device to show
    the address for confirmation.
    """
    hrp_bytes = validate_hrp(hrp)
    data = bytes([len(hrp_bytes)]) + hrp_bytes + path_bytes
    return build_apdu(cla, ins, 1 if require_confirmation else 0, 0, data)


def build_get_public_key(
    path_bytes: bytes,
    cla: int = DEFAULT_CLA,
    ins: int = CosmosIns.GET_PUBKEY_SECP256K1,
) -> bytes:
    """Build a legacy GET_PUBKEY command carrying only the encoded path."""
    return build_apdu(cla, ins, 0, 0, path_bytes)
