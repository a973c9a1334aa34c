"""BIP32 derivation path encoding.

Wire form::

    +-------+-----------------+-----------------+-----+
    | Count | Element 0       | Element 1       | ... |
    | 1 B   | 4 bytes (BE)    | 4 bytes (BE)    |     |
    +-------+-----------------+-----------------+-----+

The first ``harden_count`` elements get the hardening bit (0x80000000),
so ``[44, 931, 0, 0, 0]`` with the default of 3 encodes
``m/44'/931'/0'/0/0``. Both app revisions share this encoding.
"""

from __future__ import annotations

from typing import Sequence, Union

from ..config import HARDEN_COUNT
from ..errors import ValidationError

HARDENED = 0x80000000
UINT32_MAX = 0xFFFFFFFF
MAX_ENCODED_LENGTH = 0xFF
MAX_DEPTH = (MAX_ENCODED_LENGTH - 1) // 4  # 63

PathLike = Union[str, Sequence[int]]


def parse_path(path: str) -> list[int]:
    """Parse ``m/44'/931'/0'/0/0`` into indices, keeping explicit hardening."""
    parts = path.strip().split("/")
    if parts and parts[0] in ("m", "M"):
        parts = parts[1:]
    if not parts or parts == [""]:
        raise ValidationError(f"BIP32 path format error: '{path}'")

    indices: list[int] = []
    for part in parts:
        hardened = part.endswith(("'", "h", "H"))
        digits = part[:-1] if hardened else part
        if not (digits.isascii() and digits.isdigit()):
            raise ValidationError(f"BIP32 path format error: '{path}'")
        value = int(digits)
        if value >= HARDENED:
            raise ValidationError(f"BIP32 index out of range: {part}")
        indices.append(value | HARDENED if hardened else value)
    return indices


def encode_path(path: PathLike, harden_count: int = HARDEN_COUNT) -> bytes:
    """Serialize a derivation path for the device.

    Args:
        path: Sequence of uint32 indices, or a ``m/...`` path string. Path
            strings carry their own hardening and ignore ``harden_count``.
        harden_count: Number of leading elements to harden.

    Raises:
        ValidationError: If an element is not a uint32 or the encoded path
            does not fit the single length byte of the command header.
    """
    if isinstance(path, str):
        indices = parse_path(path)
        harden_count = 0
    else:
        indices = list(path)

    if len(indices) > MAX_DEPTH:
        raise ValidationError(
            f"Derivation path too deep: {len(indices)} elements (max {MAX_DEPTH})"
        )

    out = bytearray([len(indices)])
    for position, element in enumerate(indices):
        if not isinstance(element, int) or not 0 <= element <= UINT32_MAX:
            raise ValidationError(f"Path element {element!r} is not a uint32")
        if position < harden_count:
            element |= HARDENED
        out += element.to_bytes(4, "big")
    return bytes(out)


def format_path(path: PathLike, harden_count: int = HARDEN_COUNT) -> str:
    """Render a path as ``m/44'/931'/0'/0/0`` for logs and tool output."""
    if isinstance(path, str):
        return path
    parts = []
    for position, element in enumerate(path):
        if position < harden_count or element & HARDENED:
            parts.append(f"{element & ~HARDENED}'")
        else:
            parts.append(str(element))
    return "/".join(["m", *parts])
