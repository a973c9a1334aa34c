"""Client configuration: wire constants and the supported-version table."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

LEDGER_VENDOR_ID = 0x2C97
DEFAULT_CLA = 0x55
DEFAULT_CHANNEL = 0x0101
PACKET_SIZE = 64
CHUNK_SIZE = 250
DEFAULT_HRP = "thor"
HARDEN_COUNT = 3
READ_TIMEOUT_MS = 5000

# major -> minimum (major, minor, patch) accepted for that revision
DEFAULT_MIN_VERSIONS: dict[int, tuple[int, int, int]] = {
    1: (1, 5, 1),
    2: (2, 0, 0),
}


class AppFamily(Enum):
    """Which app instruction table to speak."""

    THORCHAIN = "thorchain"
    COSMOS = "cosmos"

    @property
    def display_name(self) -> str:
        return {"thorchain": "THORChain", "cosmos": "Cosmos"}[self.value]

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ClientConfig:
    """Settings shared by the transport, the framer and the session."""

    cla: int = DEFAULT_CLA
    channel: int = DEFAULT_CHANNEL
    packet_size: int = PACKET_SIZE
    chunk_size: int = CHUNK_SIZE
    default_hrp: str = DEFAULT_HRP
    harden_count: int = HARDEN_COUNT
    app_family: AppFamily = AppFamily.THORCHAIN
    vendor_id: int = LEDGER_VENDOR_ID
    read_timeout_ms: int = READ_TIMEOUT_MS
    min_versions: dict[int, tuple[int, int, int]] = field(
        default_factory=lambda: dict(DEFAULT_MIN_VERSIONS)
    )
