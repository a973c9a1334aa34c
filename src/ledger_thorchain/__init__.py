"""Ledger THORChain app client"""

from .client import Curve, LedgerTHORChain, connect, open_app
from .config import AppFamily, ClientConfig
from .errors import (
    LedgerError,
    ProtocolError,
    StatusWordError,
    TransportError,
    UnsupportedVersionError,
    ValidationError,
)
from .models.version import VersionInfo
from .protocol.chunking import ChunkPolicy, SignMode

__version__ = "0.1.0"

__all__ = [
    "AppFamily",
    "ChunkPolicy",
    "ClientConfig",
    "Curve",
    "LedgerError",
    "LedgerTHORChain",
    "ProtocolError",
    "SignMode",
    "StatusWordError",
    "TransportError",
    "UnsupportedVersionError",
    "ValidationError",
    "VersionInfo",
    "connect",
    "open_app",
]
