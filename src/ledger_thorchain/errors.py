"""Exception hierarchy for the Ledger THORChain client.

Every failure surfaced by this package derives from :class:`LedgerError`,
so callers can separate transport hiccups (:class:`TransportError`) from
permanent protocol, status and version problems.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all errors raised by this package."""


class TransportError(LedgerError, ConnectionError):
    """The device could not be reached or the packet stream broke off."""


class ProtocolError(LedgerError):
    """A response was too short or otherwise malformed for its command."""


class ValidationError(LedgerError, ValueError):
    """Caller input rejected before anything was sent to the device."""


class UnsupportedVersionError(LedgerError):
    """The app version on the device is not supported by this client."""


class StatusWordError(LedgerError):
    """The device answered with a status word other than 0x9000.

    Attributes:
        status_word: The raw 16-bit status word.
        ins: Instruction byte of the failing command, if known.
        message: Human-readable description. For status classes that
            embed a diagnostic in the response payload this is that text.
    """

    def __init__(self, status_word: int, message: str, ins: int | None = None) -> None:
        self.status_word = status_word
        self.ins = ins
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        ins = f", ins=0x{self.ins:02X}" if self.ins is not None else ""
        return f"StatusWordError(0x{self.status_word:04X}{ins}, {self.message!r})"
