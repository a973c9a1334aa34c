"""The transport port the protocol layer talks through."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    """Synchronous APDU exchange with one device.

    ``exchange`` sends a complete APDU and returns the complete response,
    status word included. Failures are raised as ``TransportError``.
    """

    def exchange(self, apdu: bytes) -> bytes: ...

    def close(self) -> None: ...
