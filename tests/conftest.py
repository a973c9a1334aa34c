"""Shared fixtures: an in-memory transport that replays scripted responses."""

from __future__ import annotations

import pytest

from ledger_thorchain.client import LedgerTHORChain
from ledger_thorchain.models.version import VersionInfo


def ok(payload: bytes = b"") -> bytes:
    """Raw response carrying ``payload`` and status 0x9000."""
    return payload + b"\x90\x00"


def status(code: int, payload: bytes = b"") -> bytes:
    """Raw response carrying ``payload`` and an arbitrary status word."""
    return payload + code.to_bytes(2, "big")


class FakeTransport:
    """Records every APDU sent and answers from a scripted list.

    Items in ``responses`` are raw response bytes, or exceptions to raise.
    When the script runs out every further exchange acknowledges with 0x9000.
    """

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.sent: list[bytes] = []
        self.close_count = 0

    def exchange(self, apdu: bytes) -> bytes:
        self.sent.append(bytes(apdu))
        if not self.responses:
            return ok()
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self) -> None:
        self.close_count += 1


@pytest.fixture
def transport():
    return FakeTransport()


def make_app(transport, major: int = 2, minor: int = 0, patch: int = 0, config=None):
    """A session with the version already negotiated."""
    transport.responses.insert(0, ok(bytes([0, major, minor, patch])))
    app = LedgerTHORChain(transport, config)
    app.get_version()
    transport.sent.clear()
    return app


@pytest.fixture
def app_v1(transport):
    return make_app(transport, major=1, minor=5, patch=1)


@pytest.fixture
def app_v2(transport):
    return make_app(transport, major=2)


@pytest.fixture
def version_v2():
    return VersionInfo(app_mode=0, major=2, minor=0, patch=0)
