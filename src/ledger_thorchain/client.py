"""Session with the THORChain (or legacy Cosmos) app on a Ledger device.

A :class:`LedgerTHORChain` owns one transport, caches the app version read
at connection time and dispatches every operation to the instruction table
of its app family and the chunking policy of the negotiated revision.

Usage::

    with open_app() as app:
        pubkey, address = app.get_address([44, 931, 0, 0, 0], "thor")
        signature = app.sign([44, 931, 0, 0, 0], tx_bytes)
"""

from __future__ import annotations

import logging
from enum import Enum

from .config import AppFamily, ClientConfig
from .errors import (
    StatusWordError,
    TransportError,
    UnsupportedVersionError,
    ValidationError,
)
from .models.version import VersionInfo
from .protocol.chunking import (
    ChunkedExchange,
    ChunkPolicy,
    SignMode,
    build_data_apdus,
    build_sign_apdus,
)
from .protocol.commands import (
    build_get_address,
    build_get_public_key,
    build_get_version,
    instructions_for,
)
from .protocol.parser import (
    StatusWord,
    check_response,
    parse_address,
    parse_response,
    parse_version,
)
from .protocol.path import PathLike, encode_path, format_path
from .protocol.version import check_version, policy_for
from .transport.base import Transport

logger = logging.getLogger(__name__)


class Curve(Enum):
    """Key curves the app can derive."""

    SECP256K1 = "secp256k1"


class LedgerTHORChain:
    """Connection to the THORChain app running on one Ledger device."""

    def __init__(self, transport: Transport, config: ClientConfig | None = None) -> None:
        self._transport = transport
        self._config = config or ClientConfig()
        self._ins = instructions_for(self._config.app_family)
        self._version: VersionInfo | None = None
        self._closed = False

    @property
    def version(self) -> VersionInfo | None:
        """Version read by the last :meth:`get_version` call."""
        return self._version

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> LedgerTHORChain:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Release the transport. Further calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        self._transport.close()

    # ─── EXCHANGE HELPERS ─────────────────────────────────────────────

    def _raw_exchange(self, apdu: bytes) -> bytes:
        if self._closed:
            raise TransportError("Session is closed")
        return self._transport.exchange(apdu)

    def _exchange(self, apdu: bytes) -> bytes:
        response = parse_response(self._raw_exchange(apdu))
        return check_response(response, ins=apdu[1])

    def _policy(self) -> ChunkPolicy:
        return policy_for(self._version)

    def _path_bytes(self, path: PathLike) -> bytes:
        # unknown revisions block every operation
        self._policy()
        return encode_path(path, self._config.harden_count)

    # ─── VERSION ──────────────────────────────────────────────────────

    def get_version(self) -> VersionInfo:
        """Read the app version and cache it on the session."""
        payload = self._exchange(build_get_version(self._config.cla, self._ins.get_version))
        self._version = parse_version(payload)
        logger.info("App version %s", self._version)
        return self._version

    def check_version(self, version: VersionInfo | None = None) -> None:
        """Raise :class:`UnsupportedVersionError` unless the version is supported.

        Checks ``version`` if given, otherwise the cached one.
        """
        version = version or self._version
        if version is None:
            raise UnsupportedVersionError("App version has not been negotiated yet")
        check_version(version, self._config.min_versions)

    # ─── KEYS AND ADDRESSES ───────────────────────────────────────────

    def get_public_key(self, path: PathLike, curve: Curve = Curve.SECP256K1) -> bytes:
        """Return the public key for ``path`` without user confirmation.

        The THORChain app answers through GET_ADDR (33-byte compressed key);
        the legacy Cosmos app has a dedicated instruction returning the raw
        key. Length checks are left to the caller.
        """
        if curve not in (Curve.SECP256K1, Curve.SECP256K1.value):
            raise ValidationError(f"Unsupported curve: {curve}")

        if self._ins.get_pubkey is None:
            public_key, _ = self.get_address(path, self._config.default_hrp, False)
            return public_key

        path_bytes = self._path_bytes(path)
        return self._exchange(
            build_get_public_key(path_bytes, self._config.cla, self._ins.get_pubkey)
        )

    def get_address(
        self,
        path: PathLike,
        hrp: str | None = None,
        require_confirmation: bool = False,
    ) -> tuple[bytes, str]:
        """Return ``(compressed public key, bech32 address)`` for ``path``.

        With ``require_confirmation`` the device shows the address and waits
        for the user.
        """
        hrp = self._config.default_hrp if hrp is None else hrp
        path_bytes = self._path_bytes(path)
        apdu = build_get_address(
            path_bytes, hrp, require_confirmation, self._config.cla, self._ins.get_address
        )
        logger.debug("get_address %s hrp=%s", format_path(path, self._config.harden_count), hrp)
        result = parse_address(self._exchange(apdu), hrp)
        return result.public_key, result.address

    def show_address(self, path: PathLike, hrp: str | None = None) -> tuple[bytes, str]:
        """Display the address on the device and return it once confirmed."""
        return self.get_address(path, hrp, require_confirmation=True)

    # ─── SIGNING ──────────────────────────────────────────────────────

    def sign(
        self,
        path: PathLike,
        transaction: bytes,
        mode: int = SignMode.LEGACY_AMINO_JSON,
    ) -> bytes:
        """Sign ``transaction`` with the key at ``path``; requires confirmation.

        ``mode`` selects SIGN_MODE_LEGACY_AMINO_JSON (0) or SIGN_MODE_TEXTUAL
        (1) and is only sent to v2 apps. Returns the DER signature.
        """
        policy = self._policy()
        apdus = build_sign_apdus(
            policy,
            self._ins.sign,
            self._path_bytes(path),
            bytes(transaction),
            mode,
            self._config.cla,
            self._config.chunk_size,
        )
        logger.debug("sign: %d packets, policy %s", len(apdus), policy)
        return ChunkedExchange(self._raw_exchange).run(apdus)

    def hash(self, data: bytes) -> bytes:
        """Have the device hash ``data`` (legacy Cosmos app only)."""
        return self._run_data_only(self._ins.hash, "hash", data)

    def sign_test(self, transaction: bytes) -> bytes:
        """Sign ``transaction`` with the app's test key (legacy Cosmos app only)."""
        return self._run_data_only(self._ins.sign_test, "sign_test", transaction)

    def _run_data_only(self, ins: int | None, name: str, data: bytes) -> bytes:
        if ins is None:
            raise ValidationError(
                f"{name} is not available on the {self._config.app_family} app"
            )
        apdus = build_data_apdus(
            self._policy(), ins, bytes(data), self._config.cla, self._config.chunk_size
        )
        return ChunkedExchange(self._raw_exchange).run(apdus)


def connect(transport: Transport, config: ClientConfig | None = None) -> LedgerTHORChain:
    """Wrap an open transport, negotiate the version and gate it.

    The transport is closed again if negotiation fails.
    """
    app = LedgerTHORChain(transport, config)
    try:
        version = app.get_version()
        app.check_version(version)
    except StatusWordError as e:
        app.close()
        if e.status_word == StatusWord.CLA_NOT_SUPPORTED:
            hint = f"are you sure the {app.config.app_family.display_name} app is open?"
            raise StatusWordError(e.status_word, hint, e.ins) from e
        raise
    except Exception:
        app.close()
        raise
    return app


def open_app(config: ClientConfig | None = None) -> LedgerTHORChain:
    """Find the first connected Ledger device and open a session with it."""
    from .transport.usb_connection import HIDTransport

    config = config or ClientConfig()
    transport = HIDTransport(
        vendor_id=config.vendor_id,
        channel=config.channel,
        packet_size=config.packet_size,
        read_timeout_ms=config.read_timeout_ms,
    )
    transport.open()
    return connect(transport, config)
