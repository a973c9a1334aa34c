"""MCP server entry point for the Ledger THORChain app.

Exposes the session operations as tools via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .client import LedgerTHORChain, open_app
from .errors import LedgerError
from .protocol.parser import AddressResponse
from .protocol.path import format_path
from .transport.usb_connection import list_devices as _list_devices

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "ledger-thorchain",
    instructions="MCP server for the THORChain app on a Ledger hardware wallet",
)

# Global session state
_session: LedgerTHORChain | None = None


def _get_session() -> LedgerTHORChain:
    """Get the active session, raising if not connected."""
    if _session is None or _session.closed:
        raise RuntimeError("Not connected to device. Use the 'connect' tool first.")
    return _session


def _parse_hex(value: str) -> bytes:
    value = value.strip()
    if value.startswith(("0x", "0X")):
        value = value[2:]
    return bytes.fromhex(value)


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect() -> dict[str, Any]:
    """Open the first connected Ledger device and negotiate the app version.

    The THORChain app must be open on the device.
    """
    global _session
    if _session is not None and not _session.closed:
        return {"connected": True, "message": "Already connected", "version": str(_session.version)}

    try:
        _session = open_app()
    except LedgerError as e:
        return {"error": str(e)}

    return {"connected": True, "version": _session.version.to_dict()}


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the connection to the device."""
    global _session
    if _session is not None:
        _session.close()
        _session = None
    return {"disconnected": True}


@mcp.tool()
def get_version() -> dict[str, Any]:
    """Read the app version from the device."""
    session = _get_session()
    try:
        return session.get_version().to_dict()
    except LedgerError as e:
        return {"error": str(e)}


@mcp.tool()
def list_devices() -> dict[str, Any]:
    """List connected Ledger devices (USB vendor 0x2C97)."""
    try:
        devices = _list_devices()
    except (ImportError, OSError) as e:
        return {"error": f"Device enumeration failed: {e}"}
    return {"devices": [d.to_dict() for d in devices]}


# ─── KEY TOOLS ────────────────────────────────────────────────────────

@mcp.tool()
def get_public_key(path: str = "m/44'/931'/0'/0/0") -> dict[str, Any]:
    """Return the compressed secp256k1 public key for a BIP32 path.

    Args:
        path: Derivation path, e.g. m/44'/931'/0'/0/0.
    """
    session = _get_session()
    try:
        public_key = session.get_public_key(path)
    except LedgerError as e:
        return {"error": str(e)}
    return {"path": path, "public_key": public_key.hex()}


@mcp.tool()
def get_address(
    path: str = "m/44'/931'/0'/0/0",
    hrp: str = "thor",
    confirm: bool = False,
) -> dict[str, Any]:
    """Derive the bech32 address for a BIP32 path.

    Args:
        path: Derivation path, e.g. m/44'/931'/0'/0/0.
        hrp: Address prefix (thor, tthor, sthor ...).
        confirm: Show the address on the device and wait for approval.
    """
    session = _get_session()
    try:
        public_key, address = session.get_address(path, hrp, confirm)
    except LedgerError as e:
        return {"error": str(e)}
    return {"path": path, **AddressResponse(public_key, address).to_dict()}


# ─── SIGNING TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def sign_transaction(
    transaction: str,
    path: str = "m/44'/931'/0'/0/0",
    mode: int = 0,
    encoding: str = "utf-8",
) -> dict[str, Any]:
    """Sign a transaction; the user must approve it on the device.

    Args:
        transaction: Sign doc, as text (Amino JSON) or hex.
        path: Derivation path of the signing key.
        mode: 0 for SIGN_MODE_LEGACY_AMINO_JSON, 1 for SIGN_MODE_TEXTUAL.
        encoding: "utf-8" for text input, "hex" for hex input.
    """
    session = _get_session()
    try:
        tx_bytes = _parse_hex(transaction) if encoding == "hex" else transaction.encode(encoding)
    except (ValueError, LookupError) as e:
        return {"error": f"Invalid transaction encoding: {e}"}

    try:
        signature = session.sign(path, tx_bytes, mode)
    except LedgerError as e:
        return {"error": str(e)}
    return {"path": path, "signature": signature.hex()}


@mcp.tool()
def hash_transaction(data: str) -> dict[str, Any]:
    """Hash hex-encoded data on the device (legacy Cosmos app only).

    Args:
        data: Hex-encoded bytes.
    """
    session = _get_session()
    try:
        digest = session.hash(_parse_hex(data))
    except (ValueError, LedgerError) as e:
        return {"error": str(e)}
    return {"hash": digest.hex()}


# ─── RESOURCES ───────────────────────────────────────────────────────

@mcp.resource("ledger://device/info")
def resource_device_info() -> str:
    """App version and connection state."""
    if _session is None or _session.closed:
        return json.dumps({"connected": False})

    version = _session.version
    return json.dumps({
        "connected": True,
        "app_family": str(_session.config.app_family),
        "version": version.to_dict() if version else None,
        "default_path": format_path([44, 931, 0, 0, 0]),
    })


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
