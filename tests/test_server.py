"""Tests for the MCP tool surface with the session mocked."""

from __future__ import annotations

import sys
from unittest.mock import MagicMock, patch

from conftest import FakeTransport, make_app, ok
from ledger_thorchain.errors import TransportError


def _get_server_module():
    """Import server module with FastMCP mocked to avoid init issues."""
    mock_fastmcp_cls = MagicMock()
    mock_fastmcp_instance = MagicMock()
    # Make the @mcp.tool() decorator a no-op that returns the function unchanged
    mock_fastmcp_instance.tool.return_value = lambda fn: fn
    mock_fastmcp_instance.resource.return_value = lambda fn: fn
    mock_fastmcp_cls.return_value = mock_fastmcp_instance

    with patch("mcp.server.fastmcp.FastMCP", mock_fastmcp_cls):
        sys.modules.pop("ledger_thorchain.server", None)
        import ledger_thorchain.server as server_mod

    return server_mod


def test_tools_require_connection():
    server = _get_server_module()
    try:
        server.get_version()
    except RuntimeError as e:
        assert "connect" in str(e)
    else:
        raise AssertionError("expected RuntimeError")


def test_connect_and_get_address():
    server = _get_server_module()
    transport = FakeTransport()
    app = make_app(transport)

    with patch.object(server, "open_app", return_value=app):
        result = server.connect()
    assert result["connected"] is True
    assert result["version"]["major"] == 2

    transport.responses.append(ok(b"\x02" + bytes(32) + b"thor1abc"))
    result = server.get_address("m/44'/931'/0'/0/0", "thor", False)
    assert result["address"] == "thor1abc"
    assert result["public_key"] == "02" + "00" * 32

    assert server.disconnect() == {"disconnected": True}
    assert transport.close_count == 1


def test_connect_failure_reported_as_error():
    server = _get_server_module()
    with patch.object(server, "open_app", side_effect=TransportError("no device")):
        assert server.connect() == {"error": "no device"}


def test_sign_transaction_hex_and_errors():
    server = _get_server_module()
    transport = FakeTransport()
    server._session = make_app(transport)

    transport.responses.extend([ok(), ok(b"\x30\x01")])
    result = server.sign_transaction("7b7d", encoding="hex")
    assert result["signature"] == "3001"
    assert transport.sent[1][5:] == b"{}"

    assert "error" in server.sign_transaction("{}", mode=4)
    assert "error" in server.sign_transaction("zz", encoding="hex")


def test_device_info_resource():
    server = _get_server_module()
    assert '"connected": false' in server.resource_device_info()
    server._session = make_app(FakeTransport())
    info = server.resource_device_info()
    assert '"app_family": "thorchain"' in info


def test_list_devices_tool():
    from ledger_thorchain.transport.usb_connection import DeviceInfo

    server = _get_server_module()
    device = DeviceInfo(product_id=0x4011, product="Nano X", path="/dev/hidraw3")
    with patch.object(server, "_list_devices", return_value=[device]):
        result = server.list_devices()
    assert result["devices"][0]["product_id"] == "0x4011"
    assert result["devices"][0]["path"] == "/dev/hidraw3"
