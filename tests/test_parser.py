"""Tests for response splitting, status decoding and payload parsers."""

import pytest

from ledger_thorchain.errors import ProtocolError, StatusWordError
from ledger_thorchain.protocol.parser import (
    Response,
    StatusWord,
    check_response,
    decode_status_error,
    parse_address,
    parse_response,
    parse_version,
    status_message,
)


def test_parse_response_success():
    """0x9000 with payload P decodes to success with exactly P."""
    response = parse_response(b"\x01\x02\x03\x90\x00")
    assert response.ok
    assert response.payload == b"\x01\x02\x03"
    assert check_response(response) == b"\x01\x02\x03"


def test_parse_response_empty_payload():
    response = parse_response(b"\x90\x00")
    assert response.ok
    assert response.payload == b""


def test_parse_response_too_short():
    with pytest.raises(ProtocolError):
        parse_response(b"\x90")


@pytest.mark.parametrize("sw", [0x6985, 0x6E00, 0x9001, 0x1234])
def test_non_success_status_raises_with_code(sw):
    response = parse_response(b"\xaa" + sw.to_bytes(2, "big"))
    assert not response.ok
    with pytest.raises(StatusWordError) as excinfo:
        check_response(response, ins=2)
    assert excinfo.value.status_word == sw
    assert excinfo.value.ins == 2


def test_status_message_known_and_unknown():
    assert status_message(0x6E00) == "[APDU_CODE_CLA_NOT_SUPPORTED] Class not supported"
    assert status_message(0x1234) == "Unknown status 0x1234"


def test_bad_key_handle_surfaces_embedded_text():
    """The diagnostic string in the payload becomes the error message."""
    response = Response(payload=b"Unexpected field: foo", status_word=StatusWord.BAD_KEY_HANDLE)
    error = decode_status_error(response)
    assert error.message == "Unexpected field: foo"
    assert error.status_word == 0x6A80


def test_bad_key_handle_translates_parser_errors():
    response = Response(
        payload=b"PARSER ERROR: JSMN_ERROR_INVAL",
        status_word=StatusWord.BAD_KEY_HANDLE,
    )
    assert decode_status_error(response).message == "Unexpected character in JSON string"


def test_data_invalid_surfaces_embedded_text():
    response = Response(payload=b"Chain ID not supported", status_word=StatusWord.DATA_INVALID)
    assert decode_status_error(response).message == "Chain ID not supported"


def test_diagnostic_status_without_payload_uses_table():
    response = Response(payload=b"", status_word=StatusWord.BAD_KEY_HANDLE)
    assert "BAD_KEY_HANDLE" in decode_status_error(response).message


def test_other_status_ignores_payload_text():
    response = Response(payload=b"some text", status_word=StatusWord.WRONG_LENGTH)
    assert decode_status_error(response).message == "[APDU_CODE_WRONG_LENGTH] Wrong length"


def test_parse_version():
    version = parse_version(bytes([0xFF, 2, 1, 7, 0xAA]))
    assert version.app_mode == 0xFF
    assert version.debug
    assert version.semver == (2, 1, 7)
    assert str(version) == "2.1.7 (debug)"


def test_parse_version_too_short():
    with pytest.raises(ProtocolError):
        parse_version(b"\x00\x01\x05")


def test_parse_address_splits_key_and_address():
    """A 33+N byte response yields a 33-byte key and an N-byte address."""
    address = "thor1qypqxpq9qcrsszg2pvxq6rs0zqg3yyc5z5tpwp"
    payload = b"\x02" + bytes(range(32)) + address.encode()
    result = parse_address(payload, "thor")
    assert len(result.public_key) == 33
    assert result.public_key == payload[:33]
    assert result.address == address
    assert len(result.address) == len(payload) - 33


def test_parse_address_too_short():
    with pytest.raises(ProtocolError):
        parse_address(bytes(33 + 3), "thor")


def test_response_repr():
    assert "0x9000" in repr(Response(payload=b"", status_word=0x9000))
