"""Response parsing: status words, embedded diagnostics and payload shapes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from ..errors import ProtocolError, StatusWordError
from ..models.version import VersionInfo

PUBLIC_KEY_LENGTH = 33
VERSION_MIN_LENGTH = 4


class StatusWord(IntEnum):
    """Status words reported by Ledger apps."""

    OK = 0x9000
    EXECUTION_ERROR = 0x6400
    WRONG_LENGTH = 0x6700
    EMPTY_BUFFER = 0x6982
    OUTPUT_BUFFER_TOO_SMALL = 0x6983
    DATA_INVALID = 0x6984
    CONDITIONS_NOT_SATISFIED = 0x6985
    COMMAND_NOT_ALLOWED = 0x6986
    BAD_KEY_HANDLE = 0x6A80
    INVALID_P1P2 = 0x6B00
    INS_NOT_SUPPORTED = 0x6D00
    CLA_NOT_SUPPORTED = 0x6E00
    UNKNOWN = 0x6F00
    SIGN_VERIFY_ERROR = 0x6F01


STATUS_MESSAGES: dict[int, str] = {
    StatusWord.EXECUTION_ERROR: "No information given (NV-Ram not changed)",
    StatusWord.WRONG_LENGTH: "Wrong length",
    StatusWord.EMPTY_BUFFER: "Security condition not satisfied",
    StatusWord.OUTPUT_BUFFER_TOO_SMALL: "Authentication method blocked",
    StatusWord.DATA_INVALID: "Referenced data reversibly blocked (invalidated)",
    StatusWord.CONDITIONS_NOT_SATISFIED: "Conditions of use not satisfied",
    StatusWord.COMMAND_NOT_ALLOWED: "Command not allowed (no current EF)",
    StatusWord.BAD_KEY_HANDLE: "The parameters in the data field are incorrect",
    StatusWord.INVALID_P1P2: "Wrong parameter(s) P1-P2",
    StatusWord.INS_NOT_SUPPORTED: "Instruction code not supported or invalid",
    StatusWord.CLA_NOT_SUPPORTED: "Class not supported",
    StatusWord.UNKNOWN: "Unknown",
    StatusWord.SIGN_VERIFY_ERROR: "Sign / verify error",
}

# Status words whose response payload is a diagnostic string from the app.
DIAGNOSTIC_STATUS_WORDS = frozenset({StatusWord.BAD_KEY_HANDLE, StatusWord.DATA_INVALID})

# Known JSON parser diagnostics and their readable form.
PARSER_DIAGNOSTICS: dict[str, str] = {
    "ERROR: JSMN_ERROR_NOMEM": "Not enough tokens were provided",
    "PARSER ERROR: JSMN_ERROR_INVAL": "Unexpected character in JSON string",
    "PARSER ERROR: JSMN_ERROR_PART": "The JSON string is not a complete.",
}


@dataclass
class Response:
    """A reassembled response APDU split into payload and status word."""

    payload: bytes
    status_word: int

    @property
    def ok(self) -> bool:
        return self.status_word == StatusWord.OK

    def __repr__(self) -> str:
        return (
            f"Response(sw=0x{self.status_word:04X}, "
            f"payload={self.payload.hex() if self.payload else '(empty)'})"
        )


@dataclass
class AddressResponse:
    """Parsed GET_ADDR response."""

    public_key: bytes
    address: str

    def to_dict(self) -> dict:
        return {"public_key": self.public_key.hex(), "address": self.address}


def parse_response(raw: bytes) -> Response:
    """Split raw response bytes into payload and trailing status word."""
    if len(raw) < 2:
        raise ProtocolError(f"Response too short for a status word ({len(raw)} bytes)")
    return Response(payload=bytes(raw[:-2]), status_word=int.from_bytes(raw[-2:], "big"))


def status_message(status_word: int) -> str:
    """Describe a status word, e.g. ``[APDU_CODE_WRONG_LENGTH] Wrong length``."""
    try:
        name = StatusWord(status_word).name
    except ValueError:
        return f"Unknown status 0x{status_word:04X}"
    return f"[APDU_CODE_{name}] {STATUS_MESSAGES.get(status_word, '')}".rstrip()


def decode_status_error(response: Response, ins: int | None = None) -> StatusWordError:
    """Turn a failed response into a :class:`StatusWordError`.

    For status words in :data:`DIAGNOSTIC_STATUS_WORDS` the payload holds
    a text diagnostic from the app; it replaces the generic message.
    """
    sw = response.status_word
    if sw in DIAGNOSTIC_STATUS_WORDS and response.payload:
        text = response.payload.decode("utf-8", errors="replace").rstrip("\x00")
        return StatusWordError(sw, PARSER_DIAGNOSTICS.get(text, text), ins)
    return StatusWordError(sw, status_message(sw), ins)


def check_response(response: Response, ins: int | None = None) -> bytes:
    """Return the payload of a successful response or raise."""
    if not response.ok:
        raise decode_status_error(response, ins)
    return response.payload


def parse_version(payload: bytes) -> VersionInfo:
    """Parse a GET_VERSION payload: app mode, major, minor, patch."""
    if len(payload) < VERSION_MIN_LENGTH:
        raise ProtocolError(
            f"Invalid version response: expected at least {VERSION_MIN_LENGTH} bytes, "
            f"got {len(payload)}"
        )
    return VersionInfo.from_bytes(payload)


def parse_address(payload: bytes, hrp: str) -> AddressResponse:
    """Parse a GET_ADDR payload: 33-byte compressed key then the address text."""
    minimum = PUBLIC_KEY_LENGTH + len(hrp)
    if len(payload) < minimum:
        raise ProtocolError(
            f"Invalid address response: expected at least {minimum} bytes, got {len(payload)}"
        )
    return AddressResponse(
        public_key=payload[:PUBLIC_KEY_LENGTH],
        address=payload[PUBLIC_KEY_LENGTH:].decode("ascii", errors="replace"),
    )
