"""Protocol layer: packet framing, path encoding, APDU builders, chunking and parsing."""

from .framing import unwrap_response_apdu, wrap_command_apdu
from .path import encode_path, parse_path
from .chunking import ChunkedExchange, ChunkPlan, ChunkPolicy, SignMode
from .parser import Response, StatusWord, parse_response
