"""Game Status Protocol (GSP) codec.

Encoding and decoding for the status-only handshake used by game servers
that speak the well-known "server list ping" protocol:

- varint: 7 data bits per byte, least significant group first, high bit
  set on every byte except the last. At most 5 bytes (32 bits).
- string: varint byte length followed by UTF-8 bytes.
- frame: varint payload length followed by the payload. Every payload
  starts with a varint packet id.

The functions here are pure; socket handling lives in ``checkers``.
"""

import json
import math
from dataclasses import dataclass
from typing import Any

from .models import Players

# Protocol version advertised in the handshake. Servers answer status
# queries regardless of the exact value.
DEFAULT_PROTOCOL_VERSION = 758

HANDSHAKE_PACKET_ID = 0x00
STATUS_REQUEST_PACKET_ID = 0x00
STATUS_RESPONSE_PACKET_ID = 0x00

# Value of the handshake "next state" field selecting the status query.
NEXT_STATE_STATUS = 0x01

MAX_VARINT_BYTES = 5

# Largest packet a server may send; longer declared lengths are rejected
# before their payload is buffered.
MAX_PACKET_LENGTH = 2**21


class ProtocolError(Exception):
    """Raised when GSP bytes are malformed or truncated."""

    pass


class IncompleteError(ProtocolError):
    """Raised when the bytes end before a value is complete."""

    pass


@dataclass(frozen=True)
class StatusResponse:
    """Parsed status response.

    Attributes:
        document: The decoded JSON status document.
        players: Occupancy, if the document reports numeric online/max counts.
        version: Version label, if the document reports a textual one.
    """

    document: Any
    players: Players | None = None
    version: str | None = None


def encode_varint(value: int) -> bytes:
    """Encode an integer as a varint.

    The value is taken modulo 2**32, so negative ints encode as their
    32-bit two's complement (always 5 bytes).
    """
    remaining = value & 0xFFFFFFFF
    out = bytearray()
    while True:
        if remaining & ~0x7F == 0:
            out.append(remaining)
            return bytes(out)
        out.append((remaining & 0x7F) | 0x80)
        remaining >>= 7


def decode_varint(buf: bytes, offset: int = 0) -> tuple[int, int]:
    """Decode a varint starting at ``offset``.

    Returns:
        Tuple of (value, number of bytes consumed). The value is an
        unsigned 32-bit integer.

    Raises:
        ProtocolError: If the buffer ends mid-varint or the varint is longer than 5 bytes.
    """
    result = 0
    size = 0
    while True:
        if offset + size >= len(buf):
            raise IncompleteError("Truncated varint")
        byte = buf[offset + size]
        result |= (byte & 0x7F) << (7 * size)
        size += 1
        if not byte & 0x80:
            break
        if size >= MAX_VARINT_BYTES:
            raise ProtocolError("Varint is too long")

    return result & 0xFFFFFFFF, size


def encode_string(text: str) -> bytes:
    """Encode a length-prefixed UTF-8 string."""
    data = text.encode("utf-8")
    return encode_varint(len(data)) + data


def decode_string(buf: bytes, offset: int = 0) -> tuple[str, int]:
    """Decode a length-prefixed UTF-8 string.

    Returns:
        Tuple of (text, number of bytes consumed including the prefix).
    """
    length, size = decode_varint(buf, offset)
    start = offset + size
    end = start + length
    if end > len(buf):
        raise ProtocolError(f"String length {length} exceeds available bytes ({len(buf) - start})")
    try:
        text = buf[start:end].decode("utf-8")
    except UnicodeDecodeError as e:
        raise ProtocolError(f"String is not valid UTF-8: {e}") from e
    return text, size + length


def frame(payload: bytes) -> bytes:
    """Prefix a payload with its varint length."""
    return encode_varint(len(payload)) + payload


def build_handshake(host: str, port: int, protocol_version: int = DEFAULT_PROTOCOL_VERSION) -> bytes:
    """Build the framed handshake packet selecting the status state."""
    payload = (
        encode_varint(HANDSHAKE_PACKET_ID)
        + encode_varint(protocol_version)
        + encode_string(host)
        + port.to_bytes(2, "big")
        + encode_varint(NEXT_STATE_STATUS)
    )
    return frame(payload)


def build_status_request() -> bytes:
    """Build the framed status-request packet (packet id only)."""
    return frame(encode_varint(STATUS_REQUEST_PACKET_ID))


def frame_complete(buf: bytes) -> bool:
    """Whether ``buf`` holds at least one whole frame.

    Raises:
        ProtocolError: If the length prefix is malformed or exceeds ``MAX_PACKET_LENGTH``.
    """
    try:
        length, size = decode_varint(buf)
    except IncompleteError:
        return False
    if length > MAX_PACKET_LENGTH:
        raise ProtocolError(f"Packet length {length} exceeds limit of {MAX_PACKET_LENGTH}")
    return len(buf) >= size + length


def _is_count(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return value >= 0
    if isinstance(value, float):
        return math.isfinite(value) and value >= 0
    return False


def extract_players(document: Any) -> Players | None:
    """Return occupancy when both ``players.online`` and ``players.max`` are numeric."""
    if not isinstance(document, dict):
        return None
    players = document.get("players")
    if not isinstance(players, dict):
        return None
    online = players.get("online")
    maximum = players.get("max")
    if not (_is_count(online) and _is_count(maximum)):
        return None
    return Players(online=int(online), max=int(maximum))


def extract_version(document: Any) -> str | None:
    """Return ``version.name`` when it is a string."""
    if not isinstance(document, dict):
        return None
    version = document.get("version")
    if not isinstance(version, dict):
        return None
    name = version.get("name")
    return name if isinstance(name, str) else None


def parse_status_response(buf: bytes) -> StatusResponse:
    """Parse exactly one status-response frame.

    Args:
        buf: Bytes accumulated from the server.

    Returns:
        StatusResponse with whatever occupancy/version the document carries.

    Raises:
        ProtocolError: On truncation, bad varints, an unexpected packet id,
            or a status document that is not valid JSON.
    """
    if not buf:
        raise ProtocolError("Empty response")

    length, offset = decode_varint(buf)
    if length == 0:
        raise ProtocolError("Empty packet")
    if length > MAX_PACKET_LENGTH:
        raise ProtocolError(f"Packet length {length} exceeds limit of {MAX_PACKET_LENGTH}")
    if offset + length > len(buf):
        raise ProtocolError(f"Packet length {length} exceeds available bytes ({len(buf) - offset})")
    packet = buf[offset : offset + length]

    packet_id, size = decode_varint(packet)
    if packet_id != STATUS_RESPONSE_PACKET_ID:
        raise ProtocolError(f"Unexpected packet id: {packet_id:#04x}")

    text, _ = decode_string(packet, size)
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"Status document is not valid JSON: {e}") from e

    return StatusResponse(
        document=document,
        players=extract_players(document),
        version=extract_version(document),
    )
