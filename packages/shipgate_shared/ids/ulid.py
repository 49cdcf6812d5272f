"""ULID conversion and generation helpers.

Identifiers travel through the domain and over HTTP as 26-character Crockford
Base32 strings and are stored in PostgreSQL as 16 big-endian bytes.
"""

from __future__ import annotations

import secrets
import time

_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_DECODE = {char: index for index, char in enumerate(_ALPHABET)}
_MAX_VALUE = (1 << 128) - 1
_STRING_LENGTH = 26


def ulid_str_to_bytes(value: str) -> bytes:
    """Decode a canonical ULID string into 16 bytes."""
    candidate = value.strip().upper()
    if len(candidate) != _STRING_LENGTH:
        raise ValueError("ULID string must be exactly 26 characters")

    number = 0
    for char in candidate:
        digit = _DECODE.get(char)
        if digit is None:
            raise ValueError(f"Invalid ULID character: {char!r}")
        number = (number << 5) | digit

    # 26 chars carry 130 bits; the top two must be zero.
    if number > _MAX_VALUE:
        raise ValueError("ULID value exceeds 128-bit range")
    return number.to_bytes(16, byteorder="big", signed=False)


def ulid_bytes_to_str(value: bytes) -> str:
    """Encode 16 ULID bytes into the canonical string form."""
    if len(value) != 16:
        raise ValueError("ULID bytes must be exactly 16 bytes")

    number = int.from_bytes(value, byteorder="big", signed=False)
    chars: list[str] = []
    for _ in range(_STRING_LENGTH):
        number, remainder = divmod(number, 32)
        chars.append(_ALPHABET[remainder])
    return "".join(reversed(chars))


def generate_ulid_bytes(*, timestamp_ms: int | None = None) -> bytes:
    """Generate a ULID: 48 bits of epoch milliseconds then 80 random bits."""
    ts_ms = int(time.time() * 1000) if timestamp_ms is None else int(timestamp_ms)
    if ts_ms < 0 or ts_ms >= (1 << 48):
        raise ValueError("timestamp_ms out of ULID 48-bit range")

    entropy = int.from_bytes(secrets.token_bytes(10), byteorder="big", signed=False)
    return ((ts_ms << 80) | entropy).to_bytes(16, byteorder="big", signed=False)


def generate_ulid_str(*, timestamp_ms: int | None = None) -> str:
    """Generate a ULID in canonical string form."""
    return ulid_bytes_to_str(generate_ulid_bytes(timestamp_ms=timestamp_ms))


def is_ulid_str(value: object) -> bool:
    """Return whether ``value`` decodes as a canonical ULID string."""
    if not isinstance(value, str):
        return False
    try:
        ulid_str_to_bytes(value)
    except ValueError:
        return False
    return True
