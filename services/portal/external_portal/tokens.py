"""Minting, hashing, and parsing of external bearer credentials.

Issued tokens look like ``<prefix><lookup_key>.<secret>``. The lookup key is
a public, random identifier used only to find the candidate row; the secret
is compared against a bcrypt digest.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass

import bcrypt

_BCRYPT_MAX_INPUT_BYTES = 72
_SEPARATOR = "."


@dataclass(frozen=True)
class MintedToken:
    token: str
    lookup_key: str
    secret: str


@dataclass(frozen=True)
class ParsedBearer:
    lookup_key: str | None
    secret: str


def mint_token(*, prefix: str, lookup_key_bytes: int, secret_bytes: int) -> MintedToken:
    """Generate a fresh lookup key and secret and assemble the bearer value."""
    lookup_key = secrets.token_hex(lookup_key_bytes)
    secret = secrets.token_hex(secret_bytes)
    return MintedToken(
        token=f"{prefix}{lookup_key}{_SEPARATOR}{secret}",
        lookup_key=lookup_key,
        secret=secret,
    )


def parse_bearer(raw: str, *, prefix: str) -> ParsedBearer:
    """Split a presented bearer value into lookup key and secret.

    The prefix is removed when present but not required. Values without a
    separator carry no lookup key and are treated entirely as the secret.
    """
    value = raw.strip()
    if value.startswith(prefix):
        value = value[len(prefix) :]
    lookup_key, separator, secret = value.partition(_SEPARATOR)
    if not separator or not lookup_key or not secret:
        return ParsedBearer(lookup_key=None, secret=value)
    return ParsedBearer(lookup_key=lookup_key, secret=secret)


def hash_secret(secret: str, *, rounds: int) -> str:
    return bcrypt.hashpw(secret.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode(
        "ascii"
    )


def verify_secret(secret: str, secret_hash: str) -> bool:
    """Constant-time bcrypt comparison; oversized input never matches."""
    encoded = secret.encode("utf-8")
    if not encoded or len(encoded) > _BCRYPT_MAX_INPUT_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, secret_hash.encode("ascii"))
    except ValueError:
        return False
