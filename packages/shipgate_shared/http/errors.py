"""Typed errors for inbound HTTP helpers."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class HttpError(Exception):
    """Base error type for shared HTTP helper failures."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class HttpServerError(HttpError):
    """Base error for inbound request parsing failures."""


@dataclass(frozen=True)
class MissingHeaderError(HttpServerError):
    """Required inbound header is missing or blank."""

    header_name: str

