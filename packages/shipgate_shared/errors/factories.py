"""Factory helpers for creating consistent shared errors."""

from __future__ import annotations

from typing import Mapping

from . import codes
from .types import ErrorCategory, ErrorDetail


def validation_error(
    message: str,
    *,
    code: str = codes.VALIDATION_ERROR,
    metadata: Mapping[str, str] | None = None,
) -> ErrorDetail:
    """Create a validation-category error."""
    return _build(message, code=code, category=ErrorCategory.VALIDATION, metadata=metadata)


def unauthenticated_error(
    message: str,
    *,
    code: str = codes.UNAUTHORIZED,
    metadata: Mapping[str, str] | None = None,
) -> ErrorDetail:
    """Create an error for a missing or unresolvable caller credential."""
    return _build(
        message, code=code, category=ErrorCategory.UNAUTHENTICATED, metadata=metadata
    )


def not_found_error(
    message: str,
    *,
    code: str = codes.NOT_FOUND,
    metadata: Mapping[str, str] | None = None,
) -> ErrorDetail:
    """Create a not-found-category error."""
    return _build(message, code=code, category=ErrorCategory.NOT_FOUND, metadata=metadata)


def conflict_error(
    message: str,
    *,
    code: str = codes.CONFLICT,
    metadata: Mapping[str, str] | None = None,
) -> ErrorDetail:
    """Create a conflict-category error."""
    return _build(message, code=code, category=ErrorCategory.CONFLICT, metadata=metadata)


def policy_error(
    message: str,
    *,
    code: str = codes.POLICY_VIOLATION,
    metadata: Mapping[str, str] | None = None,
) -> ErrorDetail:
    """Create a policy-category error."""
    return _build(message, code=code, category=ErrorCategory.POLICY, metadata=metadata)


def dependency_error(
    message: str,
    *,
    code: str = codes.DEPENDENCY_FAILURE,
    retryable: bool = True,
    metadata: Mapping[str, str] | None = None,
) -> ErrorDetail:
    """Create a dependency-category error."""
    return _build(
        message,
        code=code,
        category=ErrorCategory.DEPENDENCY,
        metadata=metadata,
        retryable=retryable,
    )


def internal_error(
    message: str,
    *,
    code: str = codes.INTERNAL_ERROR,
    metadata: Mapping[str, str] | None = None,
) -> ErrorDetail:
    """Create an internal-category error."""
    return _build(message, code=code, category=ErrorCategory.INTERNAL, metadata=metadata)


def _build(
    message: str,
    *,
    code: str,
    category: ErrorCategory,
    metadata: Mapping[str, str] | None,
    retryable: bool = False,
) -> ErrorDetail:
    return ErrorDetail(
        code=code,
        message=message,
        category=category,
        retryable=retryable,
        metadata={} if metadata is None else dict(metadata),
    )
