"""Typed rejections raised inside the gateway and mapped to envelopes.

Each exception carries the ``ErrorDetail`` the gateway returns; none of them
escape the public service API.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from packages.shipgate_shared.errors import (
    ErrorDetail,
    codes,
    conflict_error,
    internal_error,
    not_found_error,
    policy_error,
    unauthenticated_error,
    validation_error,
)

CREDENTIAL_INVALID = "CREDENTIAL_INVALID"
CREDENTIAL_EXPIRED = "CREDENTIAL_EXPIRED"
CREDENTIAL_REVOKED = "CREDENTIAL_REVOKED"
ILLEGAL_TRANSITION = "ILLEGAL_TRANSITION"
EMPTY_REQUEST = "EMPTY_REQUEST"
AUDIT_WRITE_FAILED = "AUDIT_WRITE_FAILED"


class PortalError(Exception):
    """Base rejection carrying a structured error detail."""

    def __init__(self, error: ErrorDetail) -> None:
        super().__init__(error.message)
        self.error = error


class Unauthorized(PortalError):
    def __init__(self, message: str = "credential required") -> None:
        super().__init__(unauthenticated_error(message, code=codes.UNAUTHORIZED))


class CredentialInvalid(PortalError):
    def __init__(self) -> None:
        super().__init__(
            unauthenticated_error("invalid credential", code=CREDENTIAL_INVALID)
        )


class CredentialExpired(PortalError):
    def __init__(self) -> None:
        super().__init__(
            policy_error(
                "credential has expired; request a new grant",
                code=CREDENTIAL_EXPIRED,
            )
        )


class CredentialRevoked(PortalError):
    def __init__(self) -> None:
        super().__init__(
            policy_error(
                "credential has been revoked; request a new grant",
                code=CREDENTIAL_REVOKED,
            )
        )


class Forbidden(PortalError):
    def __init__(
        self,
        message: str,
        *,
        permitted: Iterable[str] = (),
        denied: Iterable[str] = (),
    ) -> None:
        permitted_list = ", ".join(permitted) or "none"
        metadata: dict[str, str] = {"permitted": permitted_list}
        denied_list = ", ".join(denied)
        if denied_list:
            metadata["denied"] = denied_list
        super().__init__(
            policy_error(
                f"{message}. Permitted: {permitted_list}",
                code=codes.PERMISSION_DENIED,
                metadata=metadata,
            )
        )


class IllegalTransition(PortalError):
    def __init__(self, current: str, requested: str, successors: Iterable[str]) -> None:
        allowed = ", ".join(successors) or "none"
        super().__init__(
            conflict_error(
                f"illegal status transition: {current} -> {requested}. "
                f"Legal successors: {allowed}",
                code=ILLEGAL_TRANSITION,
                metadata={"current": current, "requested": requested, "legal": allowed},
            )
        )


class FieldValidationError(PortalError):
    def __init__(self, message: str, *, metadata: Mapping[str, str] | None = None) -> None:
        super().__init__(
            validation_error(message, code=codes.INVALID_ARGUMENT, metadata=metadata)
        )


class EmptyRequest(PortalError):
    def __init__(self) -> None:
        super().__init__(
            validation_error("no fields provided to update", code=EMPTY_REQUEST)
        )


class NotFound(PortalError):
    def __init__(self, message: str) -> None:
        super().__init__(not_found_error(message))


class AuditWriteFailed(PortalError):
    def __init__(self, exc: Exception) -> None:
        super().__init__(
            internal_error(
                "mutation not recorded; no change was applied",
                code=AUDIT_WRITE_FAILED,
                metadata={"exception_type": type(exc).__name__},
            )
        )
