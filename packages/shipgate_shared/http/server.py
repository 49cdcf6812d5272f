"""FastAPI and uvicorn helpers shared by Shipgate HTTP surfaces."""

from __future__ import annotations

from typing import Iterable

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from packages.shipgate_shared.errors import ErrorCategory, ErrorDetail

from .errors import MissingHeaderError

_STATUS_BY_CATEGORY: dict[ErrorCategory, int] = {
    ErrorCategory.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorCategory.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorCategory.POLICY: status.HTTP_403_FORBIDDEN,
    ErrorCategory.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCategory.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCategory.DEPENDENCY: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def create_app(*, title: str = "shipgate", version: str = "0.0.0") -> FastAPI:
    """Create a FastAPI app with project defaults."""
    return FastAPI(title=title, version=version)


def run_app(
    app: FastAPI,
    *,
    host: str = "127.0.0.1",
    port: int = 8080,
    log_level: str = "info",
) -> None:
    """Serve one FastAPI app through uvicorn."""
    uvicorn.run(app, host=host, port=port, log_level=log_level)


def get_header(
    request: Request,
    name: str,
    *,
    required: bool = True,
) -> str | None:
    """Fetch one stripped header value, optionally enforcing presence."""
    value = request.headers.get(name)
    value = value.strip() if value is not None else None
    if not value:
        if required:
            raise MissingHeaderError(
                message=f"Missing required header: {name}",
                header_name=name,
            )
        return None
    return value


def bearer_token(request: Request, *, query_param: str = "token") -> str | None:
    """Return the presented bearer token.

    ``Authorization: Bearer <token>`` wins over the ``query_param`` query
    parameter. Any other authorization scheme is ignored. Returns ``None``
    when neither carries a value.
    """
    header = get_header(request, "authorization", required=False)
    if header is not None:
        scheme, _, credentials = header.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
    query_value = request.query_params.get(query_param, "").strip()
    return query_value or None


def client_address(request: Request, *, trust_forwarded: bool = True) -> str:
    """Resolve the originating client address for audit records.

    Uses the first ``X-Forwarded-For`` entry, then ``X-Real-IP``, then the
    socket peer.
    """
    if trust_forwarded:
        forwarded = request.headers.get("x-forwarded-for", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
        real_ip = request.headers.get("x-real-ip", "").strip()
        if real_ip:
            return real_ip
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"


def status_for_category(category: ErrorCategory) -> int:
    """Map a shared error category onto an HTTP status code."""
    return _STATUS_BY_CATEGORY.get(category, status.HTTP_500_INTERNAL_SERVER_ERROR)


def error_response(errors: Iterable[ErrorDetail]) -> JSONResponse:
    """Render errors as JSON using the status of the first error."""
    normalized = list(errors)
    status_code = (
        status_for_category(normalized[0].category)
        if normalized
        else status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    return JSONResponse(
        status_code=status_code,
        content={
            "errors": [
                {
                    "code": error.code,
                    "message": error.message,
                    "category": error.category.value,
                    "retryable": error.retryable,
                    "metadata": dict(error.metadata),
                }
                for error in normalized
            ]
        },
    )
