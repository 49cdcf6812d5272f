"""Shared FastAPI and uvicorn helpers for Shipgate HTTP surfaces."""

from .errors import HttpError, HttpServerError, MissingHeaderError
from .server import (
    bearer_token,
    client_address,
    create_app,
    error_response,
    get_header,
    run_app,
    status_for_category,
)

__all__ = [
    "HttpError",
    "HttpServerError",
    "MissingHeaderError",
    "bearer_token",
    "client_address",
    "create_app",
    "error_response",
    "get_header",
    "run_app",
    "status_for_category",
]
