"""Shared Postgres substrate primitives for Shipgate services."""

from resources.substrates.postgres.bootstrap import provision_schemas
from resources.substrates.postgres.config import resolve_postgres_settings
from resources.substrates.postgres.engine import create_postgres_engine
from resources.substrates.postgres.errors import normalize_postgres_error
from resources.substrates.postgres.health import ping
from resources.substrates.postgres.session import (
    create_session_factory,
    transactional_session,
)
from resources.substrates.postgres.tenant_session import TenantSessionProvider

__all__ = [
    "TenantSessionProvider",
    "create_postgres_engine",
    "create_session_factory",
    "normalize_postgres_error",
    "ping",
    "provision_schemas",
    "resolve_postgres_settings",
    "transactional_session",
]
