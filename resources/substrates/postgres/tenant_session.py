"""Tenant-bound transactional sessions over one service-owned schema."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.orm import Session, sessionmaker

from resources.substrates.postgres.session import transactional_session

TENANT_SETTING_NAME = "app.current_tenant_id"


class TenantSessionProvider:
    """Provide transactional sessions pinned to a schema and, optionally, a tenant.

    When a tenant id is given it is published as the transaction-local
    ``app.current_tenant_id`` setting so row-level policies can read it.
    Sessions opened without a tenant are reserved for credential lookup.
    """

    def __init__(self, *, session_factory: sessionmaker[Session], schema: str) -> None:
        if not schema or not schema.replace("_", "").isalnum():
            raise ValueError("postgres schema must be a non-empty alphanumeric/underscore name")
        self._session_factory = session_factory
        self._schema = schema

    @property
    def schema(self) -> str:
        return self._schema

    @contextmanager
    def session(self, *, tenant_id: str | None = None) -> Iterator[Session]:
        """Yield one transaction with ``search_path`` and tenant setting applied."""
        with transactional_session(self._session_factory) as db:
            db.execute(text(f"SET LOCAL search_path TO {self._schema}, public"))
            if tenant_id is not None:
                db.execute(
                    text("SELECT set_config(:name, :value, true)"),
                    {"name": TENANT_SETTING_NAME, "value": tenant_id},
                )
            yield db
