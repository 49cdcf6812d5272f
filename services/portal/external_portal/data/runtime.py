"""External Portal-owned Postgres runtime wiring."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from packages.shipgate_shared.config import ShipgateSettings
from resources.substrates.postgres import (
    TenantSessionProvider,
    create_postgres_engine,
    create_session_factory,
    ping,
    resolve_postgres_settings,
)
from services.portal.external_portal.component import SERVICE_SCHEMA_NAME


@dataclass(frozen=True)
class ExternalPortalPostgresRuntime:
    """Engine, session factory, and tenant session provider for the portal schema."""

    engine: Engine
    session_factory: sessionmaker[Session]
    tenant_sessions: TenantSessionProvider
    health_timeout_seconds: float = 1.0

    @classmethod
    def from_settings(cls, settings: ShipgateSettings) -> "ExternalPortalPostgresRuntime":
        engine = create_postgres_engine(resolve_postgres_settings(settings))
        session_factory = create_session_factory(engine)
        return cls(
            engine=engine,
            session_factory=session_factory,
            tenant_sessions=TenantSessionProvider(
                session_factory=session_factory,
                schema=external_portal_postgres_schema(),
            ),
        )

    def is_healthy(self) -> bool:
        return ping(self.engine, timeout_seconds=self.health_timeout_seconds)


def external_portal_postgres_schema() -> str:
    return SERVICE_SCHEMA_NAME
