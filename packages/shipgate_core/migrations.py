"""Core-managed startup migration orchestration."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from alembic import command
from alembic.config import Config

import services.portal.external_portal as external_portal
from packages.shipgate_shared.config import ShipgateSettings
from packages.shipgate_shared.logging import get_logger
from resources.substrates.postgres import (
    create_postgres_engine,
    provision_schemas,
    resolve_postgres_settings,
)
from services.portal.external_portal.component import SERVICE_SCHEMA_NAME

_LOGGER = get_logger(__name__)


class MigrationExecutionError(RuntimeError):
    """Raised when startup migration execution fails."""


@dataclass(frozen=True, slots=True)
class MigrationRunResult:
    """Summary of one startup migration pass."""

    provisioned_schemas: tuple[str, ...]
    executed_script_locations: tuple[str, ...]


def service_migration_locations() -> tuple[Path, ...]:
    """Return Alembic script directories for every service, in upgrade order."""
    return (Path(external_portal.__file__).resolve().parent / "migrations",)


def build_alembic_config(*, script_location: Path, sqlalchemy_url: str) -> Config:
    """Build an in-memory Alembic config for one script directory."""
    config = Config()
    config.set_main_option("script_location", str(script_location))
    # configparser interpolation treats % as a directive.
    config.set_main_option("sqlalchemy.url", sqlalchemy_url.replace("%", "%%"))
    return config


def run_startup_migrations(
    *,
    settings: ShipgateSettings,
    upgrade_fn: Callable[[Config, str], None] = command.upgrade,
) -> MigrationRunResult:
    """Provision service schemas and upgrade each service to head."""
    postgres_settings = resolve_postgres_settings(settings)
    engine = create_postgres_engine(postgres_settings)
    try:
        provisioned = provision_schemas(engine, (SERVICE_SCHEMA_NAME,))
    finally:
        engine.dispose()

    executed: list[str] = []
    for location in service_migration_locations():
        config = build_alembic_config(
            script_location=location, sqlalchemy_url=postgres_settings.url
        )
        try:
            upgrade_fn(config, "head")
        except Exception as exc:
            raise MigrationExecutionError(
                f"startup migration failed for '{location}'"
            ) from exc
        executed.append(str(location))
        _LOGGER.info("service migrations applied", extra={"script_location": str(location)})

    return MigrationRunResult(
        provisioned_schemas=provisioned,
        executed_script_locations=tuple(executed),
    )
