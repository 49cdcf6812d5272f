"""Public API for Shipgate process assembly and startup migrations."""

from packages.shipgate_core.app import build_app
from packages.shipgate_core.migrations import (
    MigrationExecutionError,
    MigrationRunResult,
    build_alembic_config,
    run_startup_migrations,
    service_migration_locations,
)

__all__ = [
    "MigrationExecutionError",
    "MigrationRunResult",
    "build_alembic_config",
    "build_app",
    "run_startup_migrations",
    "service_migration_locations",
]
