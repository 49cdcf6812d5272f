"""Process entrypoint for the Shipgate HTTP server."""

from __future__ import annotations

from packages.shipgate_core.app import build_app
from packages.shipgate_core.migrations import run_startup_migrations
from packages.shipgate_shared.config import load_settings
from packages.shipgate_shared.http import run_app
from packages.shipgate_shared.logging import configure_logging, get_logger
from services.portal.external_portal.config import resolve_external_portal_settings

_LOGGER = get_logger(__name__)


def main() -> None:
    """Load settings, apply migrations when enabled, and serve HTTP."""
    settings = load_settings()
    configure_logging(
        level=settings.logging.level,
        json_output=settings.logging.json_output,
        service=settings.logging.service,
        environment=settings.logging.environment,
    )

    portal_settings = resolve_external_portal_settings(settings)
    migration_result = None
    if (
        portal_settings.persistence == "postgres"
        and settings.core.run_migrations_on_startup
    ):
        migration_result = run_startup_migrations(settings=settings)

    app = build_app(settings=settings)
    _LOGGER.info(
        "shipgate startup completed",
        extra={
            "persistence": portal_settings.persistence,
            "migrations_executed": migration_result is not None,
            "host": settings.http.host,
            "port": settings.http.port,
        },
    )
    run_app(
        app,
        host=settings.http.host,
        port=settings.http.port,
        log_level=settings.http.log_level,
    )


if __name__ == "__main__":
    main()
