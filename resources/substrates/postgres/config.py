"""Postgres settings resolution for the shared substrate."""

from __future__ import annotations

from packages.shipgate_shared.config import PostgresSettings, ShipgateSettings


def resolve_postgres_settings(settings: ShipgateSettings) -> PostgresSettings:
    """Return the validated ``postgres`` subtree of root settings."""
    return PostgresSettings.model_validate(settings.postgres.model_dump(mode="python"))
