"""Pre-migration bootstrap that creates service-owned schemas."""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import Engine, text


def provision_schemas(engine: Engine, schemas: Iterable[str]) -> tuple[str, ...]:
    """Create each schema when missing and return the names provisioned."""
    provisioned: list[str] = []
    with engine.begin() as connection:
        for schema in schemas:
            if not schema.replace("_", "").isalnum():
                raise ValueError(f"invalid schema name: {schema!r}")
            connection.execute(text(f"CREATE SCHEMA IF NOT EXISTS {schema}"))
            provisioned.append(schema)
    return tuple(provisioned)
