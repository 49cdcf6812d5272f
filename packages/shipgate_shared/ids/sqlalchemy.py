"""SQLAlchemy column helpers for ULID-backed keys."""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Column
from sqlalchemy.dialects.postgresql import BYTEA


ULID_BYTES_LENGTH = 16


def ulid_primary_key_column(name: str = "id") -> Column[bytes]:
    """Return a BYTEA primary-key column constrained to 16 bytes."""
    return Column(
        name,
        BYTEA,
        _length_check(name),
        primary_key=True,
        nullable=False,
    )


def ulid_column(name: str, *, nullable: bool = False, index: bool = False) -> Column[bytes]:
    """Return a non-key BYTEA column holding one ULID reference."""
    return Column(
        name,
        BYTEA,
        _length_check(name),
        nullable=nullable,
        index=index,
    )


def _length_check(column_name: str) -> CheckConstraint:
    return CheckConstraint(
        f"{column_name} IS NULL OR octet_length({column_name}) = {ULID_BYTES_LENGTH}",
        name=f"ck_{column_name}_ulid_16",
    )
