"""Tests for transactional and tenant-bound Postgres sessions."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError

from packages.shipgate_shared.errors import ErrorCategory, codes
from resources.substrates.postgres import (
    TenantSessionProvider,
    normalize_postgres_error,
    transactional_session,
)
from resources.substrates.postgres.tenant_session import TENANT_SETTING_NAME


class _FakeSession:
    """Session double recording statements and transaction outcome."""

    def __init__(self) -> None:
        self.statements: list[tuple[str, dict[str, object] | None]] = []
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def execute(self, statement, params=None) -> None:
        self.statements.append((str(statement), params))

    def commit(self) -> None:
        self.committed = True

    def rollback(self) -> None:
        self.rolled_back = True

    def close(self) -> None:
        self.closed = True


class _FakeSessionFactory:
    """Callable factory handing out one recorded session per call."""

    def __init__(self) -> None:
        self.sessions: list[_FakeSession] = []

    def __call__(self) -> _FakeSession:
        session = _FakeSession()
        self.sessions.append(session)
        return session


def test_transactional_session_commits_on_success() -> None:
    """A clean block commits then closes."""
    factory = _FakeSessionFactory()

    with transactional_session(factory):
        pass

    session = factory.sessions[0]
    assert session.committed is True
    assert session.rolled_back is False
    assert session.closed is True


def test_transactional_session_rolls_back_and_reraises() -> None:
    """A failing block rolls back and propagates the error."""
    factory = _FakeSessionFactory()

    with pytest.raises(RuntimeError, match="boom"):
        with transactional_session(factory):
            raise RuntimeError("boom")

    session = factory.sessions[0]
    assert session.committed is False
    assert session.rolled_back is True
    assert session.closed is True


def test_tenant_session_sets_search_path_and_tenant_setting() -> None:
    """Tenant sessions pin the schema and publish the tenant id locally."""
    factory = _FakeSessionFactory()
    provider = TenantSessionProvider(session_factory=factory, schema="external_portal")

    with provider.session(tenant_id="tenant-acme"):
        pass

    statements = factory.sessions[0].statements
    assert statements[0] == ("SET LOCAL search_path TO external_portal, public", None)
    assert statements[1] == (
        "SELECT set_config(:name, :value, true)",
        {"name": TENANT_SETTING_NAME, "value": "tenant-acme"},
    )


def test_tenant_session_without_tenant_only_sets_search_path() -> None:
    """Credential lookup sessions carry no tenant setting."""
    factory = _FakeSessionFactory()
    provider = TenantSessionProvider(session_factory=factory, schema="external_portal")

    with provider.session():
        pass

    assert len(factory.sessions[0].statements) == 1


def test_tenant_session_provider_rejects_unsafe_schema() -> None:
    """Schema names are validated before any session opens."""
    with pytest.raises(ValueError):
        TenantSessionProvider(session_factory=_FakeSessionFactory(), schema="a-b;")


def test_normalize_integrity_error_as_conflict() -> None:
    """Constraint violations map onto conflict errors."""
    error = normalize_postgres_error(IntegrityError("INSERT", {}, Exception("dup")))
    assert error.category == ErrorCategory.CONFLICT
    assert error.code == codes.ALREADY_EXISTS


def test_normalize_operational_error_as_retryable_dependency() -> None:
    """Connection loss maps onto a retryable dependency error."""
    error = normalize_postgres_error(OperationalError("SELECT", {}, Exception("down")))
    assert error.category == ErrorCategory.DEPENDENCY
    assert error.code == codes.DEPENDENCY_UNAVAILABLE
    assert error.retryable is True


def test_normalize_interface_error_as_non_retryable_dependency() -> None:
    """Driver interface failures are dependency errors that do not retry."""
    error = normalize_postgres_error(InterfaceError("SELECT", {}, Exception("bad")))
    assert error.code == codes.DEPENDENCY_FAILURE
    assert error.retryable is False


def test_normalize_unknown_error_as_internal() -> None:
    """Anything unrecognized is an internal error naming the exception type."""
    error = normalize_postgres_error(KeyError("x"))
    assert error.category == ErrorCategory.INTERNAL
    assert error.metadata["exception_type"] == "KeyError"
