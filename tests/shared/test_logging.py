"""Tests for structured log formatting and context propagation."""

from __future__ import annotations

import json
import logging

import pytest

from packages.shipgate_shared.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_context,
    log_context,
)
from packages.shipgate_shared.logging.config import (
    ContextFilter,
    JsonFormatter,
    PlainFormatter,
    record_extras,
)


@pytest.fixture(autouse=True)
def _reset_context() -> None:
    clear_context()
    yield
    clear_context()


def _record(message: str = "hello", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="shipgate.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=None,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    ContextFilter().filter(record)
    return record


def test_bind_context_skips_none_and_stringifies() -> None:
    """Bound values are strings and ``None`` is ignored."""
    bind_context(tenant_id="tenant-acme", use_count=3, credential_id=None)

    assert get_context() == {"tenant_id": "tenant-acme", "use_count": "3"}


def test_clear_context_removes_selected_keys() -> None:
    """Named keys are cleared and the rest survive."""
    bind_context(tenant_id="tenant-acme", user_id="staff-7")

    clear_context("user_id")

    assert get_context() == {"tenant_id": "tenant-acme"}


def test_log_context_restores_previous_values() -> None:
    """Scoped context disappears when the block exits."""
    bind_context(tenant_id="tenant-acme")

    with log_context({"credential_id": "01ABC"}):
        assert get_context()["credential_id"] == "01ABC"

    assert get_context() == {"tenant_id": "tenant-acme"}


def test_json_formatter_merges_context_and_extras() -> None:
    """Core fields, bound context, and ``extra=`` fields share one object."""
    bind_context(tenant_id="tenant-acme")

    payload = json.loads(JsonFormatter().format(_record(shipment_id="shp-1001")))

    assert payload["message"] == "hello"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "shipgate.test"
    assert payload["tenant_id"] == "tenant-acme"
    assert payload["shipment_id"] == "shp-1001"
    assert "timestamp" in payload


def test_record_extras_excludes_standard_attributes() -> None:
    """Only caller-supplied fields count as extras."""
    assert record_extras(_record(reason="expired")) == {"reason": "expired"}


def test_plain_formatter_appends_sorted_structured_fields() -> None:
    """Plain output ends with ``key=value`` pairs in key order."""
    bind_context(tenant_id="tenant-acme")

    line = PlainFormatter().format(_record(credential_id="01ABC"))

    assert line.endswith("hello credential_id=01ABC tenant_id=tenant-acme")


def test_configure_logging_installs_single_stdout_handler(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Reconfiguring replaces the handler and binds service identity."""
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", list(root.handlers))
    monkeypatch.setattr(root, "level", root.level)

    configure_logging(level="DEBUG", service="shipgate", environment="test")
    configure_logging(level="WARNING", json_output=False, service="shipgate")

    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, PlainFormatter)
    assert root.level == logging.WARNING
    assert get_context()["service"] == "shipgate"
