"""Tests for public API instrumentation concerns and the decorator."""

from __future__ import annotations

import ast
import logging
from pathlib import Path

import pytest

from packages.shipgate_shared.envelope import (
    EnvelopeKind,
    failure,
    new_meta,
    success,
)
from packages.shipgate_shared.errors import codes, policy_error
from packages.shipgate_shared.logging import (
    CompletionContext,
    InvocationContext,
    get_context,
    public_api_instrumented,
)

_SERVICE_ROOT = (
    Path(__file__).resolve().parents[2] / "services" / "portal" / "external_portal"
)


class _RecordingConcern:
    """Concern double collecting every event it receives."""

    def __init__(self) -> None:
        self.invocations: list[InvocationContext] = []
        self.completions: list[CompletionContext] = []

    def on_invocation(self, context: InvocationContext) -> None:
        self.invocations.append(context)

    def on_completion(self, context: CompletionContext) -> None:
        self.completions.append(context)


class _ExplodingConcern:
    """Concern double that fails on every event."""

    def on_invocation(self, context: InvocationContext) -> None:
        raise RuntimeError("concern down")

    def on_completion(self, context: CompletionContext) -> None:
        raise RuntimeError("concern down")


class _CapturingHandler(logging.Handler):
    """Handler keeping records with the context active at emit time."""

    def __init__(self) -> None:
        super().__init__()
        self.records: list[tuple[logging.LogRecord, dict[str, str]]] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append((record, get_context()))


def _meta():
    return new_meta(kind=EnvelopeKind.COMMAND, source="test", principal="staff-7")


@pytest.fixture
def logger() -> tuple[logging.Logger, _CapturingHandler]:
    log = logging.getLogger("shipgate.test.public_api")
    log.setLevel(logging.INFO)
    handler = _CapturingHandler()
    log.addHandler(handler)
    yield log, handler
    log.removeHandler(handler)


def test_success_emits_invocation_and_completion(logger) -> None:
    """A successful call reports references, principal, and success."""
    log, handler = logger
    concern = _RecordingConcern()

    @public_api_instrumented(
        component_id="service_external_portal",
        id_fields=("credential_id",),
        concerns=(concern,),
        logger=log,
    )
    def revoke_grant(*, meta, credential_id: str):
        return success(meta=meta, payload=credential_id)

    meta = _meta()
    revoke_grant(meta=meta, credential_id="01ABC")

    assert concern.invocations[0].api_name == "revoke_grant"
    assert concern.invocations[0].principal == "staff-7"
    assert concern.invocations[0].trace_id == meta.trace_id
    assert concern.invocations[0].references == {"credential_id": "01ABC"}
    assert concern.completions[0].success is True

    messages = [record.getMessage() for record, _ in handler.records]
    assert messages == ["Public API invocation", "Public API completion"]
    assert handler.records[1][1]["credential_id"] == "01ABC"
    assert handler.records[1][1]["event"] == "public_api_completion"


def test_failure_envelope_reports_errors_and_categories(logger) -> None:
    """Failed envelopes complete unsuccessfully with error summaries."""
    log, handler = logger
    concern = _RecordingConcern()

    @public_api_instrumented(
        component_id="service_external_portal", concerns=(concern,), logger=log
    )
    def update_fields(*, meta):
        return failure(
            meta=meta,
            errors=[policy_error("not permitted", code=codes.PERMISSION_DENIED)],
        )

    update_fields(meta=_meta())

    completion = concern.completions[0]
    assert completion.success is False
    assert completion.errors == ["PERMISSION_DENIED: not permitted"]
    assert completion.error_categories == ["policy"]
    assert handler.records[-1][0].levelno == logging.WARNING


def test_raised_exception_is_reported_and_propagated() -> None:
    """Exceptions complete as internal failures and still raise."""
    concern = _RecordingConcern()

    @public_api_instrumented(component_id="service_external_portal", concerns=(concern,))
    def health(*, meta):
        raise KeyError("boom")

    with pytest.raises(KeyError):
        health(meta=_meta())

    assert concern.completions[0].success is False
    assert concern.completions[0].error_categories == ["internal"]


def test_failing_concern_never_breaks_the_call(logger) -> None:
    """Concern errors are logged and the wrapped result is returned."""
    log, handler = logger

    @public_api_instrumented(
        component_id="service_external_portal",
        concerns=(_ExplodingConcern(),),
        logger=log,
    )
    def list_grants(*, meta):
        return success(meta=meta, payload=())

    result = list_grants(meta=_meta())

    assert result.ok is True
    failures = [
        context
        for record, context in handler.records
        if record.getMessage() == "Public API instrumentation concern failed"
    ]
    assert [context["stage"] for context in failures] == ["invocation", "completion"]
    assert failures[0]["concern"] == "_ExplodingConcern"


def test_every_service_contract_method_is_instrumented() -> None:
    """Each abstract service method is decorated in the implementation."""
    contract = _public_methods(_SERVICE_ROOT / "service.py", decorated_only=False)
    decorated = _public_methods(_SERVICE_ROOT / "implementation.py", decorated_only=True)

    missing = sorted(contract - decorated)
    assert contract
    assert not missing, f"Missing @public_api_instrumented on: {missing}"


def _public_methods(file_path: Path, *, decorated_only: bool) -> set[str]:
    """Return public method names declared on classes in one module."""
    module = ast.parse(file_path.read_text(encoding="utf-8"))
    names: set[str] = set()
    for node in module.body:
        if not isinstance(node, ast.ClassDef):
            continue
        for child in node.body:
            if not isinstance(child, ast.FunctionDef) or child.name.startswith("_"):
                continue
            if decorated_only and not _has_public_api_instrumented(child):
                continue
            names.add(child.name)
    return names


def _has_public_api_instrumented(node: ast.FunctionDef) -> bool:
    """Return whether decorators include ``@public_api_instrumented(...)``."""
    for decorator in node.decorator_list:
        target = decorator.func if isinstance(decorator, ast.Call) else decorator
        if isinstance(target, ast.Name) and target.id == "public_api_instrumented":
            return True
    return False
