"""Instrumentation decorator for public service methods.

Each decorated call emits an invocation event and a completion event to a set
of concerns. Logging, tracing, and metrics are concerns; a failing concern is
reported and never breaks the call it observes.
"""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass
from functools import lru_cache, wraps
from time import perf_counter
from typing import Any, Callable, Mapping, Protocol, Sequence

from opentelemetry import metrics as otel_metrics
from opentelemetry import trace as otel_trace
from opentelemetry.trace import Span, Status, StatusCode

from . import fields
from .context import log_context

_INSTRUMENTATION_NAME = "shipgate.public_api"
_METRIC_CALLS_TOTAL = "shipgate_public_api_calls_total"
_METRIC_DURATION_MS = "shipgate_public_api_duration_ms"
_METRIC_ERRORS_TOTAL = "shipgate_public_api_errors_total"


@dataclass(frozen=True)
class InvocationContext:
    """Metadata describing one public API invocation."""

    component_id: str
    api_name: str
    trace_id: str | None
    envelope_id: str | None
    principal: str | None
    references: Mapping[str, str]


@dataclass(frozen=True)
class CompletionContext:
    """Metadata describing one completed public API invocation."""

    invocation: InvocationContext
    success: bool
    duration_ms: float
    errors: list[str]
    error_categories: list[str]


class PublicApiInstrumentationConcern(Protocol):
    """Hook contract for one instrumentation concern."""

    def on_invocation(self, context: InvocationContext) -> None:
        """Handle the start of one call."""

    def on_completion(self, context: CompletionContext) -> None:
        """Handle the end of one call."""


class PublicApiLoggingConcern:
    """Structured log lines for invocation and completion."""

    def __init__(self, *, logger: Any) -> None:
        self._logger = logger

    def on_invocation(self, context: InvocationContext) -> None:
        with log_context(_invocation_log_context(context)):
            self._logger.info("Public API invocation")

    def on_completion(self, context: CompletionContext) -> None:
        payload = _invocation_log_context(context.invocation)
        payload.update(
            {
                fields.EVENT: fields.PUBLIC_API_COMPLETION_EVENT,
                fields.SUCCESS: context.success,
                fields.DURATION_MS: context.duration_ms,
                fields.ERRORS: context.errors,
            }
        )
        with log_context(payload):
            if context.success:
                self._logger.info("Public API completion")
            else:
                self._logger.warning("Public API completion")


@dataclass(frozen=True)
class _TraceScope:
    manager: Any
    span: Span


class PublicApiTracingConcern:
    """One OpenTelemetry span per invocation."""

    def __init__(self, *, tracer: otel_trace.Tracer) -> None:
        self._tracer = tracer
        self._active_scopes: ContextVar[tuple[_TraceScope, ...]] = ContextVar(
            "shipgate_public_api_spans", default=()
        )

    def on_invocation(self, context: InvocationContext) -> None:
        manager = self._tracer.start_as_current_span(
            f"public_api.{context.component_id}.{context.api_name}"
        )
        span = manager.__enter__()
        span.set_attribute(fields.COMPONENT_ID, context.component_id)
        span.set_attribute(fields.API_NAME, context.api_name)
        if context.trace_id is not None:
            span.set_attribute(fields.TRACE_ID, context.trace_id)
        if context.principal is not None:
            span.set_attribute(fields.PRINCIPAL, context.principal)
        for key, value in context.references.items():
            span.set_attribute(f"reference.{key}", value)
        self._active_scopes.set(
            (*self._active_scopes.get(), _TraceScope(manager=manager, span=span))
        )

    def on_completion(self, context: CompletionContext) -> None:
        current = self._active_scopes.get()
        if not current:
            return
        scope = current[-1]
        self._active_scopes.set(current[:-1])

        scope.span.set_attribute(fields.SUCCESS, context.success)
        scope.span.set_attribute(fields.DURATION_MS, context.duration_ms)
        scope.span.set_attribute("errors.count", len(context.errors))
        if not context.success:
            scope.span.set_status(Status(StatusCode.ERROR))
        scope.manager.__exit__(None, None, None)


class PublicApiMetricsConcern:
    """Call counters and latency histograms by outcome."""

    def __init__(self, *, meter: otel_metrics.Meter) -> None:
        self._calls_total = meter.create_counter(
            name=_METRIC_CALLS_TOTAL,
            description="Public API invocations by component, method, and outcome.",
            unit="1",
        )
        self._duration_ms = meter.create_histogram(
            name=_METRIC_DURATION_MS,
            description="Public API invocation latency in milliseconds.",
            unit="ms",
        )
        self._errors_total = meter.create_counter(
            name=_METRIC_ERRORS_TOTAL,
            description="Public API failures by error category.",
            unit="1",
        )

    def on_invocation(self, context: InvocationContext) -> None:
        del context

    def on_completion(self, context: CompletionContext) -> None:
        attrs = {
            fields.COMPONENT_ID: context.invocation.component_id,
            fields.API_NAME: context.invocation.api_name,
            fields.OUTCOME: "success" if context.success else "failure",
        }
        self._calls_total.add(1, attributes=attrs)
        self._duration_ms.record(context.duration_ms, attributes=attrs)
        if context.success:
            return
        for category in context.error_categories or ["unknown"]:
            self._errors_total.add(
                1,
                attributes={
                    fields.COMPONENT_ID: context.invocation.component_id,
                    fields.API_NAME: context.invocation.api_name,
                    fields.ERROR_CATEGORY: category,
                },
            )


def public_api_instrumented(
    *,
    component_id: str,
    api_name: str | None = None,
    id_fields: tuple[str, ...] = (),
    concerns: Sequence[PublicApiInstrumentationConcern] | None = None,
    logger: Any | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorate one public method with logging, tracing, and metrics.

    ``id_fields`` names keyword arguments whose values are attached to every
    emitted event. Methods must take their envelope metadata as ``meta=``.
    """
    resolved: tuple[PublicApiInstrumentationConcern, ...] = (
        *(concerns or ()),
        *_default_concerns(),
    )
    if logger is not None:
        resolved = (PublicApiLoggingConcern(logger=logger), *resolved)

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        method_name = api_name or func.__name__

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            meta = kwargs.get("meta")
            invocation = InvocationContext(
                component_id=component_id,
                api_name=method_name,
                trace_id=_attr_or_none(meta, "trace_id"),
                envelope_id=_attr_or_none(meta, "envelope_id"),
                principal=_attr_or_none(meta, "principal"),
                references={
                    name: str(kwargs[name])
                    for name in id_fields
                    if kwargs.get(name) not in (None, "")
                },
            )
            _emit(resolved, "invocation", invocation, logger, invocation)

            started = perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                completion = CompletionContext(
                    invocation=invocation,
                    success=False,
                    duration_ms=round((perf_counter() - started) * 1000.0, 3),
                    errors=[f"{type(exc).__name__}: {exc}"],
                    error_categories=["internal"],
                )
                _emit(resolved, "completion", completion, logger, invocation)
                raise

            errors = _error_summaries(result)
            ok_value = getattr(result, "ok", None)
            completion = CompletionContext(
                invocation=invocation,
                success=ok_value if isinstance(ok_value, bool) else not errors,
                duration_ms=round((perf_counter() - started) * 1000.0, 3),
                errors=errors,
                error_categories=_error_categories(result),
            )
            _emit(resolved, "completion", completion, logger, invocation)
            return result

        return wrapper

    return decorator


@lru_cache(maxsize=1)
def _default_concerns() -> tuple[PublicApiInstrumentationConcern, ...]:
    return (
        PublicApiTracingConcern(tracer=otel_trace.get_tracer(_INSTRUMENTATION_NAME)),
        PublicApiMetricsConcern(meter=otel_metrics.get_meter(_INSTRUMENTATION_NAME)),
    )


def _attr_or_none(obj: object | None, name: str) -> str | None:
    if obj is None:
        return None
    value = getattr(obj, name, None)
    if value in (None, ""):
        return None
    return str(value)


def _error_summaries(result: object) -> list[str]:
    """One-line ``code: message`` summaries safe for logs."""
    errors = getattr(result, "errors", None)
    if not isinstance(errors, list):
        return []
    summaries: list[str] = []
    for item in errors:
        code = getattr(item, "code", None)
        message = getattr(item, "message", None)
        if message in (None, ""):
            continue
        summaries.append(str(message) if code in (None, "") else f"{code}: {message}")
    return summaries


def _error_categories(result: object) -> list[str]:
    errors = getattr(result, "errors", None)
    if not isinstance(errors, list):
        return []
    categories: list[str] = []
    for item in errors:
        raw = getattr(item, "category", None)
        category = getattr(raw, "value", raw)
        if category not in (None, ""):
            categories.append(str(category))
    return categories


def _invocation_log_context(context: InvocationContext) -> dict[str, object]:
    return {
        fields.EVENT: fields.PUBLIC_API_INVOCATION_EVENT,
        fields.COMPONENT_ID: context.component_id,
        fields.API_NAME: context.api_name,
        fields.TRACE_ID: context.trace_id,
        fields.ENVELOPE_ID: context.envelope_id,
        fields.PRINCIPAL: context.principal,
        **context.references,
    }


def _emit(
    concerns: Sequence[PublicApiInstrumentationConcern],
    stage: str,
    context: InvocationContext | CompletionContext,
    logger: Any | None,
    invocation: InvocationContext,
) -> None:
    """Dispatch one event to every concern, isolating concern failures."""
    for concern in concerns:
        try:
            if stage == "invocation":
                concern.on_invocation(context)  # type: ignore[arg-type]
            else:
                concern.on_completion(context)  # type: ignore[arg-type]
        except Exception as exc:  # noqa: BLE001
            if logger is None:
                continue
            with log_context(
                {
                    fields.EVENT: fields.PUBLIC_API_INSTRUMENTATION_FAILURE_EVENT,
                    fields.COMPONENT_ID: invocation.component_id,
                    fields.API_NAME: invocation.api_name,
                    fields.STAGE: stage,
                    fields.CONCERN: type(concern).__name__,
                    fields.ERRORS: [f"{type(exc).__name__}: {exc}"],
                }
            ):
                logger.warning("Public API instrumentation concern failed")
