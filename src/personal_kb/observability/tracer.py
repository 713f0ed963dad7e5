"""
Span plumbing for knowledge store operations.

The facade only ever sees TracerProtocol/SpanProtocol. Two tracers
implement them:

- NoOpTracer: tracing disabled (the default), costs nothing
- OTelTracer: thin adapter over an OpenTelemetry SDK tracer

kb_span() wraps one facade operation: it opens the span, marks it ok
on success, and records the exception and error status on failure
before letting the exception propagate.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Protocol


class SpanProtocol(Protocol):
    """What the facade may do with an open span."""

    def set_attribute(self, key: str, value: Any) -> None:
        ...

    def set_status(self, status: str, description: str | None = None) -> None:
        """`status` is "ok" or "error"."""
        ...

    def record_exception(self, exception: BaseException) -> None:
        ...


class TracerProtocol(Protocol):
    def start_span(
        self, name: str, attributes: Mapping[str, Any] | None = None
    ) -> Iterator[SpanProtocol]:
        """Context manager yielding an open span."""
        ...


# ---------------------------------------------------------------------------
# DISABLED TRACING
# ---------------------------------------------------------------------------


class NoOpSpan:
    def set_attribute(self, key: str, value: Any) -> None:
        return None

    def set_status(self, status: str, description: str | None = None) -> None:
        return None

    def record_exception(self, exception: BaseException) -> None:
        return None


_NOOP_SPAN = NoOpSpan()


class NoOpTracer:
    """Hands out a shared inert span."""

    @contextmanager
    def start_span(
        self, name: str, attributes: Mapping[str, Any] | None = None
    ) -> Iterator[NoOpSpan]:
        yield _NOOP_SPAN


# ---------------------------------------------------------------------------
# OPENTELEMETRY
# ---------------------------------------------------------------------------


class OTelSpan:
    """Maps the "ok"/"error" status strings onto OTel StatusCode."""

    def __init__(self, span: Any):
        self._span = span

    def set_attribute(self, key: str, value: Any) -> None:
        self._span.set_attribute(key, value)

    def set_status(self, status: str, description: str | None = None) -> None:
        from opentelemetry.trace import Status, StatusCode

        if status == "ok":
            self._span.set_status(Status(StatusCode.OK))
        else:
            self._span.set_status(Status(StatusCode.ERROR, description))

    def record_exception(self, exception: BaseException) -> None:
        self._span.record_exception(exception)


class OTelTracer:
    def __init__(self, tracer: Any):
        self._tracer = tracer

    @contextmanager
    def start_span(
        self, name: str, attributes: Mapping[str, Any] | None = None
    ) -> Iterator[OTelSpan]:
        # kb_span() owns exception recording and status
        with self._tracer.start_as_current_span(
            name,
            attributes=dict(attributes or {}),
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            yield OTelSpan(span)


# ---------------------------------------------------------------------------
# OPERATION SPANS
# ---------------------------------------------------------------------------


@contextmanager
def kb_span(
    tracer: TracerProtocol,
    name: str,
    attributes: Mapping[str, Any] | None = None,
) -> Iterator[SpanProtocol]:
    """
    Run one knowledge store operation inside a span.

    Usage:
        with kb_span(tracer, "kb.remove_document", {KB_DOCUMENT_ID: doc_id}) as span:
            store.remove(doc_id)
            span.set_attribute(KB_DOCUMENT_COUNT, store.count())
    """
    with tracer.start_span(name, attributes=attributes) as span:
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status("error", str(e))
            raise
        span.set_status("ok")


# ---------------------------------------------------------------------------
# GLOBAL TRACER
# ---------------------------------------------------------------------------


_tracer: TracerProtocol | None = None


def _build_tracer() -> TracerProtocol:
    from personal_kb.observability.config import get_config

    config = get_config()
    if not config.enabled:
        return NoOpTracer()

    from opentelemetry import trace
    from opentelemetry.sdk.trace import TracerProvider

    if not isinstance(trace.get_tracer_provider(), TracerProvider):
        # Enabled, but init_tracing() has not installed a provider yet
        return NoOpTracer()
    return OTelTracer(trace.get_tracer(config.service_name))


def get_tracer() -> TracerProtocol:
    """Process-wide tracer, built on first use from TracingConfig."""
    global _tracer
    if _tracer is None:
        _tracer = _build_tracer()
    return _tracer


def reset_tracer() -> None:
    """Forget the cached tracer (after init_tracing, and in tests)."""
    global _tracer
    _tracer = None
