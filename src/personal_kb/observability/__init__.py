"""
Observability Module - OpenTelemetry tracing for knowledge store operations.

USAGE:
------
# At application startup:
from personal_kb.observability import init_tracing

init_tracing()  # No-op unless KB_TRACING_ENABLED=true

# Around a knowledge store operation:
from personal_kb.observability import KB_SEARCH_RESULT_COUNT, get_tracer, kb_span, search_attributes

with kb_span(get_tracer(), "kb.search", search_attributes(limit=10)) as span:
    results = engine.search(vector, query, 10)
    span.set_attribute(KB_SEARCH_RESULT_COUNT, len(results))
"""

from __future__ import annotations

import logging

from personal_kb.observability.config import (
    TracingConfig,
    get_config,
    reset_config,
)
from personal_kb.observability.tracer import (
    TracerProtocol,
    SpanProtocol,
    NoOpTracer,
    NoOpSpan,
    OTelTracer,
    get_tracer,
    kb_span,
    reset_tracer,
)
from personal_kb.observability.attributes import (
    KB_OPERATION,
    KB_DOCUMENT_ID,
    KB_DOCUMENT_TYPE,
    KB_DOCUMENT_CONTENT_LENGTH,
    KB_DOCUMENT_COUNT,
    KB_SEARCH_QUERY,
    KB_SEARCH_LIMIT,
    KB_SEARCH_RESULT_COUNT,
    KB_SEARCH_TOP_SCORE,
    KB_EMBEDDING_PROVIDER,
    KB_EMBEDDING_DIMENSIONS,
    document_attributes,
    search_attributes,
)

logger = logging.getLogger(__name__)

_tracing_initialized = False


def init_tracing(config: TracingConfig | None = None) -> bool:
    """
    Install an OpenTelemetry SDK tracer provider.

    Spans go to the OTLP/HTTP collector at `otlp_endpoint` when one is
    configured, otherwise to stdout.

    Args:
        config: Optional config (uses env vars if not provided)

    Returns:
        True if tracing is active, False if disabled
    """
    global _tracing_initialized
    if _tracing_initialized:
        return True

    config = config or get_config()

    if not config.enabled:
        logger.debug("Tracing disabled")
        return False

    from opentelemetry import trace
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

    if config.otlp_endpoint:
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        exporter = OTLPSpanExporter(endpoint=config.otlp_endpoint)
        logger.info("Exporting spans to %s", config.otlp_endpoint)
    else:
        exporter = ConsoleSpanExporter()
        logger.info("Exporting spans to console")

    provider = TracerProvider(resource=Resource.create({"service.name": config.service_name}))
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    reset_tracer()
    _tracing_initialized = True
    return True


def shutdown_tracing() -> None:
    """Flush pending spans and release the exporter."""
    global _tracing_initialized

    if not _tracing_initialized:
        return

    from opentelemetry import trace
    provider = trace.get_tracer_provider()
    if hasattr(provider, "shutdown"):
        provider.shutdown()

    reset_tracer()
    reset_config()
    _tracing_initialized = False


__all__ = [
    # Initialization
    "init_tracing",
    "shutdown_tracing",
    # Config
    "TracingConfig",
    "get_config",
    "reset_config",
    # Tracer
    "TracerProtocol",
    "SpanProtocol",
    "NoOpTracer",
    "NoOpSpan",
    "OTelTracer",
    "get_tracer",
    "kb_span",
    "reset_tracer",
    # Attributes
    "KB_OPERATION",
    "KB_DOCUMENT_ID",
    "KB_DOCUMENT_TYPE",
    "KB_DOCUMENT_CONTENT_LENGTH",
    "KB_DOCUMENT_COUNT",
    "KB_SEARCH_QUERY",
    "KB_SEARCH_LIMIT",
    "KB_SEARCH_RESULT_COUNT",
    "KB_SEARCH_TOP_SCORE",
    "KB_EMBEDDING_PROVIDER",
    "KB_EMBEDDING_DIMENSIONS",
    # Helpers
    "document_attributes",
    "search_attributes",
]
