"""
Tracing Configuration

Loads observability settings from environment variables.
Tracing is off unless explicitly enabled.
"""

import os
from dataclasses import dataclass


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).lower() in ("true", "1", "yes")


@dataclass
class TracingConfig:
    """Configuration for OpenTelemetry tracing.

    Environment Variables:
        KB_TRACING_ENABLED: Enable tracing (default: false)
        KB_SERVICE_NAME: Service name on exported spans (default: personal-kb)
        KB_OTLP_ENDPOINT: OTLP/HTTP collector endpoint (console export if empty)
        KB_TRACE_CONTENT: Put query text on spans (default: false)

    PRIVACY WARNING:
        Setting KB_TRACE_CONTENT=true exports raw search queries to the
        configured collector. A personal knowledge base can hold anything
        the user ever noted down; only enable this locally.
    """

    enabled: bool = False
    service_name: str = "personal-kb"
    otlp_endpoint: str | None = None
    capture_content: bool = False

    @classmethod
    def from_env(cls) -> "TracingConfig":
        """Load config from environment variables."""
        return cls(
            enabled=_env_flag("KB_TRACING_ENABLED"),
            service_name=os.environ.get("KB_SERVICE_NAME", "personal-kb"),
            otlp_endpoint=os.environ.get("KB_OTLP_ENDPOINT") or None,
            capture_content=_env_flag("KB_TRACE_CONTENT"),
        )


# Global config singleton
_config: TracingConfig | None = None


def get_config() -> TracingConfig:
    """Get the global tracing config (lazy-loaded from env)."""
    global _config
    if _config is None:
        _config = TracingConfig.from_env()
    return _config


def reset_config() -> None:
    """Reset config (useful for testing)."""
    global _config
    _config = None
