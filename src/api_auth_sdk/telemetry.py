"""Structured logging and tracing for the API auth SDK.

Logs go through structlog; every request, refresh and session call runs in
an OpenTelemetry span. Until ``configure_telemetry`` is called the SDK uses
structlog's defaults and the globally registered tracer provider.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .config import TelemetryConfig

SERVICE_NAME = "api-auth-sdk"
SDK_VERSION = "0.1.0"

_tracer: trace.Tracer = trace.get_tracer(SERVICE_NAME, SDK_VERSION)
_logger: structlog.BoundLogger = structlog.get_logger(SERVICE_NAME)


def get_logger() -> structlog.BoundLogger:
    """Get the SDK logger."""
    return _logger


def configure_telemetry(config: TelemetryConfig) -> None:
    """Apply logging and tracing settings.

    Disabled telemetry swaps in a no-op tracer and leaves logging alone.
    Enabled telemetry renders logs as JSON, filtered at ``config.log_level``.
    """
    global _tracer, _logger

    if not config.enabled:
        _tracer = trace.NoOpTracer()
        return

    level = logging.getLevelNamesMapping()[config.log_level]
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _tracer = trace.get_tracer(config.service_name, SDK_VERSION)
    _logger = structlog.get_logger(config.service_name)


def mask_token(token: str | None) -> str:
    """Shorten a token for log output."""
    if not token:
        return "NO TOKEN"
    return f"{token[:8]}..." if len(token) > 8 else "***"


@contextmanager
def trace_operation(
    name: str,
    *,
    attributes: dict[str, Any] | None = None,
) -> Iterator[trace.Span]:
    """Run the block in a span named ``name``; exceptions mark it as failed."""
    with _tracer.start_as_current_span(
        name,
        attributes=attributes,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise
