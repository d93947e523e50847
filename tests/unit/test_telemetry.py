"""Unit tests for logging and tracing helpers."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import pytest
import structlog
from opentelemetry import trace
from opentelemetry.trace import StatusCode

from api_auth_sdk import telemetry
from api_auth_sdk.config import TelemetryConfig
from api_auth_sdk.telemetry import configure_telemetry, get_logger, mask_token, trace_operation


class RecordingSpan:
    def __init__(self) -> None:
        self.statuses: list[trace.Status] = []
        self.exceptions: list[BaseException] = []

    def set_status(self, status: trace.Status) -> None:
        self.statuses.append(status)

    def record_exception(self, exception: BaseException) -> None:
        self.exceptions.append(exception)


class RecordingTracer:
    def __init__(self) -> None:
        self.spans: list[tuple[str, dict[str, Any] | None, RecordingSpan]] = []

    @contextmanager
    def start_as_current_span(self, name: str, **kwargs: Any) -> Iterator[RecordingSpan]:
        span = RecordingSpan()
        self.spans.append((name, kwargs.get("attributes"), span))
        yield span


@pytest.fixture
def isolated_telemetry(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Undo module and structlog state changed by configure_telemetry."""
    monkeypatch.setattr(telemetry, "_tracer", telemetry._tracer)
    monkeypatch.setattr(telemetry, "_logger", telemetry._logger)
    yield
    structlog.reset_defaults()


@pytest.fixture
def recording_tracer(monkeypatch: pytest.MonkeyPatch) -> RecordingTracer:
    tracer = RecordingTracer()
    monkeypatch.setattr(telemetry, "_tracer", tracer)
    return tracer


class TestMaskToken:
    """Tests for token masking."""

    def test_missing(self) -> None:
        assert mask_token(None) == "NO TOKEN"
        assert mask_token("") == "NO TOKEN"

    def test_long_token_keeps_prefix(self) -> None:
        assert mask_token("eyJhbGciOiJIUzI1NiJ9.payload") == "eyJhbGci..."

    def test_short_token_fully_hidden(self) -> None:
        assert mask_token("abcdefgh") == "***"


class TestTraceOperation:
    """Tests for the span context manager."""

    def test_span_named_with_attributes(self, recording_tracer: RecordingTracer) -> None:
        """The block runs inside a span carrying the given attributes."""
        with trace_operation("login", attributes={"username": "supplier01"}) as span:
            pass

        name, attributes, recorded = recording_tracer.spans[0]
        assert name == "login"
        assert attributes == {"username": "supplier01"}
        assert recorded is span
        assert recorded.statuses == []

    def test_exception_marks_span_and_propagates(self, recording_tracer: RecordingTracer) -> None:
        """Failures are recorded on the span and re-raised unchanged."""
        error = RuntimeError("refresh endpoint down")

        with pytest.raises(RuntimeError) as exc_info:
            with trace_operation("refresh"):
                raise error

        assert exc_info.value is error
        _, _, span = recording_tracer.spans[0]
        assert span.statuses[0].status_code is StatusCode.ERROR
        assert span.statuses[0].description == "refresh endpoint down"
        assert span.exceptions == [error]

    def test_default_tracer_yields_span(self) -> None:
        """Without a configured provider the block still gets a span."""
        with trace_operation("current_user") as span:
            assert isinstance(span, trace.Span)


@pytest.mark.usefixtures("isolated_telemetry")
class TestConfigureTelemetry:
    """Tests for applying telemetry configuration."""

    def test_disabled_uses_noop_tracer(self) -> None:
        """Disabled telemetry swaps in a no-op tracer."""
        configure_telemetry(TelemetryConfig(enabled=False))

        assert isinstance(telemetry._tracer, trace.NoOpTracer)

    def test_enabled_rebinds_logger(self) -> None:
        """Enabled telemetry installs a logger for the configured service."""
        before = get_logger()

        configure_telemetry(TelemetryConfig(service_name="orders-portal", log_level="debug"))

        assert get_logger() is not before
        get_logger().debug("telemetry configured", service="orders-portal")
