"""
Tests for OpenTelemetry tracing module.

Verifies:
- TracerProvider setup with InMemorySpanExporter
- Structlog processor adds trace_id/span_id to log entries
- traced() context manager creates spans and records exceptions
- An evaluation run emits a run span with one child span per alert
"""

import pytest
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from src.observability.tracing import (
    add_trace_context,
    get_tracer,
    is_tracing_enabled,
    setup_tracing,
    traced,
)
from tests.conftest import make_candidate


# Module-level exporter shared across all tests. OTel's global TracerProvider
# can only be set once per process, so we initialize it once and clear the
# exporter between tests.
_exporter = InMemorySpanExporter()
_provider = setup_tracing("test-service", exporter=_exporter)


@pytest.fixture(autouse=True)
def _clear_spans():
    """Clear exported spans before each test."""
    _exporter.clear()
    yield
    _exporter.clear()


class TestSetupTracing:
    """Tests for setup_tracing()."""

    def test_setup_enables_tracing(self):
        """setup_tracing should enable the tracing flag."""
        assert is_tracing_enabled()


class TestTracedContextManager:
    """Tests for the traced() convenience context manager."""

    def test_traced_creates_span(self):
        """traced() should create and finish a span."""
        tracer = get_tracer("test")

        with traced(tracer, "my_operation", {"key": "value"}):
            pass

        spans = _exporter.get_finished_spans()
        assert len(spans) == 1
        assert spans[0].name == "my_operation"
        assert spans[0].attributes.get("key") == "value"

    def test_traced_records_exception(self):
        """traced() should record exceptions and set error status."""
        tracer = get_tracer("test")

        with pytest.raises(ValueError, match="test error"):
            with traced(tracer, "failing_op"):
                raise ValueError("test error")

        spans = _exporter.get_finished_spans()
        assert len(spans) == 1
        assert spans[0].status.status_code.name == "ERROR"
        # Check that exception event was recorded
        events = spans[0].events
        assert any(e.name == "exception" for e in events)


class TestStructlogProcessor:
    """Tests for the add_trace_context structlog processor."""

    def test_adds_trace_id_with_active_span(self):
        """Processor should add trace_id and span_id when span is active."""
        tracer = get_tracer("test")

        with tracer.start_as_current_span("log_test") as span:
            event_dict = {"event": "test message"}
            result = add_trace_context(None, "info", event_dict)

            expected_trace_id = f"{span.get_span_context().trace_id:032x}"
            expected_span_id = f"{span.get_span_context().span_id:016x}"

            assert result["trace_id"] == expected_trace_id
            assert result["span_id"] == expected_span_id

    def test_no_trace_id_without_span(self):
        """Processor should not add trace fields when no span is active."""
        event_dict = {"event": "test message"}
        result = add_trace_context(None, "info", event_dict)

        # No active span -> no valid trace context
        assert "trace_id" not in result or result.get("trace_id") == "0" * 32

    def test_preserves_existing_fields(self):
        """Processor should not overwrite existing event_dict fields."""
        tracer = get_tracer("test")

        with tracer.start_as_current_span("test"):
            event_dict = {"event": "test", "custom_field": 42}
            result = add_trace_context(None, "info", event_dict)

            assert result["custom_field"] == 42
            assert result["event"] == "test"


class TestGetTracer:
    """Tests for get_tracer()."""

    def test_returns_tracer(self):
        """get_tracer should return a Tracer instance."""
        tracer = get_tracer("my_module")
        assert tracer is not None
        # Verify it can create spans
        with tracer.start_as_current_span("test"):
            pass

    def test_different_names_yield_different_tracers(self):
        """Different scope names should yield distinct tracer instances."""
        t1 = get_tracer("module_a")
        t2 = get_tracer("module_b")
        # They should both work
        with t1.start_as_current_span("a"):
            pass
        with t2.start_as_current_span("b"):
            pass
        spans = _exporter.get_finished_spans()
        assert len(spans) == 2


class TestEvaluationSpans:
    """Spans emitted by AlertEvaluationService."""

    @pytest.mark.asyncio
    async def test_run_and_alert_spans(self, service, alert_store):
        alert_store.add(make_candidate("alert-1"))
        alert_store.add(make_candidate("alert-2", price=1.0))

        await service.run_evaluation()

        spans = _exporter.get_finished_spans()
        run_span = next(s for s in spans if s.name == "alerts.evaluate")
        alert_spans = [s for s in spans if s.name == "alerts.process_alert"]

        assert run_span.attributes["alerts.evaluated"] == 2
        assert run_span.attributes["alerts.sent"] == 1
        assert sorted(s.attributes["alert.id"] for s in alert_spans) == ["alert-1", "alert-2"]
        assert all(s.parent.span_id == run_span.context.span_id for s in alert_spans)
