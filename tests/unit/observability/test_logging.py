"""Unit tests for trace-aware logging."""

from __future__ import annotations

import logging

from opentelemetry import trace

from orderflow.observability import TraceContextFilter, configure_logging


def _record() -> logging.LogRecord:
    return logging.LogRecord("test", logging.INFO, __file__, 1, "hello", None, None)


class TestTraceContextFilter:
    def test_outside_span_uses_placeholder(self):
        record = _record()

        assert TraceContextFilter().filter(record) is True
        assert record.trace_id == "-"
        assert record.span_id == "-"

    def test_inside_span_uses_ids(self, trace_exporter):
        record = _record()
        with trace.get_tracer(__name__).start_as_current_span("logged") as span:
            TraceContextFilter().filter(record)
            span_context = span.get_span_context()

        assert record.trace_id == f"{span_context.trace_id:032x}"
        assert record.span_id == f"{span_context.span_id:016x}"


class TestConfigureLogging:
    def test_installs_filter_on_root_handlers(self):
        root = logging.getLogger()
        saved_handlers = root.handlers[:]
        saved_level = root.level
        root.handlers = []
        try:
            configure_logging("debug")

            assert root.level == logging.DEBUG
            assert root.handlers
            assert all(
                any(isinstance(f, TraceContextFilter) for f in handler.filters)
                for handler in root.handlers
            )
        finally:
            root.handlers = saved_handlers
            root.setLevel(saved_level)
