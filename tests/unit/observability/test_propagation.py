"""
Unit tests for trace-context propagation.

Tests for:
- TraceParent.parse() / format()
- Continuation and Reference conversions
- extract_* helpers (absent, malformed, case-insensitive, bytes)
- inject_headers() and new_root_context()
"""

from __future__ import annotations

from typing import Any

import pytest
from opentelemetry import trace
from opentelemetry.trace import Link

from orderflow.observability import (
    TRACEPARENT_HEADER,
    Continuation,
    Reference,
    TraceParent,
    current_trace_ids,
    extract_continuation,
    extract_reference,
    extract_traceparent,
    inject_headers,
    new_root_context,
)

VALID = "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01"
TRACE_ID = 0x4BF92F3577B34DA6A3CE929D0E0E4736
SPAN_ID = 0x00F067AA0BA902B7


class TestTraceParentParse:
    """Tests for TraceParent.parse()."""

    def test_parses_valid_header(self):
        parsed = TraceParent.parse(VALID)

        assert parsed is not None
        assert parsed.version == 0
        assert parsed.trace_id == TRACE_ID
        assert parsed.span_id == SPAN_ID
        assert parsed.trace_flags == 1

    def test_format_round_trips(self):
        assert TraceParent.parse(VALID).format() == VALID

    def test_accepts_bytes(self):
        assert TraceParent.parse(VALID.encode("ascii")) == TraceParent.parse(VALID)

    def test_strips_whitespace(self):
        assert TraceParent.parse(f"  {VALID}\n") is not None

    @pytest.mark.parametrize(
        "header",
        [
            None,
            "",
            "bad-header",
            "00-abc",
            "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7",
            f"{VALID}-extra",
            "00-4bf92f3577b34da6a3ce929d0e0e473-00f067aa0ba902b7-01",
            "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b-01",
            "0-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01",
            "00-zzf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01",
            "00-00000000000000000000000000000000-00f067aa0ba902b7-01",
            "00-4bf92f3577b34da6a3ce929d0e0e4736-0000000000000000-01",
            "ff-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01",
            b"\xff\xfe",
        ],
    )
    def test_rejects_malformed(self, header: Any):
        assert TraceParent.parse(header) is None

    def test_to_span_context_is_remote(self):
        span_context = TraceParent.parse(VALID).to_span_context()

        assert span_context.is_remote
        assert span_context.trace_id == TRACE_ID
        assert span_context.span_id == SPAN_ID


class TestRelations:
    """Tests for the Continuation | Reference union."""

    def test_continuation_context_parents_new_spans(self):
        continuation = Continuation(TRACE_ID, SPAN_ID, 1)
        parent = trace.get_current_span(continuation.to_context()).get_span_context()

        assert parent.trace_id == TRACE_ID
        assert parent.span_id == SPAN_ID

    def test_reference_becomes_link(self):
        link = Reference(TRACE_ID, SPAN_ID, 1).to_link({"kind": "publisher"})

        assert isinstance(link, Link)
        assert link.context.trace_id == TRACE_ID
        assert link.context.span_id == SPAN_ID
        assert link.attributes["kind"] == "publisher"

    def test_from_traceparent(self):
        parent = TraceParent.parse(VALID)

        assert Continuation.from_traceparent(parent) == Continuation(TRACE_ID, SPAN_ID, 1)
        assert Reference.from_traceparent(parent) == Reference(TRACE_ID, SPAN_ID, 1)

    def test_new_root_context_has_no_span(self):
        span_context = trace.get_current_span(new_root_context()).get_span_context()
        assert not span_context.is_valid


class TestExtract:
    """Tests for extract_traceparent / extract_continuation / extract_reference."""

    def test_absent_header_returns_none(self):
        assert extract_reference({}) is None
        assert extract_reference(None) is None
        assert extract_continuation({"other": "x"}) is None

    def test_malformed_header_returns_none(self):
        assert extract_reference({TRACEPARENT_HEADER: "bad-header"}) is None
        assert extract_continuation({TRACEPARENT_HEADER: "00-abc"}) is None

    def test_case_insensitive_lookup(self):
        assert extract_traceparent({"Traceparent": VALID}) is not None
        assert extract_continuation({"TRACEPARENT": VALID}) == Continuation(TRACE_ID, SPAN_ID, 1)

    def test_bytes_header_value(self):
        assert extract_reference({TRACEPARENT_HEADER: VALID.encode()}) == Reference(
            TRACE_ID, SPAN_ID, 1
        )


class TestInject:
    """Tests for inject_headers()."""

    def test_no_active_span_writes_nothing(self):
        assert TRACEPARENT_HEADER not in inject_headers({})

    def test_injects_current_span(self, trace_exporter):
        tracer = trace.get_tracer(__name__)
        with tracer.start_as_current_span("outer") as span:
            headers = inject_headers()
            expected = span.get_span_context()

        parsed = TraceParent.parse(headers[TRACEPARENT_HEADER])
        assert parsed.trace_id == expected.trace_id
        assert parsed.span_id == expected.span_id

    def test_returns_given_carrier(self):
        carrier: dict[str, Any] = {"x": "1"}
        assert inject_headers(carrier) is carrier

    def test_current_trace_ids(self, trace_exporter):
        assert current_trace_ids() is None
        tracer = trace.get_tracer(__name__)
        with tracer.start_as_current_span("outer") as span:
            trace_id, span_id = current_trace_ids()
            assert trace_id == f"{span.get_span_context().trace_id:032x}"
            assert span_id == f"{span.get_span_context().span_id:016x}"
