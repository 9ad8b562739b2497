"""
Trace context propagation across the saga's transport boundaries.

Two different relationships cross a boundary:

- Synchronous hops (HTTP into the orchestrator, RPC into the payment
  participant) continue the caller's trace. The receiver's span is a child of
  the caller's span and shares its trace id. These are ``Continuation``s.
- The asynchronous hop (publish -> consume) does not. By the time the
  confirmation consumer runs, the publishing span closed long ago, so the
  consumer starts a fresh trace and only carries a ``Reference`` to the
  publisher, which becomes an OpenTelemetry span link.

Both travel as the plain-string W3C ``traceparent`` header in the
``version-traceId-spanId-flags`` form. Absent or malformed headers yield
``None`` rather than an error.

Example:
    >>> headers = inject_headers()
    >>> reference = extract_reference(headers)
    >>> links = [reference.to_link()] if reference else []
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from typing import Any

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.propagate import inject
from opentelemetry.trace import Link, NonRecordingSpan, SpanContext, TraceFlags

logger = logging.getLogger(__name__)

TRACEPARENT_HEADER = "traceparent"

_TRACE_ID_HEX_LEN = 32
_SPAN_ID_HEX_LEN = 16


@dataclass(frozen=True)
class TraceParent:
    """Parsed ``version-traceId-spanId-flags`` header."""

    version: int
    trace_id: int
    span_id: int
    trace_flags: int

    @classmethod
    def parse(cls, header: str | bytes | None) -> TraceParent | None:
        """
        Parse a traceparent header value.

        Returns None when the value is missing, does not split into exactly
        four dash-separated parts, has fields of the wrong width or non-hex
        content, or carries an all-zero trace or span id.
        """
        if header is None:
            return None
        if isinstance(header, bytes):
            try:
                header = header.decode("ascii")
            except UnicodeDecodeError:
                return None
        if not isinstance(header, str):
            return None

        parts = header.strip().split("-")
        if len(parts) != 4:
            return None

        version, trace_id, span_id, flags = parts
        if (
            len(version) != 2
            or len(trace_id) != _TRACE_ID_HEX_LEN
            or len(span_id) != _SPAN_ID_HEX_LEN
            or len(flags) != 2
        ):
            return None

        try:
            parsed = cls(
                version=int(version, 16),
                trace_id=int(trace_id, 16),
                span_id=int(span_id, 16),
                trace_flags=int(flags, 16),
            )
        except ValueError:
            return None

        if parsed.version == 0xFF or parsed.trace_id == 0 or parsed.span_id == 0:
            return None
        return parsed

    def format(self) -> str:
        """Render back into the header form."""
        return (
            f"{self.version:02x}-{self.trace_id:032x}-{self.span_id:016x}-{self.trace_flags:02x}"
        )

    def to_span_context(self) -> SpanContext:
        """Build a remote OpenTelemetry SpanContext."""
        return SpanContext(
            trace_id=self.trace_id,
            span_id=self.span_id,
            is_remote=True,
            trace_flags=TraceFlags(self.trace_flags),
        )


@dataclass(frozen=True)
class Continuation:
    """
    Parent-child relationship for synchronous hops (HTTP, RPC).

    The receiving span becomes a child of ``span_id`` within ``trace_id``.
    """

    trace_id: int
    span_id: int
    trace_flags: int = 0

    @classmethod
    def from_traceparent(cls, parent: TraceParent) -> Continuation:
        return cls(parent.trace_id, parent.span_id, parent.trace_flags)

    def span_context(self) -> SpanContext:
        return SpanContext(
            trace_id=self.trace_id,
            span_id=self.span_id,
            is_remote=True,
            trace_flags=TraceFlags(self.trace_flags),
        )

    def to_context(self) -> Context:
        """Context to pass as the parent when starting the receiving span."""
        return trace.set_span_in_context(NonRecordingSpan(self.span_context()), Context())


@dataclass(frozen=True)
class Reference:
    """
    Non-owning reference for the asynchronous hop (publish -> consume).

    Carries no parent relationship and no duration implication; it only
    lets tracing tools navigate from the consumer back to the publisher.
    """

    trace_id: int
    span_id: int
    trace_flags: int = 0

    @classmethod
    def from_traceparent(cls, parent: TraceParent) -> Reference:
        return cls(parent.trace_id, parent.span_id, parent.trace_flags)

    def span_context(self) -> SpanContext:
        return SpanContext(
            trace_id=self.trace_id,
            span_id=self.span_id,
            is_remote=True,
            trace_flags=TraceFlags(self.trace_flags),
        )

    def to_link(self, attributes: dict[str, Any] | None = None) -> Link:
        """OpenTelemetry span link pointing at the publisher's span."""
        return Link(self.span_context(), attributes=attributes)


TraceRelation = Continuation | Reference


def _header_value(headers: Mapping[str, Any] | None, name: str) -> Any:
    if not headers:
        return None
    if name in headers:
        return headers[name]
    lowered = name.lower()
    for key, value in headers.items():
        if isinstance(key, str) and key.lower() == lowered:
            return value
    return None


def inject_headers(headers: MutableMapping[str, Any] | None = None) -> MutableMapping[str, Any]:
    """
    Write the current span context into ``headers`` as a traceparent string.

    Nothing is written when no span is active (e.g. tracing disabled).
    Returns the carrier for convenience.
    """
    carrier: MutableMapping[str, Any] = headers if headers is not None else {}
    inject(carrier)
    return carrier


def extract_traceparent(headers: Mapping[str, Any] | None) -> TraceParent | None:
    """Read and parse the traceparent header from a carrier."""
    raw = _header_value(headers, TRACEPARENT_HEADER)
    parsed = TraceParent.parse(raw)
    if raw is not None and parsed is None:
        logger.debug(
            "Ignoring malformed traceparent header",
            extra={"traceparent": str(raw)[:128]},
        )
    return parsed


def extract_continuation(headers: Mapping[str, Any] | None) -> Continuation | None:
    """Continuation for an incoming HTTP request or RPC call, if any."""
    parent = extract_traceparent(headers)
    return Continuation.from_traceparent(parent) if parent else None


def extract_reference(headers: Mapping[str, Any] | None) -> Reference | None:
    """Reference to the publisher of a consumed message, if any."""
    parent = extract_traceparent(headers)
    return Reference.from_traceparent(parent) if parent else None


def new_root_context() -> Context:
    """Empty context: spans started in it begin a brand-new trace."""
    return Context()


def current_trace_ids() -> tuple[str, str] | None:
    """Hex trace and span id of the active span, or None."""
    span_context = trace.get_current_span().get_span_context()
    if not span_context.is_valid:
        return None
    return f"{span_context.trace_id:032x}", f"{span_context.span_id:016x}"


__all__ = [
    "TRACEPARENT_HEADER",
    "TraceParent",
    "Continuation",
    "Reference",
    "TraceRelation",
    "inject_headers",
    "extract_traceparent",
    "extract_continuation",
    "extract_reference",
    "new_root_context",
    "current_trace_ids",
]
