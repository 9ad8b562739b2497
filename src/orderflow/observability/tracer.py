"""
Tracers handed to orderflow components.

Components receive a tracer as a dependency instead of talking to the
OpenTelemetry API directly. This keeps the saga code free of tracing
plumbing and lets tests swap in a NullTracer or MockTracer.

Example:
    >>> from orderflow.observability import create_tracer, NullTracer
    >>>
    >>> tracer = create_tracer("orderflow.payment", enable_tracing=settings.enable_tracing)
    >>>
    >>> class AuditLog:
    ...     def __init__(self, tracer: Tracer | None = None):
    ...         self._tracer = tracer or NullTracer()
    ...
    ...     async def record(self, order_id: str) -> None:
    ...         with self._tracer.span("audit.record", {"order.id": order_id}):
    ...             await self._append(order_id)
"""

from __future__ import annotations

import contextlib
from collections.abc import Generator, Sequence
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from opentelemetry import trace
from opentelemetry.trace import SpanKind as OtelSpanKind

if TYPE_CHECKING:
    from opentelemetry.trace import Link, Span


class SpanKindEnum(Enum):
    """
    Role of a span in a cross-process call.

    Values:
        INTERNAL: Work inside one process (store access, email rendering)
        PRODUCER: Publishing a message to the broker
        CONSUMER: Handling a message received from the broker
        CLIENT: Outgoing synchronous call (payment RPC, catalog HTTP)
        SERVER: Handling an incoming synchronous call
    """

    INTERNAL = "internal"
    PRODUCER = "producer"
    CONSUMER = "consumer"
    CLIENT = "client"
    SERVER = "server"


_OTEL_KINDS = {
    SpanKindEnum.INTERNAL: OtelSpanKind.INTERNAL,
    SpanKindEnum.PRODUCER: OtelSpanKind.PRODUCER,
    SpanKindEnum.CONSUMER: OtelSpanKind.CONSUMER,
    SpanKindEnum.CLIENT: OtelSpanKind.CLIENT,
    SpanKindEnum.SERVER: OtelSpanKind.SERVER,
}


@runtime_checkable
class Tracer(Protocol):
    """
    What orderflow components need from a tracer.

    Implementations:
    - NullTracer: tracing switched off
    - OpenTelemetryTracer: spans go to the global TracerProvider
    - MockTracer: keeps span requests in memory for tests
    """

    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Span | None]:
        """
        Open a span and make it current for the ``with`` block.

        Args:
            name: Span name (e.g., "orderflow.store.put")
            attributes: Initial span attributes

        Returns:
            Context manager yielding the span, or None when disabled
        """
        ...

    @property
    def enabled(self) -> bool:
        """True if this tracer creates real spans."""
        ...

    def start_span(
        self,
        name: str,
        kind: SpanKindEnum = SpanKindEnum.INTERNAL,
        attributes: dict[str, Any] | None = None,
        context: Any | None = None,
        links: Sequence[Link] | None = None,
    ) -> Span | None:
        """
        Start a span that the caller must end with ``span.end()``.

        Used for messaging, where the span has to outlive a single
        ``with`` block or must be started in an explicit parent context.

        Args:
            name: Span name
            kind: Role of the span
            attributes: Initial span attributes
            context: Parent context. An empty context starts a new trace.
            links: Non-hierarchical references to other spans

        Returns:
            The started span, or None when disabled
        """
        ...

    def span_with_kind(
        self,
        name: str,
        kind: SpanKindEnum = SpanKindEnum.INTERNAL,
        attributes: dict[str, Any] | None = None,
        context: Any | None = None,
        links: Sequence[Link] | None = None,
    ) -> AbstractContextManager[Span | None]:
        """Like ``span()``, with an explicit kind, parent context and links."""
        ...


class NullTracer:
    """
    Tracer used when ``enable_tracing`` is False.

    Example:
        >>> store = InMemoryDocumentStore(tracer=NullTracer())
        >>> await store.put("orders", order.id, order.to_document())  # no spans
    """

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> Generator[None, None, None]:
        yield None

    @property
    def enabled(self) -> bool:
        return False

    def start_span(
        self,
        name: str,
        kind: SpanKindEnum = SpanKindEnum.INTERNAL,
        attributes: dict[str, Any] | None = None,
        context: Any | None = None,
        links: Sequence[Link] | None = None,
    ) -> None:
        return None

    @contextlib.contextmanager
    def span_with_kind(
        self,
        name: str,
        kind: SpanKindEnum = SpanKindEnum.INTERNAL,
        attributes: dict[str, Any] | None = None,
        context: Any | None = None,
        links: Sequence[Link] | None = None,
    ) -> Generator[None, None, None]:
        yield None


class OpenTelemetryTracer:
    """
    Tracer backed by ``opentelemetry.trace``.

    Spans are recorded by whatever TracerProvider the process installed;
    without one the API hands out non-recording spans.

    Args:
        tracer_name: Instrumentation scope, usually the module ``__name__``
    """

    def __init__(self, tracer_name: str) -> None:
        self._tracer = trace.get_tracer(tracer_name)

    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Span | None]:
        return self._tracer.start_as_current_span(name, attributes=attributes or {})

    @property
    def enabled(self) -> bool:
        return True

    def start_span(
        self,
        name: str,
        kind: SpanKindEnum = SpanKindEnum.INTERNAL,
        attributes: dict[str, Any] | None = None,
        context: Any | None = None,
        links: Sequence[Link] | None = None,
    ) -> Span:
        """The returned span is not current; ``end()`` is the caller's job."""
        return self._tracer.start_span(
            name,
            context=context,
            kind=_OTEL_KINDS.get(kind, OtelSpanKind.INTERNAL),
            attributes=attributes or {},
            links=list(links) if links else None,
        )

    def span_with_kind(
        self,
        name: str,
        kind: SpanKindEnum = SpanKindEnum.INTERNAL,
        attributes: dict[str, Any] | None = None,
        context: Any | None = None,
        links: Sequence[Link] | None = None,
    ) -> AbstractContextManager[Span | None]:
        return self._tracer.start_as_current_span(
            name,
            context=context,
            kind=_OTEL_KINDS.get(kind, OtelSpanKind.INTERNAL),
            attributes=attributes or {},
            links=list(links) if links else None,
        )


@dataclass
class RecordedSpan:
    """A span request captured by MockTracer."""

    name: str
    attributes: dict[str, Any] | None
    kind: SpanKindEnum = SpanKindEnum.INTERNAL
    context: Any | None = None
    links: list[Any] = field(default_factory=list)


class MockTracer:
    """
    Tracer that records what was asked of it.

    Example:
        >>> tracer = MockTracer()
        >>> processor = PaymentProcessor(gateway, tracer=tracer)
        >>> await processor.charge("o-1", Decimal("10.00"), "USD")
        >>> tracer.span_names[:2]
        ['payment.process', 'payment.attempt']
    """

    def __init__(self) -> None:
        self.records: list[RecordedSpan] = []

    @property
    def spans(self) -> list[tuple[str, dict[str, Any] | None]]:
        """Recorded spans as (name, attributes) pairs."""
        return [(r.name, r.attributes) for r in self.records]

    @property
    def span_names(self) -> list[str]:
        return [r.name for r in self.records]

    @property
    def enabled(self) -> bool:
        # attribute computation stays on in tests
        return True

    def clear(self) -> None:
        self.records.clear()

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> Generator[None, None, None]:
        self.records.append(RecordedSpan(name, attributes))
        yield None

    def start_span(
        self,
        name: str,
        kind: SpanKindEnum = SpanKindEnum.INTERNAL,
        attributes: dict[str, Any] | None = None,
        context: Any | None = None,
        links: Sequence[Link] | None = None,
    ) -> None:
        self.records.append(RecordedSpan(name, attributes, kind, context, list(links or [])))
        return None

    @contextlib.contextmanager
    def span_with_kind(
        self,
        name: str,
        kind: SpanKindEnum = SpanKindEnum.INTERNAL,
        attributes: dict[str, Any] | None = None,
        context: Any | None = None,
        links: Sequence[Link] | None = None,
    ) -> Generator[None, None, None]:
        self.records.append(RecordedSpan(name, attributes, kind, context, list(links or [])))
        yield None


def create_tracer(
    name: str,
    enable_tracing: bool = True,
) -> Tracer:
    """
    Pick the tracer for a component.

    Args:
        name: Instrumentation scope, usually ``__name__``
        enable_tracing: False gives a NullTracer

    Returns:
        OpenTelemetryTracer if enabled, NullTracer otherwise
    """
    if enable_tracing:
        return OpenTelemetryTracer(name)
    return NullTracer()


__all__ = [
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "RecordedSpan",
    "SpanKindEnum",
    "create_tracer",
]
