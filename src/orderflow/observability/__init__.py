"""
Observability utilities for orderflow.

This package provides the composition-based Tracer, standard span
attributes, trace-context propagation across the saga's HTTP, RPC and
messaging boundaries, and trace-aware logging.

Example:
    >>> from orderflow.observability import create_tracer, extract_reference
    >>>
    >>> tracer = create_tracer(__name__)
    >>> reference = extract_reference(message.headers)
"""

from orderflow.observability.attributes import (
    ATTR_DB_COLLECTION,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_EMAIL_RECIPIENT,
    ATTR_EMAIL_SUBJECT,
    ATTR_ERROR_TYPE,
    ATTR_MESSAGING_DESTINATION,
    ATTR_MESSAGING_LINKED,
    ATTR_MESSAGING_MESSAGE_ID,
    ATTR_MESSAGING_OPERATION,
    ATTR_MESSAGING_REDELIVERED,
    ATTR_MESSAGING_ROUTING_KEY,
    ATTR_MESSAGING_SYSTEM,
    ATTR_ORDER_AMOUNT,
    ATTR_ORDER_CUSTOMER_EMAIL,
    ATTR_ORDER_ID,
    ATTR_ORDER_PRODUCT_ID,
    ATTR_ORDER_QUANTITY,
    ATTR_ORDER_STATUS,
    ATTR_PAYMENT_AMOUNT,
    ATTR_PAYMENT_ATTEMPT,
    ATTR_PAYMENT_CURRENCY,
    ATTR_PAYMENT_STATUS,
    ATTR_PAYMENT_TRANSACTION_ID,
    ATTR_PRODUCT_ID,
)
from orderflow.observability.logging import TraceContextFilter, configure_logging
from orderflow.observability.propagation import (
    TRACEPARENT_HEADER,
    Continuation,
    Reference,
    TraceParent,
    TraceRelation,
    current_trace_ids,
    extract_continuation,
    extract_reference,
    extract_traceparent,
    inject_headers,
    new_root_context,
)
from orderflow.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    RecordedSpan,
    SpanKindEnum,
    Tracer,
    create_tracer,
)

__all__ = [
    # Attributes
    "ATTR_DB_COLLECTION",
    "ATTR_DB_OPERATION",
    "ATTR_DB_SYSTEM",
    "ATTR_EMAIL_RECIPIENT",
    "ATTR_EMAIL_SUBJECT",
    "ATTR_ERROR_TYPE",
    "ATTR_MESSAGING_DESTINATION",
    "ATTR_MESSAGING_LINKED",
    "ATTR_MESSAGING_MESSAGE_ID",
    "ATTR_MESSAGING_OPERATION",
    "ATTR_MESSAGING_REDELIVERED",
    "ATTR_MESSAGING_ROUTING_KEY",
    "ATTR_MESSAGING_SYSTEM",
    "ATTR_ORDER_AMOUNT",
    "ATTR_ORDER_CUSTOMER_EMAIL",
    "ATTR_ORDER_ID",
    "ATTR_ORDER_PRODUCT_ID",
    "ATTR_ORDER_QUANTITY",
    "ATTR_ORDER_STATUS",
    "ATTR_PAYMENT_AMOUNT",
    "ATTR_PAYMENT_ATTEMPT",
    "ATTR_PAYMENT_CURRENCY",
    "ATTR_PAYMENT_STATUS",
    "ATTR_PAYMENT_TRANSACTION_ID",
    "ATTR_PRODUCT_ID",
    # Logging
    "TraceContextFilter",
    "configure_logging",
    # Propagation
    "TRACEPARENT_HEADER",
    "Continuation",
    "Reference",
    "TraceParent",
    "TraceRelation",
    "current_trace_ids",
    "extract_continuation",
    "extract_reference",
    "extract_traceparent",
    "inject_headers",
    "new_root_context",
    # Tracer
    "MockTracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "RecordedSpan",
    "SpanKindEnum",
    "Tracer",
    "create_tracer",
]
