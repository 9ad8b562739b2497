"""
Standard span attributes for orderflow.

These constants keep span naming consistent between the orchestrator, the
payment participant and the confirmation consumer. Messaging and database
attributes follow OpenTelemetry semantic conventions.

Example:
    >>> from orderflow.observability.attributes import ATTR_ORDER_ID
    >>>
    >>> with tracer.span("orderflow.order.create", {ATTR_ORDER_ID: order.id}):
    ...     pass
"""

# =============================================================================
# Order Attributes
# =============================================================================

ATTR_ORDER_ID = "order.id"
"""Identifier of the order (uuid string)."""

ATTR_ORDER_PRODUCT_ID = "order.product_id"
"""Catalog identifier of the ordered product."""

ATTR_ORDER_QUANTITY = "order.quantity"
"""Number of units ordered (integer)."""

ATTR_ORDER_AMOUNT = "order.amount"
"""Total order amount (float)."""

ATTR_ORDER_STATUS = "order.status"
"""Order status after the operation (pending, confirmed, payment_failed)."""

ATTR_ORDER_CUSTOMER_EMAIL = "order.customer_email"
"""Customer email address the confirmation is sent to."""

# =============================================================================
# Payment Attributes
# =============================================================================

ATTR_PAYMENT_TRANSACTION_ID = "payment.transaction_id"
"""Transaction identifier shared by every attempt of one charge."""

ATTR_PAYMENT_AMOUNT = "payment.amount"
"""Charged amount (float)."""

ATTR_PAYMENT_CURRENCY = "payment.currency"
"""Currency code of the charge."""

ATTR_PAYMENT_ATTEMPT = "payment.attempt"
"""1-based attempt number within one charge."""

ATTR_PAYMENT_STATUS = "payment.status"
"""Outcome reported by the payment participant (APPROVED, DECLINED, ERROR)."""

# =============================================================================
# Product Attributes
# =============================================================================

ATTR_PRODUCT_ID = "product.id"
"""Catalog identifier of a product."""

# =============================================================================
# Email Attributes
# =============================================================================

ATTR_EMAIL_RECIPIENT = "email.recipient"
"""Recipient address of a confirmation email."""

ATTR_EMAIL_SUBJECT = "email.subject"
"""Subject line of a confirmation email."""

# =============================================================================
# Database Attributes (OpenTelemetry Semantic Conventions)
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier (e.g., 'sqlite', 'memory')."""

ATTR_DB_OPERATION = "db.operation"
"""Database operation type (e.g., 'put', 'get')."""

ATTR_DB_COLLECTION = "db.collection.name"
"""Collection (index) holding the document."""

# =============================================================================
# Messaging Attributes (OpenTelemetry Semantic Conventions)
# =============================================================================

ATTR_MESSAGING_SYSTEM = "messaging.system"
"""Messaging system identifier (e.g., 'rabbitmq', 'memory')."""

ATTR_MESSAGING_DESTINATION = "messaging.destination"
"""Destination exchange or queue name."""

ATTR_MESSAGING_OPERATION = "messaging.operation"
"""Messaging operation type (e.g., 'publish', 'process')."""

ATTR_MESSAGING_MESSAGE_ID = "messaging.message_id"
"""Broker message identifier."""

ATTR_MESSAGING_ROUTING_KEY = "messaging.rabbitmq.routing_key"
"""Routing key used to publish the message."""

ATTR_MESSAGING_REDELIVERED = "messaging.redelivered"
"""Whether the broker flagged the message as a redelivery (boolean)."""

ATTR_MESSAGING_LINKED = "messaging.linked_to_publisher"
"""Whether the consumer span carries a link to the publishing span."""

# =============================================================================
# Error Attributes
# =============================================================================

ATTR_ERROR_TYPE = "error.type"
"""Exception class name for a failed operation."""


__all__ = [
    "ATTR_ORDER_ID",
    "ATTR_ORDER_PRODUCT_ID",
    "ATTR_ORDER_QUANTITY",
    "ATTR_ORDER_AMOUNT",
    "ATTR_ORDER_STATUS",
    "ATTR_ORDER_CUSTOMER_EMAIL",
    "ATTR_PAYMENT_TRANSACTION_ID",
    "ATTR_PAYMENT_AMOUNT",
    "ATTR_PAYMENT_CURRENCY",
    "ATTR_PAYMENT_ATTEMPT",
    "ATTR_PAYMENT_STATUS",
    "ATTR_PRODUCT_ID",
    "ATTR_EMAIL_RECIPIENT",
    "ATTR_EMAIL_SUBJECT",
    "ATTR_DB_SYSTEM",
    "ATTR_DB_OPERATION",
    "ATTR_DB_COLLECTION",
    "ATTR_MESSAGING_SYSTEM",
    "ATTR_MESSAGING_DESTINATION",
    "ATTR_MESSAGING_OPERATION",
    "ATTR_MESSAGING_MESSAGE_ID",
    "ATTR_MESSAGING_ROUTING_KEY",
    "ATTR_MESSAGING_REDELIVERED",
    "ATTR_MESSAGING_LINKED",
    "ATTR_ERROR_TYPE",
]
