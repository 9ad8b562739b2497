"""Exceptions for the orderflow package."""

from __future__ import annotations

from decimal import Decimal


class OrderFlowError(Exception):
    """Base exception for orderflow."""

    pass


class ConfigurationError(OrderFlowError, ValueError):
    """Raised when settings fail validation."""

    pass


# =============================================================================
# Client errors (no side effects performed, never retried)
# =============================================================================


class ClientError(OrderFlowError):
    """Raised for problems the caller has to fix; maps to a 4xx response."""

    pass


class OrderValidationError(ClientError):
    """Raised when an order request is missing fields or carries invalid values."""

    def __init__(self, message: str, fields: list[str] | None = None) -> None:
        self.fields = fields or []
        super().__init__(message)


class PaymentFailedError(ClientError):
    """
    Raised when the payment participant did not approve the charge.

    The order has already been persisted with status ``payment_failed`` by the
    time this is raised, so it stays retrievable for audit.
    """

    def __init__(
        self,
        order_id: str,
        status: str,
        amount: Decimal,
        payment_status: str,
        message: str,
    ) -> None:
        self.order_id = order_id
        self.status = status
        self.amount = amount
        self.payment_status = payment_status
        self.payment_message = message
        super().__init__(f"Payment for order {order_id} failed ({payment_status}): {message}")


class NotFoundError(OrderFlowError):
    """Raised when a referenced entity does not exist; maps to a 404 response."""

    pass


class ProductNotFoundError(NotFoundError):
    """Raised when the catalog has no product with the requested id."""

    def __init__(self, product_id: str) -> None:
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class OrderNotFoundError(NotFoundError):
    """Raised when the document store has no order with the requested id."""

    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class InvalidOrderTransitionError(OrderFlowError):
    """Raised when an order would leave a terminal status."""

    def __init__(self, order_id: str, current: str, target: str) -> None:
        self.order_id = order_id
        self.current = current
        self.target = target
        super().__init__(f"Order {order_id} cannot move from {current} to {target}")


# =============================================================================
# Payment errors
# =============================================================================


class GatewayError(OrderFlowError):
    """Raised by the payment gateway for infrastructure failures (retryable)."""

    pass


class DeclinedError(OrderFlowError):
    """Business decline from the payment gateway."""

    def __init__(self, transaction_id: str, attempt: int) -> None:
        self.transaction_id = transaction_id
        self.attempt = attempt
        super().__init__(f"Payment {transaction_id} declined on attempt {attempt}")


class PaymentServiceError(OrderFlowError):
    """Raised when the call to the payment participant itself fails."""

    def __init__(self, order_id: str, message: str) -> None:
        self.order_id = order_id
        super().__init__(f"Payment service call failed for order {order_id}: {message}")


# =============================================================================
# Infrastructure errors (server-visible)
# =============================================================================


class PersistenceError(OrderFlowError):
    """Raised when the document store is unavailable or rejects an operation."""

    def __init__(self, operation: str, collection: str, doc_id: str, message: str) -> None:
        self.operation = operation
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"Document store {operation} failed for {collection}/{doc_id}: {message}")


class CatalogError(OrderFlowError):
    """Raised when the product catalog cannot be queried."""

    pass


class BrokerError(OrderFlowError):
    """Base class for message broker failures."""

    pass


class PublishError(BrokerError):
    """Raised when a message could not be handed to the broker."""

    def __init__(self, exchange: str, routing_key: str, message: str) -> None:
        self.exchange = exchange
        self.routing_key = routing_key
        super().__init__(f"Failed to publish to {exchange} ({routing_key}): {message}")


class BrokerConnectionError(BrokerError):
    """Raised when the broker connection cannot be established."""

    def __init__(self, url: str, attempts: int, message: str) -> None:
        self.url = url
        self.attempts = attempts
        super().__init__(
            f"Could not connect to broker at {url} after {attempts} attempts: {message}"
        )


__all__ = [
    "OrderFlowError",
    "ConfigurationError",
    "ClientError",
    "OrderValidationError",
    "PaymentFailedError",
    "NotFoundError",
    "ProductNotFoundError",
    "OrderNotFoundError",
    "InvalidOrderTransitionError",
    "GatewayError",
    "DeclinedError",
    "PaymentServiceError",
    "PersistenceError",
    "CatalogError",
    "BrokerError",
    "PublishError",
    "BrokerConnectionError",
]
