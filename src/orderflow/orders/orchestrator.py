"""
Order orchestrator: the synchronous half of the order saga.

``create_order`` validates the request, prices it from the catalog, charges
it through the payment participant, records the terminal state exactly once
and, for approved orders, publishes an ``order.confirmed`` message.

A failed payment does not roll anything back; the order is persisted as
``payment_failed`` so it remains retrievable. A failed publish does not
undo a confirmed order either; it is logged and reported as
``CreateOrderResult.published = False``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from opentelemetry.trace import Status, StatusCode
from pydantic import ValidationError

from orderflow.broker import BrokerTopology, MessageBroker
from orderflow.catalog import ProductCatalog
from orderflow.exceptions import (
    OrderNotFoundError,
    PaymentFailedError,
    PersistenceError,
    ProductNotFoundError,
    PublishError,
)
from orderflow.models import CENTS, ConfirmationEvent, CreateOrderRequest, Order, OrderStatus
from orderflow.observability import (
    ATTR_MESSAGING_DESTINATION,
    ATTR_MESSAGING_MESSAGE_ID,
    ATTR_MESSAGING_OPERATION,
    ATTR_MESSAGING_ROUTING_KEY,
    ATTR_MESSAGING_SYSTEM,
    ATTR_ORDER_AMOUNT,
    ATTR_ORDER_CUSTOMER_EMAIL,
    ATTR_ORDER_ID,
    ATTR_ORDER_PRODUCT_ID,
    ATTR_ORDER_QUANTITY,
    ATTR_ORDER_STATUS,
    ATTR_PAYMENT_STATUS,
    ATTR_PAYMENT_TRANSACTION_ID,
    SpanKindEnum,
    Tracer,
    create_tracer,
    extract_continuation,
    inject_headers,
)
from orderflow.payment import PaymentClient
from orderflow.stores import ORDERS_COLLECTION, DocumentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreateOrderResult:
    """
    Outcome of a successful ``create_order`` call.

    Attributes:
        order_id: Id of the new order
        status: Always ``confirmed``
        amount: Charged total
        payment_id: Transaction id of the approved charge
        published: False when the confirmation message could not be published
    """

    order_id: str
    status: OrderStatus
    amount: Decimal
    payment_id: str
    published: bool = True


class OrderOrchestrator:
    """
    Coordinates catalog, payment, persistence and notification for an order.

    Args:
        catalog: Product lookup
        store: Document store holding the ``orders`` collection
        payments: Payment participant client
        broker: Broker confirmations are published to
        currency: Currency code sent with every charge
        topology: Exchange and routing key of the confirmation message
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to create OpenTelemetry spans (ignored if tracer given)

    Example:
        >>> orchestrator = OrderOrchestrator(catalog, store, payments, broker)
        >>> result = await orchestrator.create_order("1", 2, "a@b.com")
        >>> result.amount
        Decimal('2599.98')
    """

    def __init__(
        self,
        catalog: ProductCatalog,
        store: DocumentStore,
        payments: PaymentClient,
        broker: MessageBroker,
        *,
        currency: str = "USD",
        topology: BrokerTopology | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._catalog = catalog
        self._store = store
        self._payments = payments
        self._broker = broker
        self._currency = currency
        self._topology = topology or BrokerTopology()
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def broker(self) -> MessageBroker:
        return self._broker

    async def create_order(
        self,
        product_id: Any,
        quantity: Any,
        customer_email: Any,
        *,
        trace_headers: Mapping[str, Any] | None = None,
    ) -> CreateOrderResult:
        """
        Place an order.

        Args:
            product_id: Catalog id of the product
            quantity: Number of units (positive integer)
            customer_email: Address for the confirmation email
            trace_headers: Inbound request headers; a traceparent continues
                the caller's trace

        Returns:
            CreateOrderResult for a confirmed order

        Raises:
            OrderValidationError: If the input is incomplete or invalid
            ProductNotFoundError: If the product does not exist
            PaymentFailedError: If the charge was not approved
            PaymentServiceError: If the payment call itself failed
            PersistenceError: If the order could not be stored
            CatalogError: If the catalog could not be queried
        """
        continuation = extract_continuation(trace_headers)
        with self._tracer.span_with_kind(
            "create_order",
            SpanKindEnum.SERVER,
            context=continuation.to_context() if continuation else None,
        ) as span:
            request = CreateOrderRequest.parse(product_id, quantity, customer_email)
            if span is not None:
                span.set_attribute(ATTR_ORDER_PRODUCT_ID, request.product_id)
                span.set_attribute(ATTR_ORDER_QUANTITY, request.quantity)
                span.set_attribute(ATTR_ORDER_CUSTOMER_EMAIL, request.customer_email)

            product = await self._catalog.get_product(request.product_id)
            if product is None:
                raise ProductNotFoundError(request.product_id)

            amount = (Decimal(str(product.price)) * request.quantity).quantize(CENTS)
            order = Order(
                product_id=product.id,
                product_name=product.name,
                quantity=request.quantity,
                amount=amount,
                customer_email=request.customer_email,
            )
            if span is not None:
                span.set_attribute(ATTR_ORDER_ID, order.id)
                span.set_attribute(ATTR_ORDER_AMOUNT, float(amount))

            logger.info(
                "Creating order %s: %d x %s for %s",
                order.id,
                order.quantity,
                order.product_id,
                order.amount,
                extra={"order_id": order.id},
            )

            result = await self._payments.charge(order.id, amount, self._currency)
            if span is not None:
                span.set_attribute(ATTR_PAYMENT_STATUS, result.status.value)
                span.set_attribute(ATTR_PAYMENT_TRANSACTION_ID, result.transaction_id)

            if not result.approved:
                order.mark_payment_failed()
                await self._save(order)
                if span is not None:
                    span.set_attribute(ATTR_ORDER_STATUS, order.status.value)
                logger.warning(
                    "Payment for order %s failed: %s (%s)",
                    order.id,
                    result.status.value,
                    result.message,
                    extra={"order_id": order.id, "transaction_id": result.transaction_id},
                )
                raise PaymentFailedError(
                    order_id=order.id,
                    status=order.status.value,
                    amount=order.amount,
                    payment_status=result.status.value,
                    message=result.message,
                )

            order.confirm(result.transaction_id)
            await self._save(order)
            if span is not None:
                span.set_attribute(ATTR_ORDER_STATUS, order.status.value)

            published = await self._publish_confirmation(order)
            if not published and span is not None:
                span.set_status(Status(StatusCode.ERROR, "confirmation not published"))

            logger.info(
                "Order %s confirmed with payment %s",
                order.id,
                order.payment_id,
                extra={"order_id": order.id, "published": published},
            )
            return CreateOrderResult(
                order_id=order.id,
                status=order.status,
                amount=order.amount,
                payment_id=result.transaction_id,
                published=published,
            )

    async def get_order(
        self,
        order_id: str,
        *,
        trace_headers: Mapping[str, Any] | None = None,
    ) -> Order:
        """
        Read an order.

        Raises:
            OrderNotFoundError: If no order has this id
            PersistenceError: If the store is unavailable
        """
        continuation = extract_continuation(trace_headers)
        with self._tracer.span_with_kind(
            "get_order",
            SpanKindEnum.SERVER,
            {ATTR_ORDER_ID: order_id},
            context=continuation.to_context() if continuation else None,
        ):
            document = await self._store.get(ORDERS_COLLECTION, order_id)
            if document is None:
                raise OrderNotFoundError(order_id)
            try:
                return Order.from_document(document)
            except ValidationError as e:
                logger.error(
                    "Stored order %s is not readable: %s",
                    order_id,
                    e,
                    extra={"order_id": order_id},
                )
                raise PersistenceError(
                    "get", ORDERS_COLLECTION, order_id, "unreadable document"
                ) from e

    async def _save(self, order: Order) -> None:
        await self._store.put(ORDERS_COLLECTION, order.id, order.to_document())

    async def _publish_confirmation(self, order: Order) -> bool:
        """Publish ``order.confirmed``; returns False when the broker refused it."""
        event = ConfirmationEvent(order=order)
        topology = self._topology

        with self._tracer.span_with_kind(
            f"{topology.routing_key} publish",
            SpanKindEnum.PRODUCER,
            {
                ATTR_MESSAGING_SYSTEM: "rabbitmq",
                ATTR_MESSAGING_DESTINATION: topology.exchange,
                ATTR_MESSAGING_OPERATION: "publish",
                ATTR_MESSAGING_ROUTING_KEY: topology.routing_key,
                ATTR_MESSAGING_MESSAGE_ID: event.message_id,
                ATTR_ORDER_ID: order.id,
            },
        ) as span:
            headers = inject_headers({})
            try:
                await self._broker.publish(
                    topology.exchange,
                    topology.routing_key,
                    event.body(),
                    headers=headers,
                    message_id=event.message_id,
                    timestamp=event.created_at,
                    content_type=event.content_type,
                )
            except PublishError as e:
                if span is not None:
                    span.record_exception(e)
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                logger.error(
                    "Failed to publish confirmation for order %s: %s",
                    order.id,
                    e,
                    extra={"order_id": order.id, "message_id": event.message_id},
                )
                return False

        logger.debug(
            "Published confirmation %s for order %s",
            event.message_id,
            order.id,
            extra={"order_id": order.id, "message_id": event.message_id},
        )
        return True


__all__ = ["OrderOrchestrator", "CreateOrderResult"]
