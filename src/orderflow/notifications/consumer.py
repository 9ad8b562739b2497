"""
Confirmation consumer: the asynchronous half of the order saga.

For each ``order.confirmed`` message the consumer re-reads the authoritative
order from the document store and sends the confirmation email. The message
body is only used to find the order id.

Settlement rules:

- success, or the order no longer exists: ack
- body is not JSON or has no id: reject without requeue
- store unavailable or email failed: nack with requeue, until the message
  has failed ``max_redeliveries`` times; then reject without requeue so the
  broker dead-letters it

Each message is handled in its own trace. When the message carries the
publisher's traceparent the consumer span links to it instead of becoming
its child.
"""

from __future__ import annotations

import hashlib
import logging
from collections import OrderedDict
from enum import Enum

from opentelemetry.trace import Span, Status, StatusCode
from pydantic import ValidationError

from orderflow.broker import BrokerTopology, IncomingMessage, MessageBroker, delivery_count
from orderflow.config import ConsumerConfig
from orderflow.exceptions import PersistenceError
from orderflow.models import ConfirmationEvent, Order
from orderflow.notifications.email import ConfirmationEmail, EmailSender
from orderflow.observability import (
    ATTR_EMAIL_RECIPIENT,
    ATTR_EMAIL_SUBJECT,
    ATTR_ERROR_TYPE,
    ATTR_MESSAGING_DESTINATION,
    ATTR_MESSAGING_LINKED,
    ATTR_MESSAGING_MESSAGE_ID,
    ATTR_MESSAGING_OPERATION,
    ATTR_MESSAGING_REDELIVERED,
    ATTR_MESSAGING_SYSTEM,
    ATTR_ORDER_ID,
    SpanKindEnum,
    Tracer,
    create_tracer,
    extract_reference,
    new_root_context,
)
from orderflow.stores import ORDERS_COLLECTION, DocumentStore

logger = logging.getLogger(__name__)


class HandleOutcome(str, Enum):
    """How a message was settled."""

    ACKED = "acked"
    DROPPED = "dropped"
    REQUEUED = "requeued"
    DEAD_LETTERED = "dead_lettered"
    REJECTED = "rejected"


class RedeliveryTracker:
    """
    Counts failed deliveries per message.

    The count for a message is the larger of the failures seen by this
    process and the broker's ``x-delivery-count`` header, so the bound also
    holds across consumer restarts on queues that report it. Entries are
    evicted oldest-first beyond ``max_entries``.

    Args:
        max_redeliveries: Failures after which a message is dead-lettered;
            None never dead-letters
        max_entries: Upper bound of tracked message ids
    """

    def __init__(self, max_redeliveries: int | None = 5, max_entries: int = 10_000) -> None:
        self._max_redeliveries = max_redeliveries
        self._max_entries = max_entries
        self._failures: OrderedDict[str, int] = OrderedDict()

    @property
    def max_redeliveries(self) -> int | None:
        return self._max_redeliveries

    @staticmethod
    def key(message: IncomingMessage) -> str:
        if message.message_id:
            return message.message_id
        return "sha256:" + hashlib.sha256(message.body).hexdigest()

    def failures(self, message: IncomingMessage) -> int:
        return self._failures.get(self.key(message), 0)

    def record_failure(self, message: IncomingMessage) -> int:
        """Record one failed delivery and return the total so far."""
        key = self.key(message)
        count = max(self._failures.get(key, 0), delivery_count(message)) + 1
        self._failures[key] = count
        self._failures.move_to_end(key)
        while len(self._failures) > self._max_entries:
            self._failures.popitem(last=False)
        return count

    def exhausted(self, failures: int) -> bool:
        return self._max_redeliveries is not None and failures >= self._max_redeliveries

    def forget(self, message: IncomingMessage) -> None:
        self._failures.pop(self.key(message), None)

    def __len__(self) -> int:
        return len(self._failures)


class ConfirmationConsumer:
    """
    Sends confirmation emails for ``order.confirmed`` messages.

    Args:
        store: Document store holding the ``orders`` collection
        sender: Email delivery
        broker: Broker to consume from (needed for ``run()`` only)
        config: Consumer settings (defaults to ConsumerConfig())
        topology: Queue to consume from
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to create OpenTelemetry spans (ignored if tracer given)

    Example:
        >>> consumer = ConfirmationConsumer(store, LoggingEmailSender(), broker)
        >>> await consumer.run()
    """

    def __init__(
        self,
        store: DocumentStore,
        sender: EmailSender,
        broker: MessageBroker | None = None,
        *,
        config: ConsumerConfig | None = None,
        topology: BrokerTopology | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._store = store
        self._sender = sender
        self._broker = broker
        self._config = config or ConsumerConfig()
        self._topology = topology or BrokerTopology()
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self.redeliveries = RedeliveryTracker(self._config.max_redeliveries)

    async def run(self) -> None:
        """Consume until ``stop()`` is called."""
        if self._broker is None:
            raise RuntimeError("ConfirmationConsumer.run() needs a broker")
        logger.info(
            "Email worker listening on %s",
            self._topology.queue,
            extra={"queue": self._topology.queue},
        )
        await self._broker.consume(
            self._topology.queue,
            self.handle,
            prefetch=self._config.prefetch_count,
        )

    async def stop(self) -> None:
        if self._broker is not None:
            await self._broker.stop_consuming()

    async def handle(self, message: IncomingMessage) -> HandleOutcome:
        """
        Process and settle one message.

        Never raises for processing failures; every outcome is expressed as
        an ack, nack or reject and returned.
        """
        reference = extract_reference(message.headers)
        links = [reference.to_link()] if reference else None

        with self._tracer.span_with_kind(
            f"{self._topology.queue} process",
            SpanKindEnum.CONSUMER,
            {
                ATTR_MESSAGING_SYSTEM: "rabbitmq",
                ATTR_MESSAGING_DESTINATION: self._topology.queue,
                ATTR_MESSAGING_OPERATION: "process",
                ATTR_MESSAGING_MESSAGE_ID: message.message_id or "",
                ATTR_MESSAGING_REDELIVERED: bool(message.redelivered),
                ATTR_MESSAGING_LINKED: reference is not None,
            },
            context=new_root_context(),
            links=links,
        ) as span:
            try:
                outcome = await self._process(message, span)
            except Exception as e:
                if message.processed:
                    raise
                outcome = await self._fail(message, None, e, span)
            if span is not None:
                span.set_attribute("messaging.outcome", outcome.value)
            return outcome

    async def _process(self, message: IncomingMessage, span: Span | None) -> HandleOutcome:
        try:
            order_id = ConfirmationEvent.order_id_from_body(message.body)
        except (ValueError, RecursionError):
            order_id = None

        if order_id is None:
            logger.warning(
                "Rejecting unreadable order.confirmed message %s",
                message.message_id,
                extra={"message_id": message.message_id},
            )
            await message.reject(requeue=False)
            self.redeliveries.forget(message)
            self._mark_error(span, "unreadable message")
            return HandleOutcome.REJECTED

        if span is not None:
            span.set_attribute(ATTR_ORDER_ID, order_id)
        logger.info(
            "Received order.confirmed message for order %s",
            order_id,
            extra={"order_id": order_id, "message_id": message.message_id},
        )

        try:
            document = await self._store.get(ORDERS_COLLECTION, order_id)
        except PersistenceError as e:
            return await self._fail(message, order_id, e, span)

        if document is None:
            logger.warning(
                "Order not found: %s, dropping message",
                order_id,
                extra={"order_id": order_id, "message_id": message.message_id},
            )
            await message.ack()
            self.redeliveries.forget(message)
            return HandleOutcome.DROPPED

        try:
            order = Order.from_document(document)
        except ValidationError:
            logger.error(
                "Stored order %s is not readable, rejecting message",
                order_id,
                exc_info=True,
                extra={"order_id": order_id},
            )
            await message.reject(requeue=False)
            self.redeliveries.forget(message)
            self._mark_error(span, "unreadable order")
            return HandleOutcome.REJECTED

        try:
            await self._send_confirmation(order)
        except Exception as e:
            return await self._fail(message, order_id, e, span)

        await message.ack()
        self.redeliveries.forget(message)
        logger.info(
            "Successfully processed order %s",
            order_id,
            extra={"order_id": order_id, "message_id": message.message_id},
        )
        return HandleOutcome.ACKED

    async def _send_confirmation(self, order: Order) -> None:
        email = ConfirmationEmail.render(
            order,
            sender=self._config.sender_address,
            shop_name=self._config.shop_name,
        )
        with self._tracer.span(
            "send_confirmation_email",
            {
                ATTR_ORDER_ID: order.id,
                ATTR_EMAIL_RECIPIENT: email.recipient,
                ATTR_EMAIL_SUBJECT: email.subject,
            },
        ):
            await self._sender.send(email)

    async def _fail(
        self,
        message: IncomingMessage,
        order_id: str | None,
        error: Exception,
        span: Span | None,
    ) -> HandleOutcome:
        failures = self.redeliveries.record_failure(message)
        self._mark_error(span, str(error), error)

        if self.redeliveries.exhausted(failures):
            logger.error(
                "Confirmation for order %s failed %d times, dead-lettering: %s",
                order_id,
                failures,
                error,
                exc_info=error,
                extra={"order_id": order_id, "message_id": message.message_id},
            )
            await message.reject(requeue=False)
            self.redeliveries.forget(message)
            return HandleOutcome.DEAD_LETTERED

        logger.warning(
            "Confirmation for order %s failed (%d), requeueing: %s",
            order_id,
            failures,
            error,
            extra={"order_id": order_id, "message_id": message.message_id},
        )
        await message.nack(requeue=True)
        return HandleOutcome.REQUEUED

    @staticmethod
    def _mark_error(span: Span | None, description: str, error: Exception | None = None) -> None:
        if span is None:
            return
        if error is not None:
            span.record_exception(error)
            span.set_attribute(ATTR_ERROR_TYPE, type(error).__name__)
        span.set_status(Status(StatusCode.ERROR, description))


__all__ = ["ConfirmationConsumer", "HandleOutcome", "RedeliveryTracker"]
