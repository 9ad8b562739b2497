"""In-memory message broker implementation.

This module provides an in-process broker that mimics the parts of AMQP the
saga relies on: topic exchanges, durable queues, manual acknowledgement,
requeue on nack and dead-lettering on reject.

Suitable for development and testing. Messages are lost when the process
terminates.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from orderflow.broker.interface import (
    DELIVERY_COUNT_HEADER,
    BrokerTopology,
    IncomingMessage,
    MessageBroker,
    MessageHandler,
)
from orderflow.exceptions import BrokerError, PublishError

logger = logging.getLogger(__name__)


def topic_matches(pattern: str, routing_key: str) -> bool:
    """
    AMQP topic matching.

    ``*`` matches exactly one word and ``#`` matches zero or more words.
    """
    return _match(pattern.split("."), routing_key.split("."))


def _match(pattern: list[str], words: list[str]) -> bool:
    if not pattern:
        return not words
    head, rest = pattern[0], pattern[1:]
    if head == "#":
        return any(_match(rest, words[i:]) for i in range(len(words) + 1))
    if not words:
        return False
    if head == "*" or head == words[0]:
        return _match(rest, words[1:])
    return False


@dataclass(frozen=True)
class PublishedMessage:
    """A message accepted by ``InMemoryBroker.publish``."""

    exchange: str
    routing_key: str
    body: bytes
    headers: dict[str, Any]
    message_id: str | None
    timestamp: datetime | None
    content_type: str


@dataclass
class _Queue:
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    messages: deque[InMemoryMessage] = field(default_factory=deque)
    available: asyncio.Event = field(default_factory=asyncio.Event)


class InMemoryMessage:
    """
    Delivered message with AMQP-like settlement.

    Settling twice raises BrokerError, as aio-pika does.
    """

    def __init__(
        self,
        broker: InMemoryBroker,
        queue: str,
        published: PublishedMessage,
        *,
        redelivered: bool = False,
        delivery_count: int = 0,
    ) -> None:
        self._broker = broker
        self._queue = queue
        self._published = published
        self._redelivered = redelivered
        self._delivery_count = delivery_count
        self._headers = dict(published.headers)
        if delivery_count:
            self._headers[DELIVERY_COUNT_HEADER] = delivery_count
        self._processed = False
        self.outcome: str | None = None

    @property
    def body(self) -> bytes:
        return self._published.body

    @property
    def headers(self) -> Mapping[str, Any]:
        return self._headers

    @property
    def message_id(self) -> str | None:
        return self._published.message_id

    @property
    def routing_key(self) -> str | None:
        return self._published.routing_key

    @property
    def timestamp(self) -> datetime | None:
        return self._published.timestamp

    @property
    def content_type(self) -> str:
        return self._published.content_type

    @property
    def redelivered(self) -> bool:
        return self._redelivered

    @property
    def processed(self) -> bool:
        return self._processed

    def _settle(self, outcome: str) -> None:
        if self._processed:
            raise BrokerError(f"Message {self.message_id} was already {self.outcome}")
        self._processed = True
        self.outcome = outcome

    async def ack(self, multiple: bool = False) -> None:
        self._settle("acked")

    async def nack(self, multiple: bool = False, requeue: bool = True) -> None:
        self._settle("requeued" if requeue else "dead-lettered")
        if requeue:
            self._broker._requeue(self._queue, self)
        else:
            self._broker._dead_letter(self._queue, self)

    async def reject(self, requeue: bool = False) -> None:
        await self.nack(requeue=requeue)

    def _redelivery(self) -> InMemoryMessage:
        return InMemoryMessage(
            self._broker,
            self._queue,
            self._published,
            redelivered=True,
            delivery_count=self._delivery_count + 1,
        )


class InMemoryBroker(MessageBroker):
    """
    In-process broker for tests and local runs.

    Every accepted publish is recorded in ``published``. Setting
    ``publish_available`` to False makes ``publish`` raise PublishError.
    ``drain()`` processes queued messages without a background task.

    Example:
        >>> broker = InMemoryBroker()
        >>> await broker.connect()
        >>> await broker.declare_topology(BrokerTopology())
        >>> await broker.publish("orders", "order.confirmed", b"{}")
        >>> await broker.drain("order.confirmed", handler)
    """

    def __init__(self) -> None:
        self._connected = False
        self._exchanges: dict[str, str] = {}
        self._bindings: list[tuple[str, str, str]] = []
        self._queues: dict[str, _Queue] = {}
        self._consuming = False
        self.published: list[PublishedMessage] = []
        self.publish_available = True

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._connected = True

    async def close(self) -> None:
        self._consuming = False
        for queue in self._queues.values():
            queue.available.set()
        self._connected = False

    async def declare_topology(self, topology: BrokerTopology) -> None:
        if topology.enable_dlq:
            self._exchanges[topology.dlq_exchange] = "direct"
            self._declare_queue(topology.dlq_queue, {})
            self._bind(topology.dlq_exchange, topology.dlq_queue, topology.queue)

        self._exchanges[topology.exchange] = topology.exchange_type
        self._declare_queue(topology.queue, topology.queue_arguments() or {})
        self._bind(topology.exchange, topology.queue, topology.routing_key)

    def _declare_queue(self, name: str, arguments: dict[str, Any]) -> None:
        if name not in self._queues:
            self._queues[name] = _Queue(name, dict(arguments))

    def _bind(self, exchange: str, queue: str, key: str) -> None:
        binding = (exchange, queue, key)
        if binding not in self._bindings:
            self._bindings.append(binding)

    async def publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes,
        *,
        headers: Mapping[str, Any] | None = None,
        message_id: str | None = None,
        timestamp: datetime | None = None,
        content_type: str = "application/json",
    ) -> None:
        if not self._connected or not self.publish_available:
            raise PublishError(exchange, routing_key, "broker unavailable")
        if exchange not in self._exchanges:
            raise PublishError(exchange, routing_key, "exchange not declared")

        message = PublishedMessage(
            exchange=exchange,
            routing_key=routing_key,
            body=body,
            headers=dict(headers or {}),
            message_id=message_id,
            timestamp=timestamp or datetime.now(UTC),
            content_type=content_type,
        )
        self.published.append(message)
        self._route(message)

    def _route(self, message: PublishedMessage) -> None:
        exchange_type = self._exchanges.get(message.exchange, "topic")
        for exchange, queue_name, key in self._bindings:
            if exchange != message.exchange:
                continue
            if exchange_type == "fanout":
                matched = True
            elif exchange_type == "topic":
                matched = topic_matches(key, message.routing_key)
            else:
                matched = key == message.routing_key
            if matched:
                queue = self._queues[queue_name]
                queue.messages.append(InMemoryMessage(self, queue_name, message))
                queue.available.set()

    def _requeue(self, queue_name: str, message: InMemoryMessage) -> None:
        queue = self._queues[queue_name]
        queue.messages.appendleft(message._redelivery())
        queue.available.set()

    def _dead_letter(self, queue_name: str, message: InMemoryMessage) -> None:
        arguments = self._queues[queue_name].arguments
        dlx = arguments.get("x-dead-letter-exchange")
        if not dlx:
            logger.debug("Discarding message %s from %s", message.message_id, queue_name)
            return
        original = message._published
        headers = dict(original.headers)
        headers["x-first-death-queue"] = queue_name
        headers["x-first-death-reason"] = "rejected"
        self._route(
            PublishedMessage(
                exchange=dlx,
                routing_key=arguments.get("x-dead-letter-routing-key", original.routing_key),
                body=original.body,
                headers=headers,
                message_id=original.message_id,
                timestamp=original.timestamp,
                content_type=original.content_type,
            )
        )

    def messages(self, queue: str) -> list[InMemoryMessage]:
        """Messages currently waiting in ``queue``."""
        return list(self._queues[queue].messages)

    def queue_depth(self, queue: str) -> int:
        return len(self._queues[queue].messages)

    async def _deliver(self, handler: MessageHandler, message: IncomingMessage) -> None:
        try:
            await handler(message)
        except Exception as e:
            logger.error(
                "Handler failed for message %s: %s",
                message.message_id,
                e,
                exc_info=True,
                extra={"message_id": message.message_id},
            )
        if not message.processed:
            await message.nack(requeue=True)

    async def drain(
        self,
        queue: str,
        handler: MessageHandler,
        *,
        max_messages: int | None = None,
    ) -> int:
        """
        Deliver queued messages until the queue is empty.

        Requeued messages are delivered again within the same call, so pass
        ``max_messages`` when the handler may requeue forever.

        Returns:
            Number of deliveries made
        """
        state = self._queues[queue]
        delivered = 0
        while state.messages and (max_messages is None or delivered < max_messages):
            message = state.messages.popleft()
            await self._deliver(handler, message)
            delivered += 1
        return delivered

    async def consume(
        self,
        queue: str,
        handler: MessageHandler,
        *,
        prefetch: int = 1,
    ) -> None:
        if queue not in self._queues:
            raise BrokerError(f"Queue not declared: {queue}")
        state = self._queues[queue]
        self._consuming = True
        while self._consuming:
            if not state.messages:
                state.available.clear()
                await state.available.wait()
                continue
            message = state.messages.popleft()
            await self._deliver(handler, message)

    async def stop_consuming(self) -> None:
        self._consuming = False
        for queue in self._queues.values():
            queue.available.set()


__all__ = ["InMemoryBroker", "InMemoryMessage", "PublishedMessage", "topic_matches"]
