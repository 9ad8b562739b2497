"""
Message broker interface.

The saga publishes confirmation messages to a topic exchange and consumes
them from a durable queue with manual acknowledgement. Handlers receive an
``IncomingMessage`` and are responsible for settling it exactly once with
``ack``, ``nack`` or ``reject``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

ORDERS_EXCHANGE = "orders"
ORDER_CONFIRMED_ROUTING_KEY = "order.confirmed"
ORDER_CONFIRMED_QUEUE = "order.confirmed"
DELIVERY_COUNT_HEADER = "x-delivery-count"


@dataclass(frozen=True)
class BrokerTopology:
    """
    Exchange, queue and binding used by the confirmation flow.

    When ``enable_dlq`` is set the queue is declared with dead-letter
    arguments pointing at ``{exchange}.dlx``, which routes rejected
    messages into ``{queue}.dlq``.

    Attributes:
        exchange: Name of the topic exchange orders are published to
        exchange_type: AMQP exchange type
        queue: Name of the consumer queue
        routing_key: Binding key of the queue
        durable: Survive broker restarts
        enable_dlq: Declare the dead-letter exchange and queue
    """

    exchange: str = ORDERS_EXCHANGE
    exchange_type: str = "topic"
    queue: str = ORDER_CONFIRMED_QUEUE
    routing_key: str = ORDER_CONFIRMED_ROUTING_KEY
    durable: bool = True
    enable_dlq: bool = True

    @property
    def dlq_exchange(self) -> str:
        return f"{self.exchange}.dlx"

    @property
    def dlq_queue(self) -> str:
        return f"{self.queue}.dlq"

    def queue_arguments(self) -> dict[str, Any] | None:
        """Arguments for the consumer queue declaration."""
        if not self.enable_dlq:
            return None
        return {
            "x-dead-letter-exchange": self.dlq_exchange,
            "x-dead-letter-routing-key": self.queue,
        }


@runtime_checkable
class IncomingMessage(Protocol):
    """
    A delivered message awaiting settlement.

    aio-pika's ``AbstractIncomingMessage`` satisfies this protocol, as does
    the in-memory broker's message type.
    """

    @property
    def body(self) -> bytes: ...

    @property
    def headers(self) -> Mapping[str, Any]: ...

    @property
    def message_id(self) -> str | None: ...

    @property
    def routing_key(self) -> str | None: ...

    @property
    def redelivered(self) -> bool | None: ...

    @property
    def processed(self) -> bool: ...

    async def ack(self, multiple: bool = False) -> None: ...

    async def nack(self, multiple: bool = False, requeue: bool = True) -> None: ...

    async def reject(self, requeue: bool = False) -> None: ...


MessageHandler = Callable[[IncomingMessage], Awaitable[Any]]


class MessageBroker(ABC):
    """
    Abstract base class for message brokers.

    Implementations:
    - InMemoryBroker: For testing and development
    - RabbitMQBroker: aio-pika backed production broker
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Open the broker connection.

        Raises:
            BrokerConnectionError: If the broker cannot be reached
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection. Safe to call multiple times."""
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """True while the broker connection is open."""
        pass

    @abstractmethod
    async def declare_topology(self, topology: BrokerTopology) -> None:
        """
        Declare the exchange, queue, binding and dead-letter resources.

        Declarations are idempotent and are replayed after a reconnect.
        """
        pass

    @abstractmethod
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
        """
        Publish a persistent message.

        Raises:
            PublishError: If the broker did not accept the message
        """
        pass

    @abstractmethod
    async def consume(
        self,
        queue: str,
        handler: MessageHandler,
        *,
        prefetch: int = 1,
    ) -> None:
        """
        Deliver messages from ``queue`` to ``handler`` one at a time.

        Runs until ``stop_consuming()`` is called. A handler that returns
        without settling its message, or raises, gets the message requeued.
        """
        pass

    @abstractmethod
    async def stop_consuming(self) -> None:
        """Make a running ``consume()`` return after the current message."""
        pass

    async def __aenter__(self) -> MessageBroker:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()


def delivery_count(message: IncomingMessage) -> int:
    """Broker-reported delivery count (``x-delivery-count``), 0 when absent."""
    headers = message.headers or {}
    value = headers.get(DELIVERY_COUNT_HEADER)
    if value is None:
        return 0
    try:
        return int(str(value))
    except ValueError:
        return 0


__all__ = [
    "BrokerTopology",
    "IncomingMessage",
    "MessageHandler",
    "MessageBroker",
    "delivery_count",
    "ORDERS_EXCHANGE",
    "ORDER_CONFIRMED_ROUTING_KEY",
    "ORDER_CONFIRMED_QUEUE",
    "DELIVERY_COUNT_HEADER",
]
