"""
Message brokers for the confirmation flow.

Example:
    >>> from orderflow.broker import BrokerTopology, InMemoryBroker
    >>>
    >>> broker = InMemoryBroker()
    >>> await broker.connect()
    >>> await broker.declare_topology(BrokerTopology())
"""

from orderflow.broker.interface import (
    DELIVERY_COUNT_HEADER,
    ORDER_CONFIRMED_QUEUE,
    ORDER_CONFIRMED_ROUTING_KEY,
    ORDERS_EXCHANGE,
    BrokerTopology,
    IncomingMessage,
    MessageBroker,
    MessageHandler,
    delivery_count,
)
from orderflow.broker.memory import (
    InMemoryBroker,
    InMemoryMessage,
    PublishedMessage,
    topic_matches,
)
from orderflow.broker.rabbitmq import RabbitMQBroker

__all__ = [
    "BrokerTopology",
    "DELIVERY_COUNT_HEADER",
    "IncomingMessage",
    "InMemoryBroker",
    "InMemoryMessage",
    "MessageBroker",
    "MessageHandler",
    "ORDERS_EXCHANGE",
    "ORDER_CONFIRMED_QUEUE",
    "ORDER_CONFIRMED_ROUTING_KEY",
    "PublishedMessage",
    "RabbitMQBroker",
    "delivery_count",
    "topic_matches",
]
