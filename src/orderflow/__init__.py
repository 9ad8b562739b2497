"""
orderflow - Traced order saga for a small shop.

This library provides:
- Order orchestrator (validate, price, charge, persist, publish) with an HTTP API
- Payment participant with bounded retries over a simulated gateway
- Confirmation consumer with bounded redelivery and a dead-letter queue
- W3C trace-context propagation: parent-child for RPC, links for messaging
- In-memory and SQLite document stores, in-memory and RabbitMQ brokers
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("orderflow")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from orderflow.broker import (
    BrokerTopology,
    InMemoryBroker,
    MessageBroker,
    RabbitMQBroker,
)
from orderflow.catalog import (
    HttpProductCatalog,
    InMemoryProductCatalog,
    Product,
    ProductCatalog,
)
from orderflow.config import (
    BrokerConfig,
    ConsumerConfig,
    GatewayConfig,
    PaymentConfig,
    Settings,
)
from orderflow.exceptions import (
    BrokerConnectionError,
    BrokerError,
    CatalogError,
    ClientError,
    ConfigurationError,
    DeclinedError,
    GatewayError,
    InvalidOrderTransitionError,
    NotFoundError,
    OrderFlowError,
    OrderNotFoundError,
    OrderValidationError,
    PaymentFailedError,
    PaymentServiceError,
    PersistenceError,
    ProductNotFoundError,
    PublishError,
)
from orderflow.models import (
    ChargeResult,
    ConfirmationEvent,
    CreateOrderRequest,
    Order,
    OrderStatus,
    PaymentAttempt,
    PaymentStatus,
)
from orderflow.notifications import (
    ConfirmationConsumer,
    ConfirmationEmail,
    HandleOutcome,
    LoggingEmailSender,
    RedeliveryTracker,
)
from orderflow.orders import CreateOrderResult, OrderOrchestrator, create_app
from orderflow.payment import (
    GatewayDecision,
    InProcessPaymentClient,
    PaymentClient,
    PaymentProcessor,
    SimulatedGateway,
)
from orderflow.stores import DocumentStore, InMemoryDocumentStore, SQLiteDocumentStore

__all__ = [
    "__version__",
    # Broker
    "BrokerTopology",
    "InMemoryBroker",
    "MessageBroker",
    "RabbitMQBroker",
    # Catalog
    "HttpProductCatalog",
    "InMemoryProductCatalog",
    "Product",
    "ProductCatalog",
    # Config
    "BrokerConfig",
    "ConsumerConfig",
    "GatewayConfig",
    "PaymentConfig",
    "Settings",
    # Exceptions
    "BrokerConnectionError",
    "BrokerError",
    "CatalogError",
    "ClientError",
    "ConfigurationError",
    "DeclinedError",
    "GatewayError",
    "InvalidOrderTransitionError",
    "NotFoundError",
    "OrderFlowError",
    "OrderNotFoundError",
    "OrderValidationError",
    "PaymentFailedError",
    "PaymentServiceError",
    "PersistenceError",
    "ProductNotFoundError",
    "PublishError",
    # Models
    "ChargeResult",
    "ConfirmationEvent",
    "CreateOrderRequest",
    "Order",
    "OrderStatus",
    "PaymentAttempt",
    "PaymentStatus",
    # Notifications
    "ConfirmationConsumer",
    "ConfirmationEmail",
    "HandleOutcome",
    "LoggingEmailSender",
    "RedeliveryTracker",
    # Orders
    "CreateOrderResult",
    "OrderOrchestrator",
    "create_app",
    # Payment
    "GatewayDecision",
    "InProcessPaymentClient",
    "PaymentClient",
    "PaymentProcessor",
    "SimulatedGateway",
    # Stores
    "DocumentStore",
    "InMemoryDocumentStore",
    "SQLiteDocumentStore",
]
