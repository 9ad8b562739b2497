"""
Shared pytest fixtures for the orderflow tests.

This module provides:
- OpenTelemetry fixtures (trace_exporter, get_spans, find_span, find_spans)
- Collaborator fixtures (catalog, store, broker, email sender)
- Payment fixtures with zero latency and zero backoff (make_processor, payment_client)
- Saga fixtures (orchestrator, consumer)
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable, Generator, Iterable
from typing import Any

import pytest
import pytest_asyncio
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from orderflow.broker import BrokerTopology, InMemoryBroker
from orderflow.catalog import InMemoryProductCatalog
from orderflow.config import ConsumerConfig, GatewayConfig, PaymentConfig
from orderflow.models import Order
from orderflow.notifications import ConfirmationConsumer, ConfirmationEmail
from orderflow.orders import OrderOrchestrator
from orderflow.payment import (
    GatewayDecision,
    InProcessPaymentClient,
    PaymentProcessor,
    ScriptedDecision,
    SimulatedGateway,
)
from orderflow.stores import InMemoryDocumentStore

# ============================================================================
# OpenTelemetry Fixtures
# ============================================================================

_exporter = InMemorySpanExporter()


@pytest.fixture(scope="session", autouse=True)
def setup_test_tracing() -> Generator[Any, None, None]:
    """
    Install a global TracerProvider exporting to memory, once per session.

    If another provider is already installed it is reused when it is an SDK
    provider.
    """
    current = trace.get_tracer_provider()
    if isinstance(current, TracerProvider):
        provider = current
    else:
        provider = TracerProvider()
        trace.set_tracer_provider(provider)
    provider.add_span_processor(SimpleSpanProcessor(_exporter))
    yield provider


@pytest.fixture
def trace_exporter(setup_test_tracing: Any) -> Generator[InMemorySpanExporter, None, None]:
    """In-memory exporter, cleared before and after each test."""
    _exporter.clear()
    yield _exporter
    _exporter.clear()


@pytest.fixture
def get_spans(trace_exporter: InMemorySpanExporter) -> Callable[[], list[Any]]:
    def _get_spans() -> list[Any]:
        return list(trace_exporter.get_finished_spans())

    return _get_spans


@pytest.fixture
def find_span(get_spans: Callable[[], list[Any]]) -> Callable[[str], Any | None]:
    """Find the first finished span whose name contains a substring."""

    def _find_span(name_contains: str) -> Any | None:
        return next((s for s in get_spans() if name_contains in s.name), None)

    return _find_span


@pytest.fixture
def find_spans(get_spans: Callable[[], list[Any]]) -> Callable[[str], list[Any]]:
    def _find_spans(name_contains: str) -> list[Any]:
        return [s for s in get_spans() if name_contains in s.name]

    return _find_spans


# ============================================================================
# Collaborator Fixtures
# ============================================================================


class RecordingEmailSender:
    """Email sender that records deliveries and can be told to fail."""

    def __init__(self) -> None:
        self.sent: list[ConfirmationEmail] = []
        self.failures_left = 0
        self.error: Exception = ConnectionError("SMTP relay unavailable")
        self.calls = 0

    def fail_next(self, times: int = 1, error: Exception | None = None) -> None:
        self.failures_left = times
        if error is not None:
            self.error = error

    async def send(self, email: ConfirmationEmail) -> None:
        self.calls += 1
        if self.failures_left != 0:
            if self.failures_left > 0:
                self.failures_left -= 1
            raise self.error
        self.sent.append(email)


@pytest.fixture
def catalog() -> InMemoryProductCatalog:
    return InMemoryProductCatalog()


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def topology() -> BrokerTopology:
    return BrokerTopology()


@pytest_asyncio.fixture
async def broker(topology: BrokerTopology) -> AsyncGenerator[InMemoryBroker, None]:
    broker = InMemoryBroker()
    await broker.connect()
    await broker.declare_topology(topology)
    yield broker
    await broker.close()


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


# ============================================================================
# Payment Fixtures
# ============================================================================

FAST_GATEWAY = GatewayConfig(min_latency=0.0, max_latency=0.0)


def fast_payment_config(**overrides: Any) -> PaymentConfig:
    """PaymentConfig with zero backoff unless overridden."""
    values: dict[str, Any] = {"backoff_base": 0.0, "backoff_max": 0.0}
    values.update(overrides)
    return PaymentConfig(**values)


@pytest.fixture
def make_processor() -> Callable[..., PaymentProcessor]:
    """
    Build a PaymentProcessor whose gateway replays the given outcomes.

    Example:
        >>> processor = make_processor([GatewayError("boom"), GatewayDecision.APPROVED])
    """

    def _make(
        outcomes: Iterable[GatewayDecision | BaseException] = (GatewayDecision.APPROVED,),
        **config: Any,
    ) -> PaymentProcessor:
        gateway = SimulatedGateway(FAST_GATEWAY, ScriptedDecision(outcomes))
        return PaymentProcessor(gateway, fast_payment_config(**config))

    return _make


@pytest.fixture
def payment_outcomes() -> list[GatewayDecision | BaseException]:
    """Gateway script used by the orchestrator fixture; override per module."""
    return [GatewayDecision.APPROVED]


@pytest.fixture
def payment_client(
    make_processor: Callable[..., PaymentProcessor],
    payment_outcomes: list[GatewayDecision | BaseException],
) -> InProcessPaymentClient:
    return InProcessPaymentClient(make_processor(payment_outcomes))


# ============================================================================
# Saga Fixtures
# ============================================================================


@pytest.fixture
def orchestrator(
    catalog: InMemoryProductCatalog,
    store: InMemoryDocumentStore,
    payment_client: InProcessPaymentClient,
    broker: InMemoryBroker,
    topology: BrokerTopology,
) -> OrderOrchestrator:
    return OrderOrchestrator(catalog, store, payment_client, broker, topology=topology)


@pytest.fixture
def consumer_config() -> ConsumerConfig:
    return ConsumerConfig(max_redeliveries=3)


@pytest.fixture
def consumer(
    store: InMemoryDocumentStore,
    email_sender: RecordingEmailSender,
    broker: InMemoryBroker,
    consumer_config: ConsumerConfig,
    topology: BrokerTopology,
) -> ConfirmationConsumer:
    return ConfirmationConsumer(
        store, email_sender, broker, config=consumer_config, topology=topology
    )


@pytest.fixture
def make_order() -> Callable[..., Order]:
    def _make(**overrides: Any) -> Order:
        values: dict[str, Any] = {
            "product_id": "1",
            "product_name": "Windsurf Laptop Pro",
            "quantity": 2,
            "amount": "2599.98",
            "customer_email": "a@b.com",
        }
        values.update(overrides)
        return Order(**values)

    return _make
