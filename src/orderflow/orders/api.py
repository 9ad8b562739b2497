"""
HTTP surface of the order service (FastAPI).

Routes:
    POST /order        place an order
    GET  /order/{id}   read an order
    GET  /health       liveness and collaborator connectivity

Errors are mapped from the exception hierarchy: client errors to 400,
not-found errors to 404 and everything else to 500, always as
``{"error": ...}`` bodies.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from orderflow.broker import BrokerTopology, RabbitMQBroker
from orderflow.catalog import HttpProductCatalog, InMemoryProductCatalog, ProductCatalog
from orderflow.config import Settings
from orderflow.exceptions import (
    NotFoundError,
    OrderFlowError,
    OrderNotFoundError,
    OrderValidationError,
    PaymentFailedError,
    ProductNotFoundError,
)
from orderflow.observability import configure_logging
from orderflow.orders.orchestrator import OrderOrchestrator
from orderflow.payment import InProcessPaymentClient, PaymentProcessor, SimulatedGateway
from orderflow.stores import SQLiteDocumentStore

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, /, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


async def _build_orchestrator(settings: Settings, stack: AsyncExitStack) -> OrderOrchestrator:
    """Wire the production collaborators; everything opened is closed by ``stack``."""
    tracing = settings.enable_tracing

    store = SQLiteDocumentStore(settings.database_path, enable_tracing=tracing)
    await store.connect()
    stack.push_async_callback(store.close)

    broker = RabbitMQBroker(settings.broker)
    await broker.connect()
    stack.push_async_callback(broker.close)
    topology = BrokerTopology()
    await broker.declare_topology(topology)

    catalog: ProductCatalog
    if settings.catalog_url:
        http_catalog = HttpProductCatalog(settings.catalog_url, enable_tracing=tracing)
        stack.push_async_callback(http_catalog.close)
        catalog = http_catalog
    else:
        catalog = InMemoryProductCatalog()

    processor = PaymentProcessor(
        SimulatedGateway(settings.gateway, enable_tracing=tracing),
        settings.payment,
        enable_tracing=tracing,
    )
    return OrderOrchestrator(
        catalog,
        store,
        InProcessPaymentClient(processor, enable_tracing=tracing),
        broker,
        currency=settings.payment.currency,
        topology=topology,
        enable_tracing=tracing,
    )


def create_app(
    orchestrator: OrderOrchestrator | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        orchestrator: Ready orchestrator to serve. When omitted the lifespan
            builds one from ``settings`` (SQLite store, RabbitMQ broker,
            in-memory or HTTP catalog, in-process payment client).
        settings: Settings to use (defaults to Settings.from_env())
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            if app.state.orchestrator is None:
                app.state.orchestrator = await _build_orchestrator(settings, stack)
            logger.info("Order service %s started", settings.service_version)
            yield
        logger.info("Order service stopped")

    app = FastAPI(title="Order Service", version=settings.service_version, lifespan=lifespan)
    app.state.orchestrator = orchestrator
    app.state.settings = settings

    @app.exception_handler(OrderValidationError)
    async def _validation_error(request: Request, exc: OrderValidationError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(PaymentFailedError)
    async def _payment_failed(request: Request, exc: PaymentFailedError) -> JSONResponse:
        return _error(
            400,
            "Payment declined",
            orderId=exc.order_id,
            status=exc.status,
            message=exc.payment_message,
        )

    @app.exception_handler(ProductNotFoundError)
    async def _product_not_found(request: Request, exc: ProductNotFoundError) -> JSONResponse:
        return _error(404, "Product not found")

    @app.exception_handler(OrderNotFoundError)
    async def _order_not_found(request: Request, exc: OrderNotFoundError) -> JSONResponse:
        return _error(404, "Order not found")

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(404, str(exc))

    @app.exception_handler(OrderFlowError)
    async def _server_error(request: Request, exc: OrderFlowError) -> JSONResponse:
        logger.error(
            "Request %s %s failed: %s",
            request.method,
            request.url.path,
            exc,
            exc_info=exc,
        )
        if request.method == "GET":
            return _error(500, "Failed to fetch order")
        return _error(500, "Failed to process order")

    def _orchestrator(request: Request) -> OrderOrchestrator:
        return request.app.state.orchestrator

    @app.post("/order", status_code=201)
    async def create_order(request: Request) -> JSONResponse:
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _error(400, "Invalid JSON body")
        if not isinstance(payload, dict):
            return _error(400, "Missing required parameters")

        result = await _orchestrator(request).create_order(
            payload.get("productId"),
            payload.get("quantity"),
            payload.get("customerEmail"),
            trace_headers=request.headers,
        )
        return JSONResponse(
            status_code=201,
            content={
                "id": result.order_id,
                "status": result.status.value,
                "paymentId": result.payment_id,
            },
        )

    @app.get("/order/{order_id}")
    async def get_order(order_id: str, request: Request) -> JSONResponse:
        order = await _orchestrator(request).get_order(order_id, trace_headers=request.headers)
        return JSONResponse(content=order.to_document())

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        orchestrator = request.app.state.orchestrator
        store_ok = False
        broker_ok = False
        if orchestrator is not None:
            store_ok = await orchestrator.store.ping()
            broker_ok = orchestrator.broker.is_connected
        return {
            "status": "UP",
            "version": settings.service_version,
            "connections": {"store": store_ok, "broker": broker_ok},
        }

    return app


def main() -> None:
    """Run the order service with uvicorn."""
    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings=settings), host=settings.http_host, port=settings.http_port)


__all__ = ["create_app", "main"]
