"""
Order orchestration.

Example:
    >>> from orderflow.orders import OrderOrchestrator
    >>>
    >>> orchestrator = OrderOrchestrator(catalog, store, payments, broker)
    >>> result = await orchestrator.create_order("1", 2, "a@b.com")
"""

from orderflow.orders.api import create_app
from orderflow.orders.orchestrator import CreateOrderResult, OrderOrchestrator

__all__ = ["CreateOrderResult", "OrderOrchestrator", "create_app"]
