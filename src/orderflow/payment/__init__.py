"""
Payment participant of the order saga.

Example:
    >>> from orderflow.payment import InProcessPaymentClient, PaymentProcessor
    >>>
    >>> client = InProcessPaymentClient(PaymentProcessor())
    >>> result = await client.charge(order_id, amount, "USD")
"""

from orderflow.payment.client import InProcessPaymentClient, PaymentClient
from orderflow.payment.gateway import (
    DecisionFunc,
    GatewayDecision,
    RandomDecision,
    ScriptedDecision,
    SimulatedGateway,
)
from orderflow.payment.processor import APPROVED_MESSAGE, DECLINED_MESSAGE, PaymentProcessor

__all__ = [
    "APPROVED_MESSAGE",
    "DECLINED_MESSAGE",
    "DecisionFunc",
    "GatewayDecision",
    "InProcessPaymentClient",
    "PaymentClient",
    "PaymentProcessor",
    "RandomDecision",
    "ScriptedDecision",
    "SimulatedGateway",
]
