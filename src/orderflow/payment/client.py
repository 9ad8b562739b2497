"""
Client side of the payment RPC boundary.

The orchestrator only talks to ``PaymentClient``. ``InProcessPaymentClient``
calls a local PaymentProcessor while still behaving like a remote call: it
opens a CLIENT span, sends the W3C trace context as call metadata and turns
any failure of the call itself into PaymentServiceError.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Protocol, runtime_checkable

from orderflow.exceptions import PaymentServiceError
from orderflow.models import ChargeResult
from orderflow.observability import (
    ATTR_ORDER_ID,
    ATTR_PAYMENT_AMOUNT,
    ATTR_PAYMENT_CURRENCY,
    ATTR_PAYMENT_STATUS,
    ATTR_PAYMENT_TRANSACTION_ID,
    SpanKindEnum,
    Tracer,
    create_tracer,
    inject_headers,
)
from orderflow.payment.processor import PaymentProcessor

logger = logging.getLogger(__name__)


@runtime_checkable
class PaymentClient(Protocol):
    """Synchronous request/response interface to the payment participant."""

    async def charge(self, order_id: str, amount: Decimal, currency: str) -> ChargeResult:
        """
        Request a charge.

        Raises:
            PaymentServiceError: If the call itself fails
        """
        ...


class InProcessPaymentClient:
    """
    PaymentClient calling a PaymentProcessor in the same process.

    Args:
        processor: The payment participant
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to create OpenTelemetry spans (ignored if tracer given)
    """

    def __init__(
        self,
        processor: PaymentProcessor,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._processor = processor
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    async def charge(self, order_id: str, amount: Decimal, currency: str) -> ChargeResult:
        with self._tracer.span_with_kind(
            "payment.Charge",
            SpanKindEnum.CLIENT,
            {
                ATTR_ORDER_ID: order_id,
                ATTR_PAYMENT_AMOUNT: float(amount),
                ATTR_PAYMENT_CURRENCY: currency,
            },
        ) as span:
            metadata = inject_headers({})
            try:
                result = await self._processor.charge(
                    order_id, amount, currency, metadata=metadata
                )
            except Exception as e:
                logger.error(
                    "Payment call failed for order %s: %s",
                    order_id,
                    e,
                    exc_info=True,
                    extra={"order_id": order_id},
                )
                raise PaymentServiceError(order_id, str(e)) from e

            if span is not None:
                span.set_attribute(ATTR_PAYMENT_STATUS, result.status.value)
                span.set_attribute(ATTR_PAYMENT_TRANSACTION_ID, result.transaction_id)
            return result


__all__ = ["PaymentClient", "InProcessPaymentClient"]
