"""
Payment participant: charges an amount with bounded retries.

A ``charge`` call generates one transaction id and makes up to
``PaymentConfig.max_attempts`` sequential gateway calls with linear backoff
between them. Approval stops immediately. A business decline is terminal
unless ``retry_declines`` is set. Gateway failures are retried until the
attempts run out and then reported as ``ERROR``.

The processor keeps no state between calls.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from decimal import Decimal
from typing import Any
from uuid import uuid4

from opentelemetry.trace import Status, StatusCode

from orderflow.config import PaymentConfig
from orderflow.exceptions import DeclinedError
from orderflow.models import AttemptOutcome, ChargeResult, PaymentAttempt, PaymentStatus
from orderflow.observability import (
    ATTR_ERROR_TYPE,
    ATTR_ORDER_ID,
    ATTR_PAYMENT_AMOUNT,
    ATTR_PAYMENT_ATTEMPT,
    ATTR_PAYMENT_CURRENCY,
    ATTR_PAYMENT_STATUS,
    ATTR_PAYMENT_TRANSACTION_ID,
    SpanKindEnum,
    Tracer,
    create_tracer,
    extract_continuation,
)
from orderflow.payment.gateway import GatewayDecision, SimulatedGateway

logger = logging.getLogger(__name__)

APPROVED_MESSAGE = "Payment approved"
DECLINED_MESSAGE = "Payment declined by processor"


class PaymentProcessor:
    """
    Charges amounts through a gateway with a bounded retry loop.

    Args:
        gateway: Gateway used for authorizations
        config: Retry policy (defaults to PaymentConfig())
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to create OpenTelemetry spans (ignored if tracer given)

    Example:
        >>> processor = PaymentProcessor(SimulatedGateway())
        >>> result = await processor.charge("order-1", Decimal("10.00"), "USD")
        >>> result.status
        <PaymentStatus.APPROVED: 'APPROVED'>
    """

    def __init__(
        self,
        gateway: SimulatedGateway | None = None,
        config: PaymentConfig | None = None,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._gateway = gateway or SimulatedGateway(enable_tracing=enable_tracing)
        self._config = config or PaymentConfig()
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    @property
    def config(self) -> PaymentConfig:
        return self._config

    async def charge(
        self,
        order_id: str,
        amount: Decimal,
        currency: str,
        *,
        metadata: Mapping[str, Any] | None = None,
    ) -> ChargeResult:
        """
        Charge ``amount`` for ``order_id``.

        Never raises for gateway outcomes; every outcome is reported in the
        returned ChargeResult.

        Args:
            order_id: Order being paid for
            amount: Amount to charge
            currency: Currency code
            metadata: RPC call metadata; a traceparent entry continues the
                caller's trace

        Returns:
            ChargeResult with status APPROVED, DECLINED or ERROR
        """
        transaction_id = str(uuid4())
        continuation = extract_continuation(metadata)

        with self._tracer.span_with_kind(
            "payment.process",
            SpanKindEnum.SERVER,
            {
                ATTR_ORDER_ID: order_id,
                ATTR_PAYMENT_TRANSACTION_ID: transaction_id,
                ATTR_PAYMENT_AMOUNT: float(amount),
                ATTR_PAYMENT_CURRENCY: currency,
            },
            context=continuation.to_context() if continuation else None,
        ) as span:
            logger.info(
                "Processing payment %s for order %s: %s %s",
                transaction_id,
                order_id,
                amount,
                currency,
                extra={"transaction_id": transaction_id, "order_id": order_id},
            )
            result = await self._run_attempts(order_id, amount, currency, transaction_id)

            if span is not None:
                span.set_attribute(ATTR_PAYMENT_STATUS, result.status.value)
                if result.status is PaymentStatus.ERROR:
                    span.set_status(Status(StatusCode.ERROR, result.message))
            return result

    async def _run_attempts(
        self,
        order_id: str,
        amount: Decimal,
        currency: str,
        transaction_id: str,
    ) -> ChargeResult:
        attempts: list[PaymentAttempt] = []
        last_error: Exception | None = None
        max_attempts = self._config.max_attempts

        for attempt in range(1, max_attempts + 1):
            outcome, error = await self._attempt(order_id, amount, transaction_id, attempt)
            attempts.append(
                PaymentAttempt(
                    transaction_id=transaction_id,
                    order_id=order_id,
                    amount=amount,
                    currency=currency,
                    attempt_number=attempt,
                    outcome=outcome,
                    error=str(error) if error else None,
                )
            )

            if outcome is AttemptOutcome.APPROVED:
                logger.info(
                    "Payment %s approved on attempt %d",
                    transaction_id,
                    attempt,
                    extra={"transaction_id": transaction_id, "attempt": attempt},
                )
                return ChargeResult(
                    status=PaymentStatus.APPROVED,
                    transaction_id=transaction_id,
                    message=APPROVED_MESSAGE,
                    attempts=attempts,
                )

            if outcome is AttemptOutcome.DECLINED:
                if not self._config.retry_declines:
                    logger.info(
                        "Payment %s declined on attempt %d",
                        transaction_id,
                        attempt,
                        extra={"transaction_id": transaction_id, "attempt": attempt},
                    )
                    return ChargeResult(
                        status=PaymentStatus.DECLINED,
                        transaction_id=transaction_id,
                        message=DECLINED_MESSAGE,
                        attempts=attempts,
                    )
                last_error = DeclinedError(transaction_id, attempt)
            else:
                last_error = error

            if attempt < max_attempts:
                delay = self._config.backoff_delay(attempt)
                logger.warning(
                    "Payment %s attempt %d/%d failed, retrying in %.2fs: %s",
                    transaction_id,
                    attempt,
                    max_attempts,
                    delay,
                    last_error,
                    extra={"transaction_id": transaction_id, "attempt": attempt},
                )
                await asyncio.sleep(delay)

        logger.error(
            "Payment %s failed after %d attempts: %s",
            transaction_id,
            max_attempts,
            last_error,
            extra={"transaction_id": transaction_id, "order_id": order_id},
        )
        return ChargeResult(
            status=PaymentStatus.ERROR,
            transaction_id=transaction_id,
            message=f"Payment processing failed after {max_attempts} attempts",
            attempts=attempts,
        )

    async def _attempt(
        self,
        order_id: str,
        amount: Decimal,
        transaction_id: str,
        attempt: int,
    ) -> tuple[AttemptOutcome, Exception | None]:
        """Make one gateway call and classify its outcome."""
        with self._tracer.span(
            "payment.attempt",
            {
                ATTR_ORDER_ID: order_id,
                ATTR_PAYMENT_TRANSACTION_ID: transaction_id,
                ATTR_PAYMENT_ATTEMPT: attempt,
            },
        ) as span:
            logger.debug(
                "Payment %s attempt %d",
                transaction_id,
                attempt,
                extra={"transaction_id": transaction_id, "attempt": attempt},
            )
            try:
                decision = await self._gateway.authorize(amount)
            except Exception as e:
                if span is not None:
                    span.record_exception(e)
                    span.set_attribute(ATTR_ERROR_TYPE, type(e).__name__)
                    span.set_attribute(ATTR_PAYMENT_STATUS, AttemptOutcome.GATEWAY_ERROR.value)
                return AttemptOutcome.GATEWAY_ERROR, e

            outcome = (
                AttemptOutcome.APPROVED
                if decision is GatewayDecision.APPROVED
                else AttemptOutcome.DECLINED
            )
            if span is not None:
                span.set_attribute(ATTR_PAYMENT_STATUS, outcome.value)
            return outcome, None


__all__ = ["PaymentProcessor", "APPROVED_MESSAGE", "DECLINED_MESSAGE"]
