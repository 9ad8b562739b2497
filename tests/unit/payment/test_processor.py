"""
Unit tests for PaymentProcessor.

Tests for:
- Approval, decline and gateway-error outcomes
- Attempt bounds and transaction id stability
- Linear backoff between attempts
- Trace continuation from call metadata
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, call, patch

import pytest
from opentelemetry.trace import SpanKind, StatusCode

from orderflow.exceptions import GatewayError
from orderflow.models import AttemptOutcome, PaymentStatus
from orderflow.observability import TRACEPARENT_HEADER
from orderflow.payment import APPROVED_MESSAGE, DECLINED_MESSAGE, GatewayDecision

AMOUNT = Decimal("2599.98")
APPROVED = GatewayDecision.APPROVED
DECLINED = GatewayDecision.DECLINED


def failure() -> GatewayError:
    return GatewayError("Payment gateway timeout")


class TestOutcomes:
    """Tests for the status reported by charge()."""

    @pytest.mark.asyncio
    async def test_approved_first_try(self, make_processor):
        result = await make_processor([APPROVED]).charge("order-1", AMOUNT, "USD")

        assert result.status is PaymentStatus.APPROVED
        assert result.message == APPROVED_MESSAGE
        assert len(result.attempts) == 1
        assert result.attempts[0].outcome is AttemptOutcome.APPROVED

    @pytest.mark.asyncio
    async def test_approved_after_gateway_errors(self, make_processor):
        result = await make_processor([failure(), failure(), APPROVED]).charge(
            "order-1", AMOUNT, "USD"
        )

        assert result.status is PaymentStatus.APPROVED
        assert [a.outcome for a in result.attempts] == [
            AttemptOutcome.GATEWAY_ERROR,
            AttemptOutcome.GATEWAY_ERROR,
            AttemptOutcome.APPROVED,
        ]
        assert result.attempts[0].error == "Payment gateway timeout"

    @pytest.mark.asyncio
    async def test_decline_is_terminal(self, make_processor):
        result = await make_processor([DECLINED, APPROVED]).charge("order-1", AMOUNT, "USD")

        assert result.status is PaymentStatus.DECLINED
        assert result.message == DECLINED_MESSAGE
        assert len(result.attempts) == 1

    @pytest.mark.asyncio
    async def test_decline_after_gateway_error(self, make_processor):
        result = await make_processor([failure(), DECLINED]).charge("order-1", AMOUNT, "USD")

        assert result.status is PaymentStatus.DECLINED
        assert len(result.attempts) == 2

    @pytest.mark.asyncio
    async def test_retry_declines_when_configured(self, make_processor):
        processor = make_processor([DECLINED, APPROVED], retry_declines=True)

        result = await processor.charge("order-1", AMOUNT, "USD")

        assert result.status is PaymentStatus.APPROVED
        assert len(result.attempts) == 2

    @pytest.mark.asyncio
    async def test_retried_declines_exhaust_to_error(self, make_processor):
        processor = make_processor([DECLINED], retry_declines=True)

        result = await processor.charge("order-1", AMOUNT, "USD")

        assert result.status is PaymentStatus.ERROR
        assert len(result.attempts) == 3

    @pytest.mark.asyncio
    async def test_exhausted_gateway_errors(self, make_processor):
        result = await make_processor([failure()]).charge("order-1", AMOUNT, "USD")

        assert result.status is PaymentStatus.ERROR
        assert result.message == "Payment processing failed after 3 attempts"
        assert len(result.attempts) == 3

    @pytest.mark.asyncio
    async def test_any_exception_counts_as_gateway_error(self, make_processor):
        result = await make_processor([RuntimeError("socket closed"), APPROVED]).charge(
            "order-1", AMOUNT, "USD"
        )

        assert result.status is PaymentStatus.APPROVED
        assert result.attempts[0].outcome is AttemptOutcome.GATEWAY_ERROR


class TestAttempts:
    """Tests for attempt bounds and transaction ids."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_attempts", [1, 2, 5])
    async def test_never_exceeds_max_attempts(self, make_processor, max_attempts):
        processor = make_processor([failure()], max_attempts=max_attempts)

        result = await processor.charge("order-1", AMOUNT, "USD")

        assert len(result.attempts) == max_attempts
        assert [a.attempt_number for a in result.attempts] == list(range(1, max_attempts + 1))

    @pytest.mark.asyncio
    async def test_transaction_id_stable_within_call(self, make_processor):
        result = await make_processor([failure(), failure(), APPROVED]).charge(
            "order-1", AMOUNT, "USD"
        )

        assert {a.transaction_id for a in result.attempts} == {result.transaction_id}
        assert all(a.order_id == "order-1" for a in result.attempts)
        assert all(a.amount == AMOUNT and a.currency == "USD" for a in result.attempts)

    @pytest.mark.asyncio
    async def test_transaction_id_differs_across_calls(self, make_processor):
        processor = make_processor([APPROVED])

        first = await processor.charge("order-1", AMOUNT, "USD")
        second = await processor.charge("order-1", AMOUNT, "USD")

        assert first.transaction_id != second.transaction_id


class TestBackoff:
    """Tests for the sleep between attempts."""

    @pytest.mark.asyncio
    async def test_linear_backoff_without_sleep_after_last_attempt(self, make_processor):
        processor = make_processor([failure()], backoff_base=0.1, backoff_max=1.0)

        with patch("orderflow.payment.processor.asyncio.sleep", new=AsyncMock()) as sleep:
            await processor.charge("order-1", AMOUNT, "USD")

        assert sleep.await_args_list == [call(pytest.approx(0.1)), call(pytest.approx(0.2))]

    @pytest.mark.asyncio
    async def test_backoff_is_capped_and_non_decreasing(self, make_processor):
        processor = make_processor([failure()], max_attempts=6, backoff_base=0.3, backoff_max=1.0)

        with patch("orderflow.payment.processor.asyncio.sleep", new=AsyncMock()) as sleep:
            await processor.charge("order-1", AMOUNT, "USD")

        delays = [c.args[0] for c in sleep.await_args_list]
        assert len(delays) == 5
        assert delays == sorted(delays)
        assert max(delays) == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_no_sleep_on_first_try_success(self, make_processor):
        with patch("orderflow.payment.processor.asyncio.sleep", new=AsyncMock()) as sleep:
            await make_processor([APPROVED]).charge("order-1", AMOUNT, "USD")

        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_sleep_on_terminal_decline(self, make_processor):
        with patch("orderflow.payment.processor.asyncio.sleep", new=AsyncMock()) as sleep:
            await make_processor([DECLINED]).charge("order-1", AMOUNT, "USD")

        sleep.assert_not_awaited()


class TestTracing:
    """Tests for payment spans."""

    @pytest.mark.asyncio
    async def test_server_span_with_attempt_children(self, make_processor, find_span, find_spans):
        await make_processor([failure(), APPROVED]).charge("order-1", AMOUNT, "USD")

        process = find_span("payment.process")
        attempts = find_spans("payment.attempt")

        assert process.kind == SpanKind.SERVER
        assert process.attributes["payment.status"] == "APPROVED"
        assert process.attributes["order.id"] == "order-1"
        assert len(attempts) == 2
        assert all(a.parent.span_id == process.context.span_id for a in attempts)
        assert [a.attributes["payment.attempt"] for a in attempts] == [1, 2]
        assert attempts[0].attributes["error.type"] == "GatewayError"

    @pytest.mark.asyncio
    async def test_error_status_marks_span(self, make_processor, find_span):
        await make_processor([failure()]).charge("order-1", AMOUNT, "USD")

        assert find_span("payment.process").status.status_code == StatusCode.ERROR

    @pytest.mark.asyncio
    async def test_continues_caller_trace(self, make_processor, find_span):
        header = "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01"

        await make_processor([APPROVED]).charge(
            "order-1", AMOUNT, "USD", metadata={TRACEPARENT_HEADER: header}
        )

        process = find_span("payment.process")
        assert process.context.trace_id == 0x4BF92F3577B34DA6A3CE929D0E0E4736
        assert process.parent.span_id == 0x00F067AA0BA902B7

    @pytest.mark.asyncio
    async def test_malformed_metadata_starts_new_trace(self, make_processor, find_span):
        result = await make_processor([APPROVED]).charge(
            "order-1", AMOUNT, "USD", metadata={TRACEPARENT_HEADER: "bad-header"}
        )

        assert result.status is PaymentStatus.APPROVED
        assert find_span("payment.process").parent is None
