"""Unit tests for InProcessPaymentClient."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from opentelemetry.trace import SpanKind

from orderflow.exceptions import PaymentServiceError
from orderflow.models import ChargeResult, PaymentStatus
from orderflow.observability import TRACEPARENT_HEADER
from orderflow.payment import GatewayDecision, InProcessPaymentClient, PaymentClient

AMOUNT = Decimal("39.99")


class TestInProcessPaymentClient:
    @pytest.mark.asyncio
    async def test_returns_processor_result(self, make_processor):
        client = InProcessPaymentClient(make_processor([GatewayDecision.DECLINED]))

        result = await client.charge("order-1", AMOUNT, "USD")

        assert result.status is PaymentStatus.DECLINED

    def test_implements_protocol(self, payment_client):
        assert isinstance(payment_client, PaymentClient)

    @pytest.mark.asyncio
    async def test_sends_trace_context_as_metadata(self):
        processor = MagicMock()
        processor.charge = AsyncMock(
            return_value=ChargeResult(
                status=PaymentStatus.APPROVED, transaction_id="t", message="ok"
            )
        )
        client = InProcessPaymentClient(processor)

        await client.charge("order-1", AMOUNT, "USD")

        metadata = processor.charge.await_args.kwargs["metadata"]
        assert TRACEPARENT_HEADER in metadata

    @pytest.mark.asyncio
    async def test_call_failure_wrapped(self):
        processor = MagicMock()
        processor.charge = AsyncMock(side_effect=ConnectionResetError("peer gone"))
        client = InProcessPaymentClient(processor)

        with pytest.raises(PaymentServiceError) as exc_info:
            await client.charge("order-1", AMOUNT, "USD")

        assert exc_info.value.order_id == "order-1"
        assert isinstance(exc_info.value.__cause__, ConnectionResetError)

    @pytest.mark.asyncio
    async def test_server_span_is_child_of_client_span(self, payment_client, find_span):
        await payment_client.charge("order-1", AMOUNT, "USD")

        client_span = find_span("payment.Charge")
        server_span = find_span("payment.process")

        assert client_span.kind == SpanKind.CLIENT
        assert server_span.parent.span_id == client_span.context.span_id
        assert server_span.context.trace_id == client_span.context.trace_id
        assert client_span.attributes["payment.status"] == "APPROVED"
        assert client_span.attributes["payment.transaction_id"] == (
            server_span.attributes["payment.transaction_id"]
        )
