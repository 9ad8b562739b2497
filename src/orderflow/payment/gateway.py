"""
Simulated payment gateway.

The gateway stands in for an external card processor. Each call waits an
artificial latency and then asks a decision function whether to approve or
decline. The decision function is injectable so tests can script exact
outcomes; raising from it simulates an infrastructure failure, which is
distinct from a business decline.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import random
from collections.abc import Awaitable, Callable, Iterable
from decimal import Decimal
from enum import Enum

from orderflow.config import GatewayConfig
from orderflow.exceptions import GatewayError
from orderflow.observability import ATTR_PAYMENT_AMOUNT, Tracer, create_tracer

logger = logging.getLogger(__name__)


class GatewayDecision(str, Enum):
    """Business answer of the gateway for one authorization."""

    APPROVED = "APPROVED"
    DECLINED = "DECLINED"


DecisionFunc = Callable[[Decimal], "GatewayDecision | Awaitable[GatewayDecision]"]


class RandomDecision:
    """Default decision function driven by configured rates."""

    def __init__(self, decline_rate: float = 0.0, failure_rate: float = 0.0) -> None:
        self._decline_rate = decline_rate
        self._failure_rate = failure_rate

    def __call__(self, amount: Decimal) -> GatewayDecision:
        roll = random.random()  # nosec B311 - simulation, not crypto
        if roll < self._failure_rate:
            raise GatewayError("Payment gateway timeout")
        if roll < self._failure_rate + self._decline_rate:
            return GatewayDecision.DECLINED
        return GatewayDecision.APPROVED


class ScriptedDecision:
    """
    Decision function replaying a fixed sequence of outcomes.

    Items are GatewayDecision values or exception instances, which are
    raised. The last item repeats once the script runs out.

    Example:
        >>> decide = ScriptedDecision([GatewayError("boom"), GatewayDecision.APPROVED])
    """

    def __init__(self, outcomes: Iterable[GatewayDecision | BaseException]) -> None:
        self._outcomes = list(outcomes)
        if not self._outcomes:
            raise ValueError("ScriptedDecision needs at least one outcome")
        self.calls = 0

    def __call__(self, amount: Decimal) -> GatewayDecision:
        index = min(self.calls, len(self._outcomes) - 1)
        self.calls += 1
        outcome = self._outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class SimulatedGateway:
    """
    Payment gateway simulator with artificial latency.

    Args:
        config: Latency bounds and default decision rates
        decide: Optional decision function; defaults to RandomDecision
        tracer: Optional custom Tracer instance
        enable_tracing: Emit a span per gateway request (ignored if tracer given)
    """

    def __init__(
        self,
        config: GatewayConfig | None = None,
        decide: DecisionFunc | None = None,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._config = config or GatewayConfig()
        self._decide = decide or RandomDecision(
            self._config.decline_rate, self._config.failure_rate
        )
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    @property
    def config(self) -> GatewayConfig:
        return self._config

    def _latency(self) -> float:
        low, high = self._config.min_latency, self._config.max_latency
        if high <= low:
            return low
        # uniform() may return the upper bound; keep the interval half-open
        return min(random.uniform(low, high), high - 1e-6)  # nosec B311

    async def authorize(self, amount: Decimal) -> GatewayDecision:
        """
        Ask the gateway to authorize ``amount``.

        Raises:
            GatewayError: (or any exception raised by the decision function)
                when the gateway itself fails
        """
        with self._tracer.span(
            "payment_gateway_request",
            {ATTR_PAYMENT_AMOUNT: float(amount)},
        ):
            delay = self._latency()
            if delay > 0:
                await asyncio.sleep(delay)

            decision = self._decide(amount)
            if inspect.isawaitable(decision):
                decision = await decision
            decision = GatewayDecision(decision)
            logger.debug("Gateway answered %s for %s after %.3fs", decision.value, amount, delay)
            return decision


__all__ = [
    "GatewayDecision",
    "DecisionFunc",
    "RandomDecision",
    "ScriptedDecision",
    "SimulatedGateway",
]
