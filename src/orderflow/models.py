"""
Domain models for the order saga.

Orders are stored and published as camelCase JSON documents, so every model
uses camelCase aliases on the wire while keeping snake_case attributes in
Python.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from orderflow.exceptions import InvalidOrderTransitionError, OrderValidationError

CENTS = Decimal("0.01")


class OrderStatus(str, Enum):
    """Lifecycle status of an order. Both non-pending values are terminal."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PAYMENT_FAILED = "payment_failed"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.PENDING


class PaymentStatus(str, Enum):
    """Outcome reported by the payment participant for one charge."""

    APPROVED = "APPROVED"
    DECLINED = "DECLINED"
    ERROR = "ERROR"


class AttemptOutcome(str, Enum):
    """Outcome of a single gateway call."""

    APPROVED = "approved"
    DECLINED = "declined"
    GATEWAY_ERROR = "gateway_error"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Order(_CamelModel):
    """
    An order and its saga state.

    Attributes:
        id: Opaque unique identifier generated by the orchestrator
        product_id: Catalog identifier of the ordered product
        product_name: Display name captured at order time
        quantity: Number of units (positive)
        amount: Total price (non-negative, currency-agnostic)
        customer_email: Address the confirmation goes to
        status: pending, confirmed or payment_failed
        payment_id: Transaction id of the approved charge (confirmed only)
        created_at: Creation timestamp (UTC, immutable)
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    product_id: str
    product_name: str = "Unknown Product"
    quantity: int = Field(gt=0)
    amount: Decimal = Field(ge=0)
    customer_email: str
    status: OrderStatus = OrderStatus.PENDING
    payment_id: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def confirm(self, payment_id: str) -> None:
        """Move a pending order to confirmed."""
        self._transition(OrderStatus.CONFIRMED)
        self.payment_id = payment_id

    def mark_payment_failed(self) -> None:
        """Move a pending order to payment_failed."""
        self._transition(OrderStatus.PAYMENT_FAILED)

    def _transition(self, target: OrderStatus) -> None:
        if self.status is not OrderStatus.PENDING:
            raise InvalidOrderTransitionError(self.id, self.status.value, target.value)
        self.status = target

    def to_document(self) -> dict[str, Any]:
        """JSON-compatible document as stored and published."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> Order:
        return cls.model_validate(document)


class CreateOrderRequest(_CamelModel):
    """Validated input of ``OrderOrchestrator.create_order``."""

    product_id: str = Field(min_length=1)
    quantity: int = Field(gt=0)
    customer_email: str = Field(min_length=1)

    @field_validator("product_id", "customer_email", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("quantity", mode="before")
    @classmethod
    def _reject_bool(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("quantity must be an integer")
        return value

    @classmethod
    def parse(cls, product_id: Any, quantity: Any, customer_email: Any) -> CreateOrderRequest:
        """Validate raw values, raising OrderValidationError on failure."""
        try:
            return cls(product_id=product_id, quantity=quantity, customer_email=customer_email)
        except ValidationError as e:
            names = {info.alias or name: name for name, info in cls.model_fields.items()}
            locations = {str(err["loc"][0]) for err in e.errors() if err["loc"]}
            fields = sorted(names.get(loc, loc) for loc in locations)
            raise OrderValidationError(
                f"Missing or invalid parameters: {', '.join(fields)}", fields=fields
            ) from e


class PaymentAttempt(_CamelModel):
    """One gateway call made while processing a charge (not persisted)."""

    transaction_id: str
    order_id: str
    amount: Decimal
    currency: str
    attempt_number: int = Field(ge=1)
    outcome: AttemptOutcome
    error: str | None = None


class ChargeResult(_CamelModel):
    """Reply of the payment participant for one ``charge`` call."""

    status: PaymentStatus
    transaction_id: str
    message: str
    attempts: list[PaymentAttempt] = Field(default_factory=list, exclude=True)

    @property
    def approved(self) -> bool:
        return self.status is PaymentStatus.APPROVED


class ConfirmationEvent(BaseModel):
    """
    ``order.confirmed`` message.

    The body is the full order snapshot. ``message_id`` and ``created_at``
    travel as message properties and are distinct from the order's own
    identifiers.
    """

    model_config = ConfigDict(frozen=True)

    order: Order
    message_id: str = Field(default_factory=lambda: str(uuid4()))
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    content_type: ClassVar[str] = "application/json"

    def body(self) -> bytes:
        return json.dumps(self.order.to_document()).encode("utf-8")

    @staticmethod
    def order_id_from_body(body: bytes) -> str | None:
        """Extract the order id from a message body, or None if it has none."""
        payload = json.loads(body)
        if not isinstance(payload, dict):
            return None
        order_id = payload.get("id")
        if order_id is None or order_id == "":
            return None
        return str(order_id)


__all__ = [
    "CENTS",
    "OrderStatus",
    "PaymentStatus",
    "AttemptOutcome",
    "Order",
    "CreateOrderRequest",
    "PaymentAttempt",
    "ChargeResult",
    "ConfirmationEvent",
]
