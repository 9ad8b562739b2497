"""
Order confirmation emails.

Rendering is separate from delivery: ``ConfirmationEmail.render`` builds the
message from an order, and an ``EmailSender`` delivers it. The bundled
``LoggingEmailSender`` only simulates delivery.
"""

from __future__ import annotations

import asyncio
import html
import logging
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Protocol, runtime_checkable

from orderflow.models import Order

logger = logging.getLogger(__name__)

DEFAULT_SENDER = '"Mini Shop" <noreply@minishop.example.com>'


@dataclass(frozen=True)
class ConfirmationEmail:
    """A rendered confirmation email."""

    sender: str
    recipient: str
    subject: str
    text: str
    html: str

    @classmethod
    def render(
        cls,
        order: Order,
        *,
        sender: str = DEFAULT_SENDER,
        shop_name: str = "Mini Shop",
    ) -> ConfirmationEmail:
        total = f"${order.amount:.2f}"
        subject = f"Your order #{order.id} has been confirmed"
        text = (
            f"Thank you for your order #{order.id}!\n\n"
            f"Your order for {order.quantity}x {order.product_name} has been confirmed and paid.\n"
            f"Total: {total}\n\n"
            f"Thank you for shopping with us!\n"
            f"{shop_name} Team"
        )
        body = (
            f"<h1>Thank you for your order #{html.escape(order.id)}!</h1>\n"
            f"<p>Your order has been confirmed and paid:</p>\n"
            f"<ul>\n"
            f"  <li><strong>Product:</strong> {html.escape(order.product_name)}</li>\n"
            f"  <li><strong>Quantity:</strong> {order.quantity}</li>\n"
            f"  <li><strong>Total:</strong> {total}</li>\n"
            f"</ul>\n"
            f"<p>Thank you for shopping with us!</p>\n"
            f"<p>{html.escape(shop_name)} Team</p>\n"
        )
        return cls(
            sender=sender,
            recipient=order.customer_email,
            subject=subject,
            text=text,
            html=body,
        )

    def to_message(self) -> EmailMessage:
        """MIME message with plain-text and HTML alternatives."""
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = self.recipient
        message["Subject"] = self.subject
        message.set_content(self.text)
        message.add_alternative(self.html, subtype="html")
        return message


@runtime_checkable
class EmailSender(Protocol):
    """Delivers rendered emails. Raising signals a failed delivery."""

    async def send(self, email: ConfirmationEmail) -> None: ...


class LoggingEmailSender:
    """
    Simulated sender: waits a short delay and logs the delivery.

    Args:
        delay: Simulated delivery time in seconds
    """

    def __init__(self, delay: float = 0.05) -> None:
        self._delay = delay
        self.sent: list[ConfirmationEmail] = []

    async def send(self, email: ConfirmationEmail) -> None:
        message = email.to_message()
        if self._delay > 0:
            await asyncio.sleep(self._delay)
        self.sent.append(email)
        logger.info(
            "Sent email to %s: %s",
            email.recipient,
            email.subject,
            extra={
                "email_recipient": email.recipient,
                "email_subject": email.subject,
                "email_size": len(message.as_bytes()),
            },
        )


__all__ = ["ConfirmationEmail", "EmailSender", "LoggingEmailSender", "DEFAULT_SENDER"]
