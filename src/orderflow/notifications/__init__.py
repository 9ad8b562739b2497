"""
Order confirmation notifications.

Example:
    >>> from orderflow.notifications import ConfirmationConsumer, LoggingEmailSender
    >>>
    >>> consumer = ConfirmationConsumer(store, LoggingEmailSender(), broker)
    >>> await consumer.run()
"""

from orderflow.notifications.consumer import ConfirmationConsumer, HandleOutcome, RedeliveryTracker
from orderflow.notifications.email import (
    DEFAULT_SENDER,
    ConfirmationEmail,
    EmailSender,
    LoggingEmailSender,
)

__all__ = [
    "ConfirmationConsumer",
    "ConfirmationEmail",
    "DEFAULT_SENDER",
    "EmailSender",
    "HandleOutcome",
    "LoggingEmailSender",
    "RedeliveryTracker",
]
