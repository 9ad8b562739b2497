"""
Email worker process.

Connects to the broker (with bounded startup retries), declares the
confirmation topology and consumes until SIGINT or SIGTERM. Exits with
status 1 when the broker cannot be reached.

Run with ``orderflow-worker`` or ``python -m orderflow.notifications.worker``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys

from orderflow.broker import BrokerTopology, MessageBroker, RabbitMQBroker
from orderflow.config import Settings
from orderflow.exceptions import BrokerConnectionError, PersistenceError
from orderflow.notifications.consumer import ConfirmationConsumer
from orderflow.notifications.email import EmailSender, LoggingEmailSender
from orderflow.observability import configure_logging
from orderflow.stores import DocumentStore, SQLiteDocumentStore

logger = logging.getLogger(__name__)


async def run_worker(
    settings: Settings,
    *,
    broker: MessageBroker | None = None,
    store: DocumentStore | None = None,
    sender: EmailSender | None = None,
) -> None:
    """
    Run the confirmation consumer until stopped.

    Collaborators default to the production ones built from ``settings``.

    Raises:
        BrokerConnectionError: If the broker cannot be reached at startup
    """
    broker = broker or RabbitMQBroker(settings.broker)
    if store is None:
        sqlite_store = SQLiteDocumentStore(
            settings.database_path, enable_tracing=settings.enable_tracing
        )
        await sqlite_store.connect()
        store = sqlite_store

    topology = BrokerTopology()
    consumer = ConfirmationConsumer(
        store,
        sender or LoggingEmailSender(),
        broker,
        config=settings.consumer,
        topology=topology,
        enable_tracing=settings.enable_tracing,
    )

    try:
        await broker.connect()
        await broker.declare_topology(topology)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, lambda: asyncio.ensure_future(consumer.stop()))

        await consumer.run()
    finally:
        logger.info("Shutting down email worker")
        await broker.close()
        await store.close()


def main() -> int:
    """Entry point of the ``orderflow-worker`` script."""
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    try:
        asyncio.run(run_worker(settings))
    except (BrokerConnectionError, PersistenceError) as e:
        logger.critical("Failed to start email worker: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
