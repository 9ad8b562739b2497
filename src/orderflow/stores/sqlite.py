"""
SQLite document store.

Documents are kept as JSON text in a single ``documents`` table keyed by
(collection, id). Writes are upserts.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from datetime import UTC, datetime
from typing import Any

import aiosqlite

from orderflow.exceptions import PersistenceError
from orderflow.observability import (
    ATTR_DB_COLLECTION,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    Tracer,
    create_tracer,
)
from orderflow.stores.interface import DocumentStore

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    id TEXT NOT NULL,
    body TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (collection, id)
);
"""

_UPSERT = """
INSERT INTO documents (collection, id, body, updated_at)
VALUES (?, ?, ?, ?)
ON CONFLICT (collection, id) DO UPDATE SET
    body = excluded.body,
    updated_at = excluded.updated_at
"""

_SELECT = "SELECT body FROM documents WHERE collection = ? AND id = ?"


class SQLiteDocumentStore(DocumentStore):
    """
    Document store on a single SQLite file.

    The orchestrator and the email worker can share one database file; WAL
    mode lets the worker read while the API writes.

    Args:
        database: File path, or ':memory:' for a private in-process database
        wal_mode: Switch the journal to WAL on connect
        busy_timeout: Milliseconds to wait on a locked database
        tracer: Optional custom Tracer instance
        enable_tracing: Emit traces (ignored if tracer is provided)

    Example:
        >>> async with SQLiteDocumentStore(":memory:") as store:
        ...     await store.put("orders", order.id, order.to_document())
    """

    def __init__(
        self,
        database: str,
        *,
        wal_mode: bool = True,
        busy_timeout: int = 5000,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._database = database
        self._wal_mode = wal_mode
        self._busy_timeout = busy_timeout
        self._connection: aiosqlite.Connection | None = None
        self._connect_lock = asyncio.Lock()
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    async def __aenter__(self) -> SQLiteDocumentStore:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    async def connect(self) -> None:
        """
        Open the database connection and create the schema.

        Safe to call more than once.

        Raises:
            PersistenceError: If the database cannot be opened
        """
        async with self._connect_lock:
            if self._connection is not None:
                return

            try:
                connection = await aiosqlite.connect(self._database)
                await connection.execute(f"PRAGMA busy_timeout = {self._busy_timeout}")
                if self._wal_mode and self._database != ":memory:":
                    await connection.execute("PRAGMA journal_mode = WAL")
                await connection.executescript(SCHEMA)
                await connection.commit()
            except (sqlite3.Error, OSError) as e:
                raise PersistenceError("connect", "*", self._database, str(e)) from e

            self._connection = connection
            logger.debug(
                "Opened document store %s (wal_mode=%s, busy_timeout=%dms)",
                self._database,
                self._wal_mode,
                self._busy_timeout,
            )

    async def close(self) -> None:
        """Close the database connection. Safe to call multiple times."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.debug("Closed document store %s", self._database)

    async def _ensure_connected(self) -> aiosqlite.Connection:
        if self._connection is None:
            await self.connect()
        assert self._connection is not None
        return self._connection

    async def put(self, collection: str, doc_id: str, document: dict[str, Any]) -> None:
        with self._tracer.span(
            "orderflow.store.put",
            {ATTR_DB_SYSTEM: "sqlite", ATTR_DB_OPERATION: "put", ATTR_DB_COLLECTION: collection},
        ):
            try:
                connection = await self._ensure_connected()
                await connection.execute(
                    _UPSERT,
                    (
                        collection,
                        doc_id,
                        json.dumps(document),
                        datetime.now(UTC).isoformat(),
                    ),
                )
                await connection.commit()
            except (sqlite3.Error, TypeError, ValueError) as e:
                logger.error(
                    "Failed to write %s/%s: %s",
                    collection,
                    doc_id,
                    e,
                    extra={"collection": collection, "doc_id": doc_id},
                )
                raise PersistenceError("put", collection, doc_id, str(e)) from e

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        with self._tracer.span(
            "orderflow.store.get",
            {ATTR_DB_SYSTEM: "sqlite", ATTR_DB_OPERATION: "get", ATTR_DB_COLLECTION: collection},
        ):
            try:
                connection = await self._ensure_connected()
                async with connection.execute(_SELECT, (collection, doc_id)) as cursor:
                    row = await cursor.fetchone()
            except (sqlite3.Error, ValueError) as e:
                raise PersistenceError("get", collection, doc_id, str(e)) from e

            if row is None:
                return None
            try:
                document = json.loads(row[0])
            except json.JSONDecodeError as e:
                raise PersistenceError("get", collection, doc_id, "corrupt document") from e
            return document if isinstance(document, dict) else None

    async def ping(self) -> bool:
        try:
            connection = await self._ensure_connected()
            async with connection.execute("SELECT 1") as cursor:
                await cursor.fetchone()
        except (PersistenceError, sqlite3.Error, ValueError):
            return False
        return True


__all__ = ["SQLiteDocumentStore", "SCHEMA"]
