"""
In-memory document store.

Useful for testing and development. All documents are lost when the
process terminates.
"""

from __future__ import annotations

import asyncio
import copy
from dataclasses import dataclass
from typing import Any

from orderflow.exceptions import PersistenceError
from orderflow.observability import (
    ATTR_DB_COLLECTION,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    Tracer,
    create_tracer,
)
from orderflow.stores.interface import DocumentStore


@dataclass(frozen=True)
class WriteRecord:
    """One ``put`` call seen by the in-memory store."""

    collection: str
    doc_id: str
    document: dict[str, Any]


class InMemoryDocumentStore(DocumentStore):
    """
    Dict-backed document store.

    Every successful ``put`` is recorded in ``writes`` so tests can assert
    how often a document was persisted. Setting ``available`` to False makes
    every operation raise PersistenceError.

    Example:
        >>> store = InMemoryDocumentStore()
        >>> await store.put("orders", "o-1", {"id": "o-1"})
        >>> len(store.writes)
        1
    """

    def __init__(
        self,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._documents: dict[tuple[str, str], dict[str, Any]] = {}
        self._lock = asyncio.Lock()
        self.writes: list[WriteRecord] = []
        self.available = True
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    def _check_available(self, operation: str, collection: str, doc_id: str) -> None:
        if not self.available:
            raise PersistenceError(operation, collection, doc_id, "store unavailable")

    async def put(self, collection: str, doc_id: str, document: dict[str, Any]) -> None:
        with self._tracer.span(
            "orderflow.store.put",
            {ATTR_DB_SYSTEM: "memory", ATTR_DB_OPERATION: "put", ATTR_DB_COLLECTION: collection},
        ):
            self._check_available("put", collection, doc_id)
            snapshot = copy.deepcopy(document)
            async with self._lock:
                self._documents[(collection, doc_id)] = snapshot
                self.writes.append(WriteRecord(collection, doc_id, snapshot))

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        with self._tracer.span(
            "orderflow.store.get",
            {ATTR_DB_SYSTEM: "memory", ATTR_DB_OPERATION: "get", ATTR_DB_COLLECTION: collection},
        ):
            self._check_available("get", collection, doc_id)
            document = self._documents.get((collection, doc_id))
            return copy.deepcopy(document) if document is not None else None

    async def ping(self) -> bool:
        return self.available

    def writes_for(self, collection: str, doc_id: str) -> list[WriteRecord]:
        return [w for w in self.writes if w.collection == collection and w.doc_id == doc_id]

    def clear(self) -> None:
        self._documents.clear()
        self.writes.clear()


__all__ = ["InMemoryDocumentStore", "WriteRecord"]
