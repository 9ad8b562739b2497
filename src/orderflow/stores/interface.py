"""
Document store interface.

The saga persists orders as JSON documents keyed by collection and id. A
store only needs upsert and point reads; it never deletes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

ORDERS_COLLECTION = "orders"


class DocumentStore(ABC):
    """
    Abstract base class for document stores.

    Implementations:
    - InMemoryDocumentStore: For testing and development
    - SQLiteDocumentStore: Single-file persistence via aiosqlite

    Both raise PersistenceError when the backend fails.

    Example:
        >>> await store.put("orders", order.id, order.to_document())
        >>> document = await store.get("orders", order.id)
    """

    @abstractmethod
    async def put(self, collection: str, doc_id: str, document: dict[str, Any]) -> None:
        """
        Insert or replace a document.

        Raises:
            PersistenceError: If the store is unavailable
        """
        pass

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """
        Read a document.

        Returns:
            The document, or None if it does not exist

        Raises:
            PersistenceError: If the store is unavailable
        """
        pass

    async def ping(self) -> bool:
        """True when the backend is reachable."""
        return True

    async def close(self) -> None:  # noqa: B027
        """Release backend resources. Default is a no-op."""
        pass


__all__ = ["DocumentStore", "ORDERS_COLLECTION"]
