"""
Document stores for order persistence.

Example:
    >>> from orderflow.stores import InMemoryDocumentStore, ORDERS_COLLECTION
    >>>
    >>> store = InMemoryDocumentStore()
    >>> await store.put(ORDERS_COLLECTION, order.id, order.to_document())
"""

from orderflow.stores.in_memory import InMemoryDocumentStore, WriteRecord
from orderflow.stores.interface import ORDERS_COLLECTION, DocumentStore
from orderflow.stores.sqlite import SQLiteDocumentStore

__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "ORDERS_COLLECTION",
    "SQLiteDocumentStore",
    "WriteRecord",
]
