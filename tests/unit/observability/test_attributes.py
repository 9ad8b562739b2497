"""Tests for orderflow.observability.attributes module."""

from orderflow.observability import attributes
from orderflow.observability.attributes import (
    ATTR_DB_COLLECTION,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_MESSAGING_DESTINATION,
    ATTR_MESSAGING_OPERATION,
    ATTR_MESSAGING_SYSTEM,
    ATTR_ORDER_ID,
    ATTR_PAYMENT_ATTEMPT,
    ATTR_PAYMENT_TRANSACTION_ID,
)


class TestAttributeConstants:
    """Tests for attribute constant definitions."""

    def test_semantic_convention_names(self):
        """Messaging and database attributes follow OTEL semantic conventions."""
        assert ATTR_DB_SYSTEM == "db.system"
        assert ATTR_DB_OPERATION == "db.operation"
        assert ATTR_DB_COLLECTION == "db.collection.name"
        assert ATTR_MESSAGING_SYSTEM == "messaging.system"
        assert ATTR_MESSAGING_DESTINATION == "messaging.destination"
        assert ATTR_MESSAGING_OPERATION == "messaging.operation"

    def test_domain_attributes_are_namespaced(self):
        assert ATTR_ORDER_ID.startswith("order.")
        assert ATTR_PAYMENT_ATTEMPT.startswith("payment.")
        assert ATTR_PAYMENT_TRANSACTION_ID.startswith("payment.")

    def test_all_exports_are_unique_strings(self):
        values = [getattr(attributes, name) for name in attributes.__all__]

        assert all(isinstance(v, str) for v in values)
        assert len(values) == len(set(values))

    def test_all_constants_are_exported(self):
        defined = {name for name in dir(attributes) if name.startswith("ATTR_")}
        assert defined == set(attributes.__all__)
