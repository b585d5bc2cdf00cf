"""doc_query exception hierarchy.

Setup and schema errors are raised synchronously while resources are being
declared. Errors raised by the store driver, connection failures included,
are propagated to the caller unchanged.
"""

from __future__ import annotations


class DocQueryError(Exception):
    """Base exception for all doc_query errors."""


# --- Setup ---


class SetupError(DocQueryError):
    """Raised when a resource is attached to a store with invalid settings."""


class MissingCollectionError(SetupError):
    """Raised when the settings carry no collection name."""

    def __init__(self, entity_name: str | None = None) -> None:
        self.entity_name = entity_name
        target = f" for '{entity_name}'" if entity_name else ""
        super().__init__(f"must specify a collection name{target}")


class MissingConnectionError(SetupError):
    """Raised when neither a connection string nor a db handle is configured."""

    def __init__(self, entity_name: str | None = None) -> None:
        self.entity_name = entity_name
        target = f" for '{entity_name}'" if entity_name else ""
        super().__init__(f"must specify a connection string or a db handle{target}")


class UnboundEntityError(SetupError):
    """Raised when an entity type is used before it is bound to a store."""

    def __init__(self, entity_name: str) -> None:
        self.entity_name = entity_name
        super().__init__(f"Entity '{entity_name}' is not bound to a store")


class DuplicateEntityError(SetupError):
    """Raised when two different entity types are bound under the same name."""

    def __init__(self, entity_name: str) -> None:
        self.entity_name = entity_name
        super().__init__(f"Duplicate entity name '{entity_name}'")


# --- Schema ---


class SchemaError(DocQueryError):
    """Raised when an entity type declaration is invalid."""


class PrimaryKeyError(SchemaError):
    """Raised when an entity type does not declare exactly one primary attribute."""

    def __init__(self, entity_name: str, primary_keys: list[str]) -> None:
        self.entity_name = entity_name
        self.primary_keys = primary_keys
        super().__init__(
            f"Entity '{entity_name}' must declare exactly one primary attribute, "
            f"found {primary_keys}"
        )


class RelationError(SchemaError):
    """Raised when a relation declaration cannot be resolved."""

    def __init__(self, entity_name: str, relation_name: str, detail: str) -> None:
        self.entity_name = entity_name
        self.relation_name = relation_name
        super().__init__(f"Relation '{entity_name}.{relation_name}': {detail}")


# --- Adapter ---


class AdapterError(DocQueryError):
    """Base for store adapter errors."""
