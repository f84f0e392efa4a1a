"""Exceptions raised by relstore.

Every error carries an actionable message plus a ``context`` dict that can be
serialized for machine consumption (CLI ``--json`` mode).

Errors surfaced by the statement builder or the driver are ``BackendError``
subclasses. The query and relation layers let them propagate unchanged.
"""

from __future__ import annotations

from typing import Any


class RelstoreError(Exception):
    """Base exception for all relstore errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Return error as JSON-serializable dict."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class DefinitionError(RelstoreError):
    """Model, field, index or relation definition is invalid.

    Raised while models are built, never during query execution.
    """

    pass


# === Lookup errors ===


class NotFoundError(RelstoreError):
    """Named definition does not exist."""

    kind = "Definition"

    def __init__(self, name: str, entity_name: str, available: list[str] | None = None) -> None:
        available = list(available or [])
        super().__init__(
            self.describe(name, entity_name, available),
            {"name": name, "entity_name": entity_name, "available": available},
        )
        self.name = name
        self.entity_name = entity_name
        self.available = available

    def describe(self, name: str, entity_name: str, available: list[str]) -> str:
        if available:
            return (
                f"{self.kind} '{name}' not found in model '{entity_name}'. "
                f"Available: {', '.join(available)}"
            )
        return f"{self.kind} '{name}' not found in model '{entity_name}'. None defined."


class FieldNotFoundError(NotFoundError):
    """Field does not exist on model."""

    kind = "Field"


class IndexNotFoundError(NotFoundError):
    """Index does not exist on model."""

    kind = "Index"


class RelationNotFoundError(NotFoundError):
    """Relation does not exist on model."""

    kind = "Relation"


class ModelNotFoundError(NotFoundError):
    """No model registered for the requested entity."""

    kind = "Model"

    def __init__(self, entity_name: str, available: list[str] | None = None) -> None:
        super().__init__(entity_name, entity_name, available)

    def describe(self, name: str, entity_name: str, available: list[str]) -> str:
        if available:
            return (
                f"Model for entity '{entity_name}' is not registered. "
                f"Registered entities: {', '.join(available)}"
            )
        return f"Model for entity '{entity_name}' is not registered. No models exist yet."


class RecordNotFoundError(RelstoreError):
    """Query expected a record but none matched."""

    def __init__(self, entity_name: str, conditions: dict[str, Any] | None = None) -> None:
        conditions = conditions or {}
        if conditions:
            criteria = ", ".join(f"{k}={v!r}" for k, v in conditions.items())
            message = f"No '{entity_name}' record matches {criteria}."
        else:
            message = f"No '{entity_name}' record found."
        super().__init__(message, {"entity_name": entity_name, "conditions": conditions})
        self.entity_name = entity_name
        self.conditions = conditions


# === Query and relation errors ===


class QueryError(RelstoreError):
    """Query was configured or used incorrectly."""

    pass


class RelationError(RelstoreError):
    """Related data has the wrong shape or cannot be linked."""

    def __init__(self, relation_name: str, entity_name: str, reason: str) -> None:
        message = f"Relation '{relation_name}' on '{entity_name}': {reason}"
        super().__init__(
            message,
            {"relation_name": relation_name, "entity_name": entity_name, "reason": reason},
        )
        self.relation_name = relation_name
        self.entity_name = entity_name
        self.reason = reason


# === Backend errors ===


class BackendError(RelstoreError):
    """Failure surfaced by the statement builder or the database driver."""

    pass


class BuilderError(BackendError):
    """Statement could not be built."""

    pass


class DriverError(BackendError):
    """Statement execution or connection handling failed."""

    def __init__(self, message: str, statement: str | None = None) -> None:
        super().__init__(message, {"statement": statement} if statement else None)
        self.statement = statement
