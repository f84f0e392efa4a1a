"""Core components for relstore."""

from relstore.core.connection import Driver, StatementResult
from relstore.core.types import (
    Attribute,
    Comparison,
    FieldSpec,
    FieldType,
    IndexSpec,
    IndexType,
    Logical,
    ModelSpec,
    Operation,
    Order,
    RelationSpec,
    RelationType,
    SchemaOperation,
)

__all__ = [
    "Driver",
    "StatementResult",
    "FieldType",
    "Attribute",
    "IndexType",
    "RelationType",
    "Operation",
    "SchemaOperation",
    "Comparison",
    "Logical",
    "Order",
    "FieldSpec",
    "IndexSpec",
    "RelationSpec",
    "ModelSpec",
]
