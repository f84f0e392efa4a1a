"""Core vocabularies and declarative specifications for relstore.

The enums name every kind of field, index, relation and operation the engine
understands. The pydantic specs are the input format for declaring models as
plain data (dicts, JSON files); ``relstore.model.loader`` turns them into
``Model`` instances.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class _Values:
    @classmethod
    def values(cls) -> list[str]:
        """Return all valid values."""
        return [member.value for member in cls]  # type: ignore[attr-defined]


class FieldType(_Values, StrEnum):
    """Supported field types."""

    BOOLEAN = "boolean"
    INTEGER = "integer"
    DECIMAL = "decimal"
    STRING = "string"
    DATETIME = "datetime"
    SERIAL = "serial"  # Any JSON-serializable value, stored as text


class Attribute(_Values, StrEnum):
    """Field attributes. Unknown attribute keys are ignored."""

    UNSIGNED = "unsigned"
    DEFAULT = "default"
    AUTO_INCREMENT = "auto_increment"
    NULL = "null"
    LENGTH = "length"
    PRECISION = "precision"


class IndexType(_Values, StrEnum):
    """Index types."""

    PRIMARY = "primary"
    UNIQUE = "unique"
    INDEX = "index"
    FOREIGN = "foreign"


class RelationType(_Values, StrEnum):
    """Relation types between entities."""

    ONE = "one"  # e.g., User -> Profile (profile.user_id)
    MANY = "many"  # e.g., Article -> Comments (comment.article_id)
    ONE_THROUGH = "one_through"  # e.g., Article -> Cover via article_cover
    MANY_THROUGH = "many_through"  # e.g., Article <-> Tags via article_tag

    @property
    def is_through(self) -> bool:
        """Whether the relation is mediated by a join entity."""
        return self in (RelationType.ONE_THROUGH, RelationType.MANY_THROUGH)

    @property
    def is_many(self) -> bool:
        """Whether the container holds a sequence."""
        return self in (RelationType.MANY, RelationType.MANY_THROUGH)


class Operation(_Values, StrEnum):
    """Entity operations executed by ``Query``."""

    COUNT = "count"
    READ = "read"
    READ_ONE = "read_one"
    INSERT = "insert"
    WRITE = "write"
    UPDATE = "update"
    DELETE = "delete"
    CLEAR = "clear"


class BuilderOperation(_Values, StrEnum):
    """Statement kinds produced by the query builder."""

    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    CLEAR = "clear"


class SchemaOperation(_Values, StrEnum):
    """Schema operations executed by ``Schema``."""

    CHECK = "check"
    CREATE = "create"
    DROP = "drop"


class Comparison(_Values, StrEnum):
    """Comparison operators for conditions."""

    EQUAL = "="
    NOT_EQUAL = "!="
    LESS = "<"
    GREATER = ">"
    LESS_EQUAL = "<="
    GREATER_EQUAL = ">="
    LIKE = "like"
    REGEX = "regex"


class Logical(_Values, StrEnum):
    """Logical operators joining conditions."""

    AND = "and"
    OR = "or"


class Order(_Values, StrEnum):
    """Sort directions."""

    ASC = "asc"
    DESC = "desc"


class Aggregate(_Values, StrEnum):
    """Aggregate functions supported by the query builder."""

    DISTINCT = "distinct"
    COUNT = "count"
    AVERAGE = "average"
    MAX = "max"
    MIN = "min"
    SUM = "sum"


class JoinType(_Values, StrEnum):
    """Join types supported by the query builder."""

    INNER = "inner"
    LEFT = "left"
    RIGHT = "right"


# === Declarative specifications ===


class FieldSpec(BaseModel):
    """Specification for a field definition."""

    name: str = Field(..., description="Field name (entity property)")
    type: FieldType = Field(default=FieldType.STRING, description="Field data type")
    attributes: dict[str, Any] | list[str] = Field(
        default_factory=dict,
        description="Attributes as {key: value} or a list of flags",
    )
    mapping: str | None = Field(default=None, description="Column name when it differs")

    model_config = {"use_enum_values": True}


class IndexSpec(BaseModel):
    """Specification for an index definition.

    ``fields`` is a list of local fields, or for foreign indexes a dict mapping
    local fields to fields of ``table``.
    """

    name: str = Field(..., description="Index name ('primary' for the primary key)")
    type: IndexType = Field(default=IndexType.INDEX, description="Index type")
    fields: list[str] | dict[str, str] = Field(..., description="Indexed fields")
    table: str | None = Field(default=None, description="Referenced table (foreign only)")

    model_config = {"use_enum_values": True}


class RelationSpec(BaseModel):
    """Specification for a relation definition."""

    entity: str = Field(..., description="Target entity identifier")
    type: RelationType = Field(default=RelationType.ONE, description="Relation type")
    keys: dict[str, str] = Field(..., description="Local field -> target/mediator field")
    target_keys: dict[str, str] | None = Field(
        default=None, description="Mediator field -> target field (through relations)"
    )
    mediator: str | None = Field(default=None, description="Mediator entity identifier")
    container: str | None = Field(default=None, description="Property holding related data")
    name: str | None = Field(default=None, description="Relation name (defaults to container)")
    local_values: dict[str, Any] = Field(default_factory=dict)
    foreign_values: dict[str, Any] = Field(default_factory=dict)

    model_config = {"use_enum_values": True}


class ModelSpec(BaseModel):
    """Specification for an entity model."""

    entity: str = Field(..., description="Entity identifier")
    table: str = Field(..., description="Table name")
    alias: str | None = Field(default=None, description="Optional registry alias")
    fields: list[FieldSpec] = Field(default_factory=list)
    indexes: list[IndexSpec] = Field(default_factory=list)
    relations: list[RelationSpec] = Field(default_factory=list)

    model_config = {"use_enum_values": True}
