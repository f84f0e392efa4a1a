"""Field, index and relation definitions.

Definitions are immutable value objects. A ``Model`` binds fields and
indexes to its table by storing re-bound copies, so a definition can be shared
between models without aliasing.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from relstore.core.types import Attribute, FieldType, IndexType, RelationType
from relstore.exceptions import DefinitionError


def _normalize_attributes(attributes: Mapping[str, Any] | Iterable[str] | None) -> dict[str, Any]:
    """Turn a mapping or a list of flags into known attribute key/values."""
    if attributes is None:
        return {}

    if isinstance(attributes, Mapping):
        items = list(attributes.items())
    elif isinstance(attributes, str):
        items = [(attributes, True)]
    else:
        items = [(flag, True) for flag in attributes]

    known = set(Attribute.values())
    return {str(key): value for key, value in items if str(key) in known}


@dataclass(frozen=True)
class Field:
    """One entity property stored in one column."""

    name: str
    type: FieldType = FieldType.STRING
    attributes: Mapping[str, Any] = field(default_factory=dict)
    mapping: str | None = None
    table: str | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise DefinitionError("Field name must not be empty")

        try:
            field_type = FieldType(self.type)
        except ValueError:
            raise DefinitionError(
                f"Invalid type '{self.type}' for field '{self.name}'. "
                f"Valid types: {', '.join(FieldType.values())}",
                {"field_name": self.name, "field_type": str(self.type)},
            ) from None

        object.__setattr__(self, "type", field_type)
        object.__setattr__(self, "attributes", _normalize_attributes(self.attributes))

    @property
    def column(self) -> str:
        """Column name in the table."""
        return self.mapping or self.name

    @property
    def nullable(self) -> bool:
        return bool(self.attributes.get(Attribute.NULL, False))

    @property
    def auto_increment(self) -> bool:
        return bool(self.attributes.get(Attribute.AUTO_INCREMENT, False))

    def attribute(self, key: str) -> Any:
        """Return attribute value or None when not set."""
        return self.attributes.get(key)

    def bind(self, table: str) -> Field:
        """Return a copy of this field bound to ``table``."""
        return replace(self, table=table)


@dataclass(frozen=True)
class Index:
    """Primary, unique, plain or foreign index.

    For foreign indexes ``references`` maps local fields to fields of
    ``foreign_table``; ``fields`` is always the ordered local side.
    """

    name: str
    fields: tuple[str, ...] = ()
    type: IndexType = IndexType.INDEX
    references: Mapping[str, str] = field(default_factory=dict)
    foreign_table: str | None = None
    table: str | None = None

    def __post_init__(self) -> None:
        try:
            index_type = IndexType(self.type)
        except ValueError:
            raise DefinitionError(
                f"Invalid type '{self.type}' for index '{self.name}'. "
                f"Valid types: {', '.join(IndexType.values())}",
                {"index_name": self.name, "index_type": str(self.type)},
            ) from None
        object.__setattr__(self, "type", index_type)

        if index_type is IndexType.FOREIGN:
            references = dict(self.references)
            if not references:
                raise DefinitionError(
                    f"No fields in foreign key definition '{self.name}'",
                    {"index_name": self.name},
                )
            if not self.foreign_table:
                raise DefinitionError(
                    f"Foreign key '{self.name}' must name the referenced table",
                    {"index_name": self.name},
                )
            object.__setattr__(self, "references", references)
            object.__setattr__(self, "fields", tuple(references))
            return

        fields = tuple(self.fields)
        if not fields:
            raise DefinitionError(
                f"No fields in {index_type.value} index definition '{self.name}'",
                {"index_name": self.name},
            )
        object.__setattr__(self, "fields", fields)

    def has_field(self, name: str) -> bool:
        return name in self.fields

    @property
    def is_primary(self) -> bool:
        return self.type is IndexType.PRIMARY

    @property
    def is_unique(self) -> bool:
        return self.type in (IndexType.PRIMARY, IndexType.UNIQUE)

    @property
    def is_foreign(self) -> bool:
        return self.type is IndexType.FOREIGN

    def bind(self, table: str) -> Index:
        """Return a copy of this index bound to ``table``."""
        return replace(self, table=table)


def primary(fields: Iterable[str]) -> Index:
    """Primary key index; field order is the key order."""
    return Index("primary", tuple(fields), IndexType.PRIMARY)


def unique(name: str, fields: Iterable[str]) -> Index:
    return Index(name, tuple(fields), IndexType.UNIQUE)


def index(name: str, fields: Iterable[str]) -> Index:
    return Index(name, tuple(fields), IndexType.INDEX)


def foreign(name: str, references: Mapping[str, str], foreign_table: str) -> Index:
    """Foreign key from local fields to fields of ``foreign_table``."""
    return Index(
        name,
        type=IndexType.FOREIGN,
        references=dict(references),
        foreign_table=foreign_table,
    )


@dataclass(frozen=True)
class Relation:
    """Relation from an owner entity to a target entity.

    Direct relations (``one``, ``many``) join owner fields to target fields
    through ``keys``. Through relations chain two hops: ``keys`` joins owner
    fields to mediator fields and ``target_keys`` joins mediator fields to
    target fields.

    Example:
        Relation(
            "tag",
            RelationType.MANY_THROUGH,
            keys={"id": "article_id"},
            target_keys={"tag_id": "id"},
            mediator="article_tag",
            container="tags",
        )
    """

    entity: str
    type: RelationType
    keys: Mapping[str, str]
    container: str | None = None
    mediator: str | None = None
    target_keys: Mapping[str, str] | None = None
    local_values: Mapping[str, Any] = field(default_factory=dict)
    foreign_values: Mapping[str, Any] = field(default_factory=dict)
    name: str | None = None

    def __post_init__(self) -> None:
        try:
            relation_type = RelationType(self.type)
        except ValueError:
            raise DefinitionError(
                f"Invalid relation type '{self.type}' for entity '{self.entity}'. "
                f"Valid types: {', '.join(RelationType.values())}",
                {"entity": self.entity, "relation_type": str(self.type)},
            ) from None
        object.__setattr__(self, "type", relation_type)

        container = self.container or self.name or self.entity
        object.__setattr__(self, "container", container)
        object.__setattr__(self, "name", self.name or container)

        if not self.keys:
            raise DefinitionError(
                f"No keys in relation definition '{self.name}'",
                {"relation_name": self.name},
            )
        object.__setattr__(self, "keys", dict(self.keys))
        object.__setattr__(self, "local_values", dict(self.local_values))
        object.__setattr__(self, "foreign_values", dict(self.foreign_values))

        if relation_type.is_through:
            if not self.mediator:
                raise DefinitionError(
                    f"Relation '{self.name}' of type '{relation_type.value}' requires a mediator",
                    {"relation_name": self.name},
                )
            if not self.target_keys:
                raise DefinitionError(
                    f"No target keys in relation definition '{self.name}'",
                    {"relation_name": self.name},
                )
            object.__setattr__(self, "target_keys", dict(self.target_keys))
        elif self.mediator or self.target_keys:
            raise DefinitionError(
                f"Relation '{self.name}' of type '{relation_type.value}' "
                "cannot have a mediator or target keys",
                {"relation_name": self.name},
            )

    @property
    def is_through(self) -> bool:
        return self.type.is_through

    @property
    def is_many(self) -> bool:
        return self.type.is_many

    def local_keys(self) -> dict[str, str]:
        """Owner field -> target field (direct) or mediator field (through)."""
        return dict(self.keys)

    def foreign_keys(self) -> dict[str, str]:
        """Far side of the relation keyed by its own fields.

        Direct relations: target field -> owner field.
        Through relations: mediator field -> target field.
        """
        if self.is_through:
            return dict(self.target_keys or {})
        return {foreign: local for local, foreign in self.keys.items()}

    def far_fields(self) -> list[tuple[str, list[str]]]:
        """Entities on the far side of the relation with the fields it uses in each."""
        if self.is_through:
            return [
                (
                    self.mediator or "",
                    [*self.keys.values(), *(self.target_keys or {}), *self.foreign_values],
                ),
                (self.entity, list((self.target_keys or {}).values())),
            ]
        return [(self.entity, [*self.keys.values(), *self.foreign_values])]
