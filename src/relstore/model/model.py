"""Entity model: table, fields, indexes and relations of one entity."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from relstore.exceptions import (
    DefinitionError,
    FieldNotFoundError,
    IndexNotFoundError,
    RelationNotFoundError,
)
from relstore.model.definitions import Field, Index, Relation


class Model:
    """Describes how one entity is stored.

    The model is validated as a whole on construction: every field used by an
    index or a relation must be declared. A failing check raises
    ``DefinitionError`` and no model is produced.
    """

    def __init__(
        self,
        entity: str,
        table: str,
        fields: Iterable[Field],
        indexes: Iterable[Index] = (),
        relations: Iterable[Relation] = (),
        entity_class: type | None = None,
    ) -> None:
        """Initialize model.

        Args:
            entity: Entity identifier used for registry lookups
            table: Table name
            fields: Field definitions, in column order
            indexes: Index definitions
            relations: Relation definitions
            entity_class: Class instantiated with ``entity_class(**values)`` for
                fetched rows (rows stay dicts when None)

        Raises:
            DefinitionError: If a definition references an undeclared field
        """
        if not entity:
            raise DefinitionError("Model entity identifier must not be empty")
        if not table:
            raise DefinitionError(f"Model '{entity}' must name a table")

        self._entity = entity
        self._table = table
        self._entity_class = entity_class
        self._fields = self._assign_fields(fields)
        self._indexes = self._assign_indexes(indexes)
        self._relations = self._assign_relations(relations)

    def _assign_fields(self, fields: Iterable[Field]) -> dict[str, Field]:
        result: dict[str, Field] = {}
        for definition in fields:
            if not isinstance(definition, Field):
                raise DefinitionError(
                    f"Field must be a Field instance, got '{type(definition).__name__}'"
                )
            if definition.name in result:
                raise DefinitionError(
                    f"Field '{definition.name}' is declared twice in model '{self._entity}'"
                )
            result[definition.name] = definition.bind(self._table)
        return result

    def _assign_indexes(self, indexes: Iterable[Index]) -> dict[str, Index]:
        result: dict[str, Index] = {}
        for definition in indexes:
            if not isinstance(definition, Index):
                raise DefinitionError(
                    f"Index must be an Index instance, got '{type(definition).__name__}'"
                )
            if definition.name in result:
                raise DefinitionError(
                    f"Index '{definition.name}' is declared twice in model '{self._entity}'"
                )
            for name in definition.fields:
                if name not in self._fields:
                    raise DefinitionError(
                        f"Index field '{name}' does not exist in entity model '{self._entity}'",
                        {"index_name": definition.name, "field_name": name},
                    )
            result[definition.name] = definition.bind(self._table)
        return result

    def _assign_relations(self, relations: Iterable[Relation]) -> dict[str, Relation]:
        result: dict[str, Relation] = {}
        for definition in relations:
            if not isinstance(definition, Relation):
                raise DefinitionError(
                    f"Relation must be a Relation instance, got '{type(definition).__name__}'"
                )
            name = definition.name or definition.entity
            if name in result:
                raise DefinitionError(
                    f"Relation '{name}' is declared twice in model '{self._entity}'"
                )
            for field_name in [*definition.keys, *definition.local_values]:
                if field_name not in self._fields:
                    raise DefinitionError(
                        f"Relation field '{field_name}' does not exist "
                        f"in entity model '{self._entity}'",
                        {"relation_name": name, "field_name": field_name},
                    )
            result[name] = definition
        return result

    def __repr__(self) -> str:
        return f"Model(entity={self._entity!r}, table={self._table!r})"

    @property
    def table(self) -> str:
        return self._table

    @property
    def entity(self) -> str:
        return self._entity

    @property
    def entity_class(self) -> type | None:
        return self._entity_class

    # === Fields ===

    def has_field(self, name: str) -> bool:
        return name in self._fields

    @property
    def fields(self) -> dict[str, Field]:
        """Field definitions in declaration order."""
        return dict(self._fields)

    def field(self, name: str) -> Field:
        """Return field definition.

        Raises:
            FieldNotFoundError: If the field is not declared
        """
        if name not in self._fields:
            raise FieldNotFoundError(name, self._entity, list(self._fields))
        return self._fields[name]

    # === Indexes ===

    def is_primary(self, name: str) -> bool:
        """Whether the field belongs to the primary index."""
        self.field(name)
        return any(idx.is_primary and idx.has_field(name) for idx in self._indexes.values())

    def primary_fields(self) -> list[Field]:
        """Fields of the primary index in key order (empty without one)."""
        result: list[Field] = []
        for idx in self._indexes.values():
            if idx.is_primary:
                result.extend(self.field(name) for name in idx.fields)
        return result

    def is_auto_increment(self) -> bool:
        """Whether the model has a single auto-increment primary field."""
        primary_fields = self.primary_fields()
        return len(primary_fields) == 1 and primary_fields[0].auto_increment

    def is_index(self, name: str) -> bool:
        """Whether the field belongs to any index."""
        self.field(name)
        return any(idx.has_field(name) for idx in self._indexes.values())

    def in_index(self, name: str) -> list[Index]:
        """All indexes containing the field."""
        self.field(name)
        return [idx for idx in self._indexes.values() if idx.has_field(name)]

    def index_fields(self) -> list[Field]:
        """Fields of all indexes, without duplicates, in index order."""
        seen: dict[str, Field] = {}
        for idx in self._indexes.values():
            for name in idx.fields:
                seen.setdefault(name, self.field(name))
        return list(seen.values())

    @property
    def indexes(self) -> dict[str, Index]:
        return dict(self._indexes)

    def index(self, name: str) -> Index:
        """Return index definition.

        Raises:
            IndexNotFoundError: If the index is not declared
        """
        if name not in self._indexes:
            raise IndexNotFoundError(name, self._entity, list(self._indexes))
        return self._indexes[name]

    # === Relations ===

    def has_relations(self) -> bool:
        return bool(self._relations)

    def has_relation(self, name: str) -> bool:
        return name in self._relations

    @property
    def relations(self) -> dict[str, Relation]:
        return dict(self._relations)

    def relation(self, name: str) -> Relation:
        """Return relation definition.

        Raises:
            RelationNotFoundError: If the relation is not declared
        """
        if name not in self._relations:
            raise RelationNotFoundError(name, self._entity, list(self._relations))
        return self._relations[name]

    def describe(self) -> dict[str, Any]:
        """JSON-serializable description of the model."""
        return {
            "entity": self._entity,
            "table": self._table,
            "fields": [
                {
                    "name": f.name,
                    "type": f.type.value,
                    "column": f.column,
                    "attributes": dict(f.attributes),
                }
                for f in self._fields.values()
            ],
            "indexes": [
                {
                    "name": idx.name,
                    "type": idx.type.value,
                    "fields": list(idx.fields),
                    "references": dict(idx.references),
                    "foreign_table": idx.foreign_table,
                }
                for idx in self._indexes.values()
            ],
            "relations": [
                {
                    "name": rel.name,
                    "type": rel.type.value,
                    "entity": rel.entity,
                    "mediator": rel.mediator,
                    "container": rel.container,
                    "keys": rel.local_keys(),
                    "target_keys": dict(rel.target_keys or {}),
                }
                for rel in self._relations.values()
            ],
        }
