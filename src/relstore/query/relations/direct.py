"""Direct relations: owner fields point straight at target fields."""

from __future__ import annotations

import copy
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from relstore.core.types import Operation
from relstore.exceptions import RelationError
from relstore.model.bag import require_fields
from relstore.query.relations.base import (
    Cardinality,
    append_unique,
    applies_to,
)
from relstore.query.relations.keys import (
    CompositeKey,
    get_value,
    has_value,
    identity_fields,
    set_value,
)

if TYPE_CHECKING:
    from relstore.model.definitions import Relation
    from relstore.model.model import Model
    from relstore.query.query import Query

logger = logging.getLogger(__name__)


class DirectRelation:
    """Resolves ``one`` and ``many`` relations.

    Reads are a single batched fetch on the target table. Writes persist
    every contained entity with the owner's key values copied into its foreign
    fields, then remove target rows of the owner that are no longer contained.
    """

    def __init__(
        self, definition: Relation, query: Query, owner: Model, cardinality: Cardinality
    ) -> None:
        """Initialize resolver.

        Args:
            definition: Relation definition
            query: Prototype read query on the target entity
            owner: Model declaring the relation
            cardinality: Container strategy (``ONE`` or ``MANY``)

        Raises:
            DefinitionError: If the target does not declare a key field
        """
        self.definition = definition
        self.query = query
        self.owner = owner
        self.cardinality = cardinality
        self.target = query.models.get(definition.entity)

        require_fields(self.target, [*definition.keys.values(), *definition.foreign_values], definition)

    @property
    def name(self) -> str:
        return self.definition.name or self.definition.entity

    def _local(self) -> list[str]:
        return list(self.definition.keys)

    def _foreign(self) -> list[str]:
        return list(self.definition.keys.values())

    # === Read ===

    def read(self, collection: Sequence[Any]) -> list[Any]:
        result = [copy.copy(entity) for entity in collection]
        container = self.definition.container
        local = self._local()

        owners: dict[CompositeKey, list[Any]] = {}
        for entity in result:
            if not applies_to(self.definition, entity):
                continue
            set_value(entity, container, self.cardinality.empty())
            key = CompositeKey.of(entity, local, self.owner)
            if key.complete:
                owners.setdefault(key, []).append(entity)

        if not owners:
            return result

        query = self.query.clone()
        conditions: dict[str, list[Any]] = {}
        for key in owners:
            for field, value in key.as_dict(self._foreign()).items():
                append_unique(conditions, field, value)
        for field, values in conditions.items():
            query.where(field, values)
        for field, value in self.definition.foreign_values.items():
            query.where(field, value)
        query.include_fields(self._foreign())

        rows = query.execute()
        logger.debug(f"Relation '{self.name}': fetched {len(rows)} '{self.target.entity}' rows")

        for row in rows:
            for owner in owners.get(CompositeKey.of(row, self._foreign(), self.target), []):
                current = get_value(owner, container)
                set_value(owner, container, self.cardinality.attach(current, row))

        return result

    # === Write ===

    def _owner_key(self, entity: Any, action: str) -> CompositeKey:
        key = CompositeKey.of(entity, self._local(), self.owner)
        if not key.complete:
            raise RelationError(
                self.name,
                self.owner.entity,
                f"cannot {action} related entities, owner key "
                f"({', '.join(self._local())}) has no value",
            )
        return key

    def _contained(self, entity: Any) -> list[Any] | None:
        """Related entities of an owner, or None when the relation does not apply."""
        container = self.definition.container
        if not applies_to(self.definition, entity) or not has_value(entity, container):
            return None
        return self.cardinality.items(get_value(entity, container), self.definition, self.owner.entity)

    def write(self, collection: Sequence[Any]) -> Sequence[Any]:
        identity = identity_fields(self.target)

        for entity in collection:
            items = self._contained(entity)
            if items is None:
                continue
            owner_key = self._owner_key(entity, "write")

            written: set[CompositeKey] = set()
            for item in items:
                for field, value in owner_key.as_dict(self._foreign()).items():
                    set_value(item, field, value)
                for field, value in self.definition.foreign_values.items():
                    set_value(item, field, value)

                self.query.clone().operation(Operation.WRITE, self.target.entity, item).execute()
                written.add(CompositeKey.of(item, identity, self.target))

            self._cleanup(owner_key, written)

        return collection

    def _cleanup(self, owner_key: CompositeKey, written: set[CompositeKey]) -> None:
        """Delete target rows of one owner that were not just written."""
        query = self.query.fresh().operation(Operation.READ, self.target.entity)
        for field, value in owner_key.as_dict(self._foreign()).items():
            query.where(field, value)
        for field, value in self.definition.foreign_values.items():
            query.where(field, value)

        identity = identity_fields(self.target)
        for row in query.execute():
            if CompositeKey.of(row, identity, self.target) in written:
                continue
            logger.debug(f"Relation '{self.name}': removing stale '{self.target.entity}' row")
            self.query.fresh().operation(Operation.DELETE, self.target.entity, row).execute()

    # === Delete / clear ===

    def delete(self, collection: Sequence[Any]) -> Sequence[Any]:
        for entity in collection:
            items = self._contained(entity)
            if not items:
                continue
            for item in items:
                self.query.clone().operation(Operation.DELETE, self.target.entity, item).execute()
        return collection

    def clear(self) -> None:
        self.query.fresh().operation(Operation.CLEAR, self.target.entity).execute()
