"""Through relations: owner and target meet only in a mediator table."""

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
    set_value,
)

if TYPE_CHECKING:
    from relstore.model.definitions import Relation
    from relstore.model.model import Model
    from relstore.query.query import Query

logger = logging.getLogger(__name__)


class ThroughRelation:
    """Resolves ``one_through`` and ``many_through`` relations.

    ``keys`` maps owner fields to mediator fields and ``target_keys`` maps
    mediator fields to target fields. A mediator row holds exactly those
    mediator fields, plus the relation's ``foreign_values``.

    Reading always costs two fetches, one per hop, however many owners are
    passed in. Writing costs one write per contained target, one write per
    mediator row (update or insert by the mediator's identity), and one
    cleanup pass per owner.
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
            DefinitionError: If the mediator or the target does not declare a key field
        """
        self.definition = definition
        self.query = query
        self.owner = owner
        self.cardinality = cardinality
        self.target = query.models.get(definition.entity)
        self.mediator = query.models.get(definition.mediator)

        require_fields(
            self.mediator,
            [*self._owner_side(), *self._target_side(), *definition.foreign_values],
            definition,
        )
        require_fields(self.target, self._target_fields(), definition)

    @property
    def name(self) -> str:
        return self.definition.name or self.definition.entity

    def _local(self) -> list[str]:
        """Owner fields."""
        return list(self.definition.keys)

    def _owner_side(self) -> list[str]:
        """Mediator fields holding owner keys."""
        return list(self.definition.keys.values())

    def _target_side(self) -> list[str]:
        """Mediator fields holding target keys."""
        return list(self.definition.foreign_keys())

    def _target_fields(self) -> list[str]:
        """Target fields referenced by the mediator, aligned with ``_target_side``."""
        return list(self.definition.foreign_keys().values())

    def _mediator_fields(self) -> list[str]:
        return [*self._owner_side(), *self._target_side()]

    def _mediator_query(self, operation: Operation) -> Query:
        query = self.query.fresh().operation(operation, self.mediator.entity)
        for field, value in self.definition.foreign_values.items():
            query.where(field, value)
        return query

    # === Read ===

    def read(self, collection: Sequence[Any]) -> list[Any]:
        result = [copy.copy(entity) for entity in collection]
        container = self.definition.container

        owners: dict[CompositeKey, list[Any]] = {}
        for entity in result:
            if not applies_to(self.definition, entity):
                continue
            set_value(entity, container, self.cardinality.empty())
            key = CompositeKey.of(entity, self._local(), self.owner)
            if key.complete:
                owners.setdefault(key, []).append(entity)

        if not owners:
            return result

        # First hop: mediator rows of every owner
        query = self._mediator_query(Operation.READ)
        conditions: dict[str, list[Any]] = {}
        for key in owners:
            for field, value in key.as_dict(self._owner_side()).items():
                append_unique(conditions, field, value)
        for field, values in conditions.items():
            query.where(field, values)
        links = query.execute()
        logger.debug(f"Relation '{self.name}': fetched {len(links)} '{self.mediator.entity}' rows")

        # Owner keys of each mediator row, keyed by the row's target key.
        # A batched IN over several fields may over-fetch, so only rows whose
        # owner key tuple was requested are kept.
        pairs: list[tuple[CompositeKey, CompositeKey]] = []
        conditions = {}
        for link in links:
            owner_key = CompositeKey.of(link, self._owner_side(), self.mediator)
            if owner_key not in owners:
                continue
            target_key = CompositeKey.of(link, self._target_side(), self.mediator)
            pairs.append((owner_key, target_key))
            for field, value in target_key.as_dict(self._target_fields()).items():
                append_unique(conditions, field, value)

        if not pairs:
            return result

        # Second hop: every target referenced by those mediator rows
        query = self.query.clone()
        for field, values in conditions.items():
            query.where(field, values)
        query.include_fields(self._target_fields())
        rows = query.execute()
        logger.debug(f"Relation '{self.name}': fetched {len(rows)} '{self.target.entity}' rows")

        targets: dict[CompositeKey, Any] = {}
        for row in rows:
            targets.setdefault(CompositeKey.of(row, self._target_fields(), self.target), row)

        for owner_key, target_key in pairs:
            row = targets.get(target_key)
            if row is None:
                continue
            for owner in owners[owner_key]:
                current = get_value(owner, container)
                set_value(owner, container, self.cardinality.attach(current, row))

        return result

    # === Write ===

    def _contained(self, entity: Any) -> list[Any] | None:
        container = self.definition.container
        if not applies_to(self.definition, entity) or not has_value(entity, container):
            return None
        return self.cardinality.items(get_value(entity, container), self.definition, self.owner.entity)

    def _owner_key(self, entity: Any, action: str) -> CompositeKey:
        key = CompositeKey.of(entity, self._local(), self.owner)
        if not key.complete:
            raise RelationError(
                self.name,
                self.owner.entity,
                f"cannot {action} mediator rows, owner key "
                f"({', '.join(self._local())}) has no value",
            )
        return key

    def _link(self, owner_key: CompositeKey, item: Any, action: str) -> CompositeKey:
        """Mediator key tuple for one (owner, target) pair."""
        target_key = CompositeKey.of(item, self._target_fields(), self.target)
        if not target_key.complete:
            raise RelationError(
                self.name,
                self.owner.entity,
                f"cannot {action} mediator row, '{self.target.entity}' key "
                f"({', '.join(self._target_fields())}) has no value",
            )
        fields = self._mediator_fields()
        values = dict(zip(fields, owner_key.values + target_key.values, strict=True))
        return CompositeKey.of(values, fields, self.mediator)

    def write(self, collection: Sequence[Any]) -> Sequence[Any]:
        for entity in collection:
            items = self._contained(entity)
            if items is None:
                continue
            owner_key = self._owner_key(entity, "write")

            for item in items:
                self.query.clone().operation(Operation.WRITE, self.target.entity, item).execute()

            written: list[CompositeKey] = []
            for item in items:
                link = self._link(owner_key, item, "write")
                if link not in written:
                    self._write_link(link)
                    written.append(link)

            self._cleanup(owner_key, set(written))

        return collection

    def _write_link(self, link: CompositeKey) -> None:
        """Write one mediator row, updating the row that shares its identity."""
        row = {**link.as_dict(self._mediator_fields()), **self.definition.foreign_values}
        self.query.fresh().operation(Operation.WRITE, self.mediator.entity, row).execute()

    def _cleanup(self, owner_key: CompositeKey, written: set[CompositeKey]) -> None:
        """Delete the owner's mediator rows that were not just written."""
        query = self._mediator_query(Operation.READ)
        for field, value in owner_key.as_dict(self._owner_side()).items():
            query.where(field, value)

        for row in query.execute():
            link = CompositeKey.of(row, self._mediator_fields(), self.mediator)
            if link in written:
                continue
            logger.debug(f"Relation '{self.name}': removing stale '{self.mediator.entity}' row")
            self._delete_link(link)

    def _delete_link(self, link: CompositeKey) -> None:
        query = self._mediator_query(Operation.DELETE)
        for field, value in link.as_dict(self._mediator_fields()).items():
            query.where(field, value)
        query.execute()

    # === Delete / clear ===

    def delete(self, collection: Sequence[Any]) -> Sequence[Any]:
        for entity in collection:
            items = self._contained(entity)
            if not items:
                continue
            owner_key = self._owner_key(entity, "delete")
            for item in items:
                self._delete_link(self._link(owner_key, item, "delete"))
        return collection

    def clear(self) -> None:
        self.query.fresh().operation(Operation.CLEAR, self.mediator.entity).execute()
