"""Shared protocol and helpers for relation resolvers.

A resolver runs the extra round trips a relation needs on top of the primary
statement: populating containers after a read, persisting container contents
after a write, removing related rows on delete, wiping the related table on
clear.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Protocol

from relstore.exceptions import RelationError
from relstore.query.relations.keys import get_value

if TYPE_CHECKING:
    from relstore.model.definitions import Relation
    from relstore.query.query import Query


class RelationResolver(Protocol):
    """Capability shared by every relation variant."""

    definition: Relation
    query: Query

    @property
    def name(self) -> str: ...

    def read(self, collection: Sequence[Any]) -> list[Any]:
        """Return a new collection with every container populated."""
        ...

    def write(self, collection: Sequence[Any]) -> Sequence[Any]:
        """Persist container contents and prune stale related rows."""
        ...

    def delete(self, collection: Sequence[Any]) -> Sequence[Any]:
        """Remove rows linking owners to their container contents."""
        ...

    def clear(self) -> None:
        """Unconditionally empty the related (or mediator) table."""
        ...


class Cardinality(Protocol):
    """How a container holds related entities."""

    many: bool

    def empty(self) -> Any: ...

    def attach(self, current: Any, item: Any) -> Any:
        """Return the container value after adding ``item``."""
        ...

    def items(self, container: Any, relation: Relation, entity: str) -> list[Any]:
        """Related entities held by a container value."""
        ...


class _One:
    many = False

    def empty(self) -> Any:
        return None

    def attach(self, current: Any, item: Any) -> Any:
        # First match wins
        return item if current is None else current

    def items(self, container: Any, relation: Relation, entity: str) -> list[Any]:
        if container is None:
            return []
        if isinstance(container, (list, tuple, set, frozenset)):
            raise RelationError(
                relation.name or relation.entity,
                entity,
                f"container '{relation.container}' must hold a single entity, "
                f"got {type(container).__name__}",
            )
        return [container]


class _Many:
    many = True

    def empty(self) -> Any:
        return []

    def attach(self, current: Any, item: Any) -> Any:
        current.append(item)
        return current

    def items(self, container: Any, relation: Relation, entity: str) -> list[Any]:
        if container is None:
            return []
        if isinstance(container, (str, bytes, Mapping)) or not isinstance(container, Iterable):
            raise RelationError(
                relation.name or relation.entity,
                entity,
                f"container '{relation.container}' must hold a sequence of entities, "
                f"got {type(container).__name__}",
            )
        return list(container)


ONE = _One()
MANY = _Many()


def applies_to(relation: Relation, entity: Any) -> bool:
    """Whether the owner matches the relation's fixed local values."""
    return all(get_value(entity, f) == v for f, v in relation.local_values.items())


def append_unique(conditions: dict[str, list[Any]], field: str, value: Any) -> None:
    values = conditions.setdefault(field, [])
    if value not in values:
        values.append(value)
