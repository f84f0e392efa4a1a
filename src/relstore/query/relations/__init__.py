"""Relation resolvers.

``create_relation`` picks the resolver for a relation definition from its
type tag:

    one           DirectRelation(ONE)
    many          DirectRelation(MANY)
    one_through   ThroughRelation(ONE)
    many_through  ThroughRelation(MANY)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from relstore.core.types import RelationType
from relstore.query.relations.base import MANY, ONE, Cardinality, RelationResolver
from relstore.query.relations.direct import DirectRelation
from relstore.query.relations.keys import CompositeKey
from relstore.query.relations.through import ThroughRelation

if TYPE_CHECKING:
    from relstore.model.definitions import Relation
    from relstore.model.model import Model
    from relstore.query.query import Query

VARIANTS: dict[RelationType, tuple[type, Cardinality]] = {
    RelationType.ONE: (DirectRelation, ONE),
    RelationType.MANY: (DirectRelation, MANY),
    RelationType.ONE_THROUGH: (ThroughRelation, ONE),
    RelationType.MANY_THROUGH: (ThroughRelation, MANY),
}


def create_relation(definition: Relation, query: Query, owner: Model) -> RelationResolver:
    """Build the resolver for ``definition``.

    Args:
        definition: Relation declared on ``owner``
        query: Prototype read query on the relation's target entity
        owner: Model declaring the relation

    Raises:
        ModelNotFoundError: If the target or mediator is not registered
        DefinitionError: If the far side does not declare a key field
    """
    resolver_class, cardinality = VARIANTS[definition.type]
    return resolver_class(definition, query, owner, cardinality)


__all__ = [
    "MANY",
    "ONE",
    "CompositeKey",
    "DirectRelation",
    "RelationResolver",
    "ThroughRelation",
    "create_relation",
]
