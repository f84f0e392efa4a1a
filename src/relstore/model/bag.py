"""Registry of models, looked up by entity identifier, alias or class."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Any

from relstore.exceptions import DefinitionError, ModelNotFoundError
from relstore.model.definitions import Relation
from relstore.model.model import Model

logger = logging.getLogger(__name__)


def require_fields(model: Model, fields: Iterable[str], relation: Relation) -> None:
    """Check that the far side of a relation declares every field it uses.

    Raises:
        DefinitionError: If a field is missing from ``model``
    """
    for name in fields:
        if not model.has_field(name):
            raise DefinitionError(
                f"Relation field '{name}' does not exist in entity model '{model.entity}' "
                f"(relation '{relation.name}')",
                {"relation_name": relation.name, "field_name": name, "entity": model.entity},
            )


class ModelBag:
    """Holds every registered model.

    Populated at startup and only read afterwards, so it can be shared between
    queries without locking.
    """

    def __init__(self, models: list[Model] | None = None) -> None:
        self._models: dict[str, Model] = {}
        self._aliases: dict[str, str] = {}
        self._classes: dict[type, str] = {}
        for model in models or []:
            self.set(model)

    def set(self, model: Model, alias: str | None = None) -> ModelBag:
        """Register model under its entity identifier and optional alias.

        Args:
            model: Model to register
            alias: Additional lookup name

        Returns:
            self for chained calls
        """
        self._models[model.entity] = model
        if alias:
            self._aliases[alias] = model.entity
        if model.entity_class is not None:
            self._classes[model.entity_class] = model.entity

        logger.debug(f"Registered model '{model.entity}' (table: {model.table})")
        return self

    def _resolve(self, key: Any) -> str | None:
        if isinstance(key, str):
            if key in self._models:
                return key
            return self._aliases.get(key)

        cls = key if isinstance(key, type) else type(key)
        for candidate in cls.__mro__:
            if candidate in self._classes:
                return self._classes[candidate]
        return None

    def has(self, key: Any) -> bool:
        """Whether a model is registered for the key.

        Args:
            key: Entity identifier, alias, entity class or entity instance
        """
        return self._resolve(key) is not None

    def get(self, key: Any) -> Model:
        """Return the model registered for the key.

        Raises:
            ModelNotFoundError: If nothing is registered under the key
        """
        entity = self._resolve(key)
        if entity is None:
            name = key if isinstance(key, str) else getattr(key, "__name__", type(key).__name__)
            raise ModelNotFoundError(name, sorted(self._models))
        return self._models[entity]

    def validate(self) -> ModelBag:
        """Check that every relation points at registered models and fields.

        Raises:
            ModelNotFoundError: If a relation target or mediator is not registered
            DefinitionError: If a far-side model lacks a field the relation uses
        """
        for model in self._models.values():
            for relation in model.relations.values():
                for entity, fields in relation.far_fields():
                    require_fields(self.get(entity), fields, relation)

        logger.debug(f"Validated relations of {len(self._models)} models")
        return self

    def all(self) -> list[Model]:
        """All models in registration order."""
        return list(self._models.values())

    def __contains__(self, key: Any) -> bool:
        return self.has(key)

    def __len__(self) -> int:
        return len(self._models)

    def __iter__(self) -> Iterator[Model]:
        return iter(self.all())
