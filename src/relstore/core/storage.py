"""Storage facade: models, driver and query/schema starters in one place."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from relstore.core.connection import Driver
from relstore.core.types import ModelSpec, Operation, SchemaOperation
from relstore.model.bag import ModelBag
from relstore.model.loader import build_model, load_models
from relstore.model.model import Model
from relstore.query.builder import QueryBuilder
from relstore.query.query import Query
from relstore.schema.schema import Schema

logger = logging.getLogger(__name__)


class Storage:
    """Entry point for working with stored entities.

    Query starters return a configured ``Query``; chain conditions, relations
    or ordering onto it and call ``execute()``.

    Example:
        storage = Storage("sqlite:///blog.db")
        storage.load_models("models.json")
        storage.create().execute()

        storage.write({"id": None, "title": "Hello", "tags": [tag]}, "article").with_(
            "tags"
        ).execute()
        articles = storage.read("article").with_("tags").order("id", "asc").execute()
    """

    def __init__(self, url: str | Driver, echo: bool = False) -> None:
        """Initialize storage.

        Args:
            url: Database connection URL, or a ready Driver
            echo: Whether to echo SQL statements (for debugging)
        """
        self._driver = url if isinstance(url, Driver) else Driver(url, echo=echo)
        self._models = ModelBag()
        self._builder: QueryBuilder | None = None

    @property
    def driver(self) -> Driver:
        return self._driver

    @property
    def builder(self) -> QueryBuilder:
        """Statement builder for the driver's dialect."""
        if self._builder is None:
            self._builder = QueryBuilder(self._driver.dialect)
        return self._builder

    # === Models ===

    def register(self, model: Model, alias: str | None = None) -> Storage:
        """Register a model.

        Args:
            model: Model to register
            alias: Additional lookup name

        Returns:
            self for chained calls
        """
        self._models.set(model, alias)
        logger.info(f"Registered model '{model.entity}'")
        return self

    def register_spec(
        self, spec: ModelSpec | dict[str, Any], entity_class: type | None = None
    ) -> Model:
        """Build a model from a spec and register it.

        Raises:
            DefinitionError: If the spec is malformed
        """
        model = build_model(spec, entity_class=entity_class)
        alias = spec.alias if isinstance(spec, ModelSpec) else spec.get("alias")
        self.register(model, alias)
        return model

    def load_models(self, path: str | Path) -> list[Model]:
        """Register every model declared in a JSON file.

        Raises:
            ModelNotFoundError: If a relation names a model the registry lacks
            DefinitionError: If a relation uses a field its far side lacks
        """
        models = []
        for model, alias in load_models(path):
            self.register(model, alias)
            models.append(model)
        self._models.validate()
        return models

    def has_model(self, entity: Any) -> bool:
        return self._models.has(entity)

    def get_model(self, entity: Any) -> Model:
        """Return a registered model.

        Raises:
            ModelNotFoundError: If nothing is registered for the entity
        """
        return self._models.get(entity)

    def models(self) -> ModelBag:
        return self._models

    # === Queries ===

    def _query(self, operation: Operation, entity: Any = None, instance: Any = None) -> Query:
        return Query(self._driver, self.builder, self._models).operation(
            operation, entity, instance
        )

    def count(self, entity: Any) -> Query:
        return self._query(Operation.COUNT, entity)

    def read(self, entity: Any) -> Query:
        return self._query(Operation.READ, entity)

    def read_one(self, entity: Any) -> Query:
        return self._query(Operation.READ_ONE, entity)

    def insert(self, instance: Any, entity: Any = None) -> Query:
        return self._query(Operation.INSERT, entity, instance)

    def write(self, instance: Any, entity: Any = None) -> Query:
        return self._query(Operation.WRITE, entity, instance)

    def update(self, instance: Any, entity: Any = None) -> Query:
        return self._query(Operation.UPDATE, entity, instance)

    def delete(self, instance: Any = None, entity: Any = None) -> Query:
        """Delete query for an instance, or for conditions added with ``where()``."""
        return self._query(Operation.DELETE, entity, instance)

    def clear(self, entity: Any) -> Query:
        return self._query(Operation.CLEAR, entity)

    # === Schema ===

    def check(self, entity: Any = None) -> Schema:
        return Schema(self._driver, self._models).operation(SchemaOperation.CHECK, entity)

    def create(self, entity: Any = None) -> Schema:
        self._models.validate()
        return Schema(self._driver, self._models).operation(SchemaOperation.CREATE, entity)

    def drop(self, entity: Any = None) -> Schema:
        return Schema(self._driver, self._models).operation(SchemaOperation.DROP, entity)

    # === Transactions ===

    def transaction_start(self) -> Storage:
        self._driver.transaction_start()
        return self

    def transaction_commit(self) -> Storage:
        self._driver.transaction_commit()
        return self

    def transaction_rollback(self) -> Storage:
        self._driver.transaction_rollback()
        return self

    def transaction_check(self) -> bool:
        return self._driver.transaction_check()

    @contextmanager
    def transaction(self) -> Iterator[Storage]:
        """Run a block in a transaction, rolling back when it raises.

        Example:
            with storage.transaction():
                storage.write(article, "article").with_("tags").execute()
        """
        with self._driver.transaction():
            yield self

    # === Lifecycle ===

    def close(self) -> None:
        """Close the database connection."""
        self._driver.close()

    def __enter__(self) -> Storage:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()
