"""Schema orchestrator.

Builds SQLAlchemy tables from the registered models and checks, creates or
drops them. All models share one ``MetaData`` so foreign indexes resolve to
the referenced tables and DDL runs in dependency order.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKeyConstraint,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    inspect,
)
from sqlalchemy.schema import CreateIndex, CreateTable, DropTable

from relstore.core.types import Attribute, FieldType, SchemaOperation
from relstore.exceptions import QueryError

if TYPE_CHECKING:
    from sqlalchemy import Connection

    from relstore.core.connection import Driver
    from relstore.model.bag import ModelBag
    from relstore.model.definitions import Field
    from relstore.model.model import Model

logger = logging.getLogger(__name__)


def _decimal(field: Field) -> Numeric:
    return Numeric(field.attribute(Attribute.LENGTH) or 10, field.attribute(Attribute.PRECISION) or 2)


def _string(field: Field) -> String:
    length = field.attribute(Attribute.LENGTH)
    return String(int(length)) if length else Text()


# Mapping from field types to SQLAlchemy column types
FIELD_TYPE_MAP = {
    FieldType.BOOLEAN: lambda field: Boolean(),
    FieldType.INTEGER: lambda field: Integer(),
    FieldType.DECIMAL: _decimal,
    FieldType.STRING: _string,
    FieldType.DATETIME: lambda field: DateTime(),
    FieldType.SERIAL: lambda field: Text(),
}


def _server_default(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


class Schema:
    """Runs check, create and drop for one entity or every registered entity."""

    def __init__(self, driver: Driver, models: ModelBag) -> None:
        """Initialize schema orchestrator.

        Args:
            driver: Driver the DDL runs on
            models: Registry of models to build tables from
        """
        self._driver = driver
        self._models = models
        self.reset()

    def reset(self) -> Schema:
        self._operation: SchemaOperation | None = None
        self._entities: list[str] = []
        return self

    def operation(self, operation: SchemaOperation | str, entity: Any = None) -> Schema:
        """Set the schema operation.

        Args:
            operation: check, create or drop
            entity: Entity identifier, alias or class; every model when None

        Raises:
            QueryError: If the operation is unknown
            ModelNotFoundError: If the entity is not registered
        """
        try:
            self._operation = SchemaOperation(operation)
        except ValueError:
            raise QueryError(
                f"Unknown schema operation '{operation}'. "
                f"Valid: {', '.join(SchemaOperation.values())}"
            ) from None

        if entity is None:
            self._entities = [m.entity for m in self._models.all()]
        else:
            self._entities = [self._models.get(entity).entity]
        return self

    # === Table building ===

    def _column(self, model: Model, field: Field) -> Column[Any]:
        primary = model.is_primary(field.name)
        kwargs: dict[str, Any] = {
            "primary_key": primary,
            "nullable": field.nullable and not primary,
        }
        if primary:
            kwargs["autoincrement"] = field.auto_increment
        default = _server_default(field.attribute(Attribute.DEFAULT))
        if default is not None:
            kwargs["server_default"] = default
        return Column(field.column, FIELD_TYPE_MAP[field.type](field), **kwargs)

    def _foreign_column(self, table: str, name: str) -> str:
        """Column of a referenced field, looked up on the model owning ``table``."""
        for model in self._models.all():
            if model.table == table and model.has_field(name):
                return model.field(name).column
        return name

    def _table(self, model: Model, metadata: MetaData) -> Table:
        args: list[Any] = [self._column(model, f) for f in model.fields.values()]

        for index in model.indexes.values():
            columns = [model.field(name).column for name in index.fields]
            if index.is_primary:
                continue
            if index.is_foreign:
                assert index.foreign_table is not None
                args.append(
                    ForeignKeyConstraint(
                        columns,
                        [
                            f"{index.foreign_table}.{self._foreign_column(index.foreign_table, name)}"
                            for name in index.references.values()
                        ],
                        name=index.name,
                    )
                )
            else:
                args.append(Index(index.name, *columns, unique=index.is_unique))

        return Table(model.table, metadata, *args)

    def tables(self) -> dict[str, Table]:
        """SQLAlchemy tables of every registered model, keyed by entity."""
        metadata = MetaData()
        return {model.entity: self._table(model, metadata) for model in self._models.all()}

    # === Execution ===

    def _require_operation(self) -> SchemaOperation:
        if self._operation is None:
            raise QueryError("No schema operation set. Call operation() first")
        return self._operation

    def query_string(self) -> list[str]:
        """Render the DDL the operation runs (empty for check)."""
        operation = self._require_operation()
        tables = self.tables()
        dialect = self._driver.engine.dialect
        statements: list[str] = []

        if operation is SchemaOperation.CREATE:
            for entity in self._entities:
                table = tables[entity]
                statements.append(str(CreateTable(table).compile(dialect=dialect)).strip())
                statements.extend(
                    str(CreateIndex(index).compile(dialect=dialect)).strip()
                    for index in table.indexes
                )
        elif operation is SchemaOperation.DROP:
            for entity in self._entities:
                statements.append(str(DropTable(tables[entity]).compile(dialect=dialect)).strip())
        return statements

    def execute(self) -> Any:
        """Run the operation.

        Returns:
            check: ``{entity: table exists}``
            create, drop: entities whose table was created or dropped

        Raises:
            DriverError: If DDL fails
        """
        operation = self._require_operation()
        if operation is SchemaOperation.CHECK:
            return self._check()

        tables = self.tables()
        selected = [tables[entity] for entity in self._entities]
        existing = self._check()

        if operation is SchemaOperation.CREATE:
            affected = [e for e in self._entities if not existing[e]]

            def _create(conn: Connection) -> None:
                selected[0].metadata.create_all(conn, tables=selected, checkfirst=True)

            if selected:
                self._driver.run(_create)
            for entity in affected:
                logger.info(f"Created table '{tables[entity].name}' for entity '{entity}'")
            return affected

        affected = [e for e in self._entities if existing[e]]

        def _drop(conn: Connection) -> None:
            selected[0].metadata.drop_all(conn, tables=selected, checkfirst=True)

        if selected:
            self._driver.run(_drop)
        for entity in affected:
            logger.info(f"Dropped table '{tables[entity].name}' for entity '{entity}'")
        return affected

    def _check(self) -> dict[str, bool]:
        tables = {m.entity: m.table for m in self._models.all() if m.entity in self._entities}

        def _inspect(conn: Connection) -> dict[str, bool]:
            inspector = inspect(conn)
            return {entity: inspector.has_table(table) for entity, table in tables.items()}

        return self._driver.run(_inspect)
