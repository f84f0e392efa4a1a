"""Query orchestrator.

Runs one entity operation (count, read, read_one, insert, write, update,
delete, clear) against the statement builder and the driver, mapping field
names to columns and values to their storage form. Requested relations are
resolved around the primary statement.

Example:
    query = Query(driver, QueryBuilder("sqlite"), models)
    articles = (
        query.operation("read", "article")
        .where("status", "published")
        .with_("tags")
        .with_("comments.author")
        .order("id", "asc")
        .execute()
    )
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from relstore.core.types import BuilderOperation, Comparison, Logical, Operation, Order
from relstore.exceptions import QueryError, RecordNotFoundError
from relstore.query.relations import RelationResolver, create_relation
from relstore.query.relations.keys import (
    CompositeKey,
    get_value,
    has_value,
    identity_fields,
    set_value,
)
from relstore.query.values import dump_value, load_value

if TYPE_CHECKING:
    from relstore.core.connection import Driver
    from relstore.model.bag import ModelBag
    from relstore.model.definitions import Field
    from relstore.model.model import Model
    from relstore.query.builder import QueryBuilder

logger = logging.getLogger(__name__)

# Operations that need an entity instance
INSTANCE_OPERATIONS = (Operation.INSERT, Operation.WRITE, Operation.UPDATE)

# Comparisons whose value is a pattern, not a field value
PATTERN_COMPARISONS = (Comparison.LIKE, Comparison.REGEX)


def _enum(enum_type: Any, value: Any, what: str) -> Any:
    try:
        return enum_type(value)
    except ValueError:
        raise QueryError(
            f"Unknown {what} '{value}'. Valid: {', '.join(enum_type.values())}",
            {what: str(value)},
        ) from None


class Query:
    """One configurable entity operation.

    Conditions, order and limit shape ``count``, ``read``, ``read_one`` and
    ``delete``. ``insert``, ``update`` and ``write`` address rows by identity:
    the primary fields, or every field for models without a primary index.
    """

    def __init__(self, driver: Driver, builder: QueryBuilder, models: ModelBag) -> None:
        """Initialize query.

        Args:
            driver: Driver executing statements
            builder: Statement builder, reset before every statement
            models: Registry the entity models are looked up in
        """
        self._driver = driver
        self._builder = builder
        self._models = models
        self.reset()

    @property
    def models(self) -> ModelBag:
        return self._models

    @property
    def driver(self) -> Driver:
        return self._driver

    @property
    def model(self) -> Model:
        """Model of the entity the operation runs on.

        Raises:
            QueryError: If no operation is set
        """
        if self._model is None:
            raise QueryError("No operation set. Call operation() first")
        return self._model

    def reset(self) -> Query:
        """Forget the operation and everything configured for it."""
        self._operation: Operation | None = None
        self._model: Model | None = None
        self._instance: Any = None
        self._fields: list[str] = []
        self._conditions: list[tuple[list[str], Any, Comparison, Logical]] = []
        self._orders: list[tuple[str, Order]] = []
        self._limit: int | None = None
        self._offset: int | None = None
        self._relations: dict[str, RelationResolver] = {}
        self._binds: dict[str, Any] = {}
        return self

    def fresh(self) -> Query:
        """New, unconfigured query sharing driver, builder and models."""
        return Query(self._driver, self._builder, self._models)

    def clone(self) -> Query:
        """Copy of this query; relation resolvers are shared with the copy."""
        query = self.fresh()
        query._operation = self._operation
        query._model = self._model
        query._instance = self._instance
        query._fields = list(self._fields)
        query._conditions = list(self._conditions)
        query._orders = list(self._orders)
        query._limit = self._limit
        query._offset = self._offset
        query._relations = dict(self._relations)
        return query

    # === Configuration ===

    def operation(
        self, operation: Operation | str, entity: Any = None, instance: Any = None
    ) -> Query:
        """Set the operation and the entity it runs on.

        Args:
            operation: One of count, read, read_one, insert, write, update, delete, clear
            entity: Entity identifier, alias or class; taken from ``instance`` when omitted
            instance: Entity to insert, write, update or delete

        Raises:
            QueryError: If the operation is unknown or lacks a required instance
            ModelNotFoundError: If no model is registered for the entity
        """
        operation = _enum(Operation, operation, "operation")
        key = entity if entity is not None else instance
        if key is None:
            raise QueryError(f"Operation '{operation.value}' needs an entity or an instance")
        if operation in INSTANCE_OPERATIONS and instance is None:
            raise QueryError(
                f"Operation '{operation.value}' needs an entity instance",
                {"operation": operation.value},
            )

        model = self._models.get(key)
        if self._model is not None and self._model.entity != model.entity:
            self.reset()

        self._operation = operation
        self._model = model
        self._instance = instance
        return self

    def fields(self, *names: str) -> Query:
        """Restrict the fields read or written.

        Raises:
            FieldNotFoundError: If a field is not declared
        """
        for name in names:
            self.model.field(name)
            if name not in self._fields:
                self._fields.append(name)
        return self

    def include_fields(self, names: Iterable[str]) -> Query:
        """Make sure a restricted field list still carries ``names``."""
        if self._fields:
            self.fields(*names)
        return self

    def where(
        self,
        field: str | list[str],
        value: Any,
        comparison: Comparison | str = Comparison.EQUAL,
        logical: Logical | str = Logical.AND,
    ) -> Query:
        """Add a condition.

        A list of fields matches when any of them matches; a list of values
        matches any of the values.

        Raises:
            FieldNotFoundError: If a field is not declared
        """
        names = [field] if isinstance(field, str) else list(field)
        if not names:
            raise QueryError("Condition needs at least one field")
        for name in names:
            self.model.field(name)
        self._conditions.append(
            (
                names,
                value,
                _enum(Comparison, comparison, "comparison"),
                _enum(Logical, logical, "logical operator"),
            )
        )
        return self

    def order(self, field: str, direction: Order | str = Order.DESC) -> Query:
        self.model.field(field)
        self._orders.append((field, _enum(Order, direction, "order")))
        return self

    def limit(self, limit: int | None, offset: int | None = None) -> Query:
        self._limit = limit
        self._offset = offset
        return self

    # === Relations ===

    def with_(
        self,
        relation: str | Iterable[str],
        conditions: Mapping[str, Any] | Iterable[tuple[Any, ...]] | None = None,
        order: str | tuple[str, str] | None = None,
    ) -> Query:
        """Request relations to be resolved with the operation.

        Dotted names (``comments.author``) descend into the relations of a
        related entity. ``conditions`` and ``order`` apply to the last
        relation of each name.

        Args:
            relation: Relation name or list of names
            conditions: ``{field: value}`` or ``(field, value[, comparison[, logical]])`` tuples
            order: Field name, or ``(field, direction)``

        Raises:
            RelationNotFoundError: If a relation is not declared
        """
        names = [relation] if isinstance(relation, str) else list(relation)
        for name in names:
            resolver = self._resolver(name)
            if conditions:
                items = conditions.items() if isinstance(conditions, Mapping) else conditions
                for condition in items:
                    resolver.query.where(*condition)
            if order:
                if isinstance(order, str):
                    resolver.query.order(order)
                else:
                    resolver.query.order(*order)
        return self

    def _resolver(self, name: str) -> RelationResolver:
        head, _, rest = name.partition(".")
        if head not in self._relations:
            definition = self.model.relation(head)
            prototype = self.fresh().operation(Operation.READ, definition.entity)
            self._relations[head] = create_relation(definition, prototype, self.model)
            logger.debug(f"Relation '{head}' requested on '{self.model.entity}'")

        resolver = self._relations[head]
        if rest:
            return resolver.query._resolver(rest)
        return resolver

    def relation(self, name: str) -> RelationResolver:
        """Return a requested relation, to configure its query.

        Raises:
            QueryError: If the relation was not requested with ``with_()``
        """
        head, _, rest = name.partition(".")
        if head not in self._relations:
            raise QueryError(
                f"Relation '{head}' was not requested on '{self.model.entity}'. "
                f"Call with_('{head}') first",
                {"relation_name": head, "requested": list(self._relations)},
            )
        if rest:
            return self._relations[head].query.relation(rest)
        return self._relations[head]

    # === Statements ===

    def _selected(self) -> list[Field]:
        model = self.model
        if not self._fields:
            return list(model.fields.values())

        names = list(self._fields)
        for resolver in self._relations.values():
            for name in [*resolver.definition.keys, *resolver.definition.local_values]:
                if name not in names:
                    names.append(name)
        return [model.field(name) for name in names]

    def _apply_conditions(self) -> None:
        for names, value, comparison, logical in self._conditions:
            fields = [self.model.field(name) for name in names]
            if comparison not in PATTERN_COMPARISONS:
                if isinstance(value, (list, tuple, set, frozenset)):
                    value = [dump_value(fields[0], v) for v in value]
                else:
                    value = dump_value(fields[0], value)
            columns = [f.column for f in fields]
            self._builder.condition(
                columns[0] if len(columns) == 1 else columns, value, comparison, logical
            )

    def _identity(self, instance: Any) -> dict[str, Any]:
        """Identity field values of an instance.

        Raises:
            QueryError: If an identity field has no value
        """
        identity = identity_fields(self.model)
        key = CompositeKey.of(instance, identity)
        if not key.complete:
            raise QueryError(
                f"Cannot address '{self.model.entity}' record, "
                f"identity ({', '.join(identity)}) is incomplete",
                {"entity": self.model.entity, "identity": identity},
            )
        return key.as_dict(identity)

    def _apply_identity(self, instance: Any) -> None:
        for name, value in self._identity(instance).items():
            field = self.model.field(name)
            self._builder.condition(field.column, dump_value(field, value))

    def _build_select(self, count: bool = False) -> str:
        builder = self._builder.reset().operation(BuilderOperation.SELECT, self.model.table)
        if count:
            builder.count()
        else:
            for field in self._selected():
                builder.field(field.column, field.name)
        self._apply_conditions()
        if not count:
            for name, direction in self._orders:
                builder.order(self.model.field(name).column, direction)
            builder.limit(self._limit, self._offset)
        return builder.build()

    def _build_insert(self, instance: Any) -> str:
        model = self.model
        builder = self._builder.reset().operation(BuilderOperation.INSERT, model.table)
        names = self._fields or list(model.fields)
        for name in names:
            field = model.field(name)
            if not has_value(instance, name):
                continue
            value = get_value(instance, name)
            if value is None and field.auto_increment and model.is_primary(name):
                continue
            builder.value(field.column, dump_value(field, value))

        if model.is_auto_increment():
            builder.defaults()
            builder.returning([model.primary_fields()[0].column])
        return builder.build()

    def _build_update(self, instance: Any) -> str | None:
        model = self.model
        builder = self._builder.reset().operation(BuilderOperation.UPDATE, model.table)
        names = self._fields or list(model.fields)
        identity = identity_fields(model)
        assigned = False
        for name in names:
            if name in identity or not has_value(instance, name):
                continue
            field = model.field(name)
            builder.value(field.column, dump_value(field, get_value(instance, name)))
            assigned = True
        if not assigned:
            return None
        self._apply_identity(instance)
        return builder.build()

    def _build_delete(self, instance: Any) -> str:
        builder = self._builder.reset().operation(BuilderOperation.DELETE, self.model.table)
        if instance is None and not self._conditions:
            raise QueryError(
                f"Delete on '{self.model.entity}' needs an instance or conditions. "
                "Use clear to empty the table"
            )
        if instance is not None:
            self._apply_identity(instance)
        self._apply_conditions()
        return builder.build()

    def _build_clear(self) -> str:
        return self._builder.reset().operation(BuilderOperation.CLEAR, self.model.table).build()

    def _run(self, statement: str) -> Any:
        self._binds = self._builder.binds
        return self._driver.execute(statement, self._binds)

    def query_string(self) -> str:
        """Render the primary statement without executing it.

        Raises:
            QueryError: For ``write``, which picks insert or update only when executed
        """
        operation = self._require_operation()
        if operation is Operation.COUNT:
            statement = self._build_select(count=True)
        elif operation in (Operation.READ, Operation.READ_ONE):
            statement = self._build_select()
        elif operation is Operation.INSERT:
            statement = self._build_insert(self._instance)
        elif operation is Operation.UPDATE:
            statement = self._build_update(self._instance) or ""
        elif operation is Operation.DELETE:
            statement = self._build_delete(self._instance)
        elif operation is Operation.CLEAR:
            statement = self._build_clear()
        else:
            raise QueryError(
                "Write picks insert or update when executed. Render an insert or update query"
            )
        self._binds = self._builder.binds
        return statement

    @property
    def binds(self) -> dict[str, Any]:
        """Bind values of the last rendered statement."""
        return dict(self._binds)

    def _require_operation(self) -> Operation:
        if self._operation is None:
            raise QueryError("No operation set. Call operation() first")
        return self._operation

    # === Execution ===

    def execute(self) -> Any:
        """Run the operation.

        Returns:
            count: int
            read: list of entities
            read_one: entity
            insert, write, update: the instance, with generated keys assigned
            delete: the instance with its primary fields cleared, or the
                number of deleted rows when deleting by conditions
            clear: None

        Raises:
            QueryError: If the query is misconfigured
            RecordNotFoundError: If read_one matches nothing
            BackendError: If a statement cannot be built or executed
        """
        operation = self._require_operation()
        handlers = {
            Operation.COUNT: self._count,
            Operation.READ: self._read,
            Operation.READ_ONE: self._read_one,
            Operation.INSERT: self._insert,
            Operation.WRITE: self._write,
            Operation.UPDATE: self._update,
            Operation.DELETE: self._delete,
            Operation.CLEAR: self._clear,
        }
        return handlers[operation]()

    def _hydrate(self, row: Mapping[str, Any], fields: list[Field]) -> Any:
        values = {f.name: load_value(f, row[f.name]) for f in fields if f.name in row}
        entity_class = self.model.entity_class
        return entity_class(**values) if entity_class is not None else values

    def _count(self) -> int:
        result = self._run(self._build_select(count=True))
        return int(result.rows[0]["count"]) if result.rows else 0

    def _read(self) -> list[Any]:
        fields = self._selected()
        result = self._run(self._build_select())
        collection = [self._hydrate(row, fields) for row in result.rows]
        for resolver in self._relations.values():
            collection = resolver.read(collection)
        return collection

    def _read_one(self) -> Any:
        limit, offset = self._limit, self._offset
        self._limit = 1
        try:
            collection = self._read()
        finally:
            self._limit, self._offset = limit, offset
        if not collection:
            raise RecordNotFoundError(
                self.model.entity,
                {names[0]: value for names, value, _, _ in self._conditions},
            )
        return collection[0]

    def _write_relations(self, instance: Any) -> None:
        for resolver in self._relations.values():
            resolver.write([instance])

    def _insert(self) -> Any:
        instance = self._instance
        model = self.model
        result = self._run(self._build_insert(instance))

        if model.is_auto_increment():
            primary = model.primary_fields()[0]
            if get_value(instance, primary.name) is None:
                generated = result.rows[0][primary.column] if result.rows else result.lastrowid
                set_value(instance, primary.name, load_value(primary, generated))

        logger.debug(f"Inserted '{model.entity}' record")
        self._write_relations(instance)
        return instance

    def _update(self) -> Any:
        instance = self._instance
        self._identity(instance)
        statement = self._build_update(instance)
        if statement is not None:
            self._run(statement)
        self._write_relations(instance)
        return instance

    def _exists(self, instance: Any) -> bool:
        identity = identity_fields(self.model)
        if not CompositeKey.of(instance, identity).complete:
            return False
        builder = self._builder.reset().operation(BuilderOperation.SELECT, self.model.table)
        builder.count()
        self._apply_identity(instance)
        result = self._run(builder.build())
        return bool(result.rows and int(result.rows[0]["count"]))

    def _write(self) -> Any:
        if self._exists(self._instance):
            return self._update()
        return self._insert()

    def _delete(self) -> Any:
        instance = self._instance
        if instance is not None:
            for resolver in self._relations.values():
                resolver.delete([instance])

        result = self._run(self._build_delete(instance))
        if instance is None:
            return result.rowcount

        for field in self.model.primary_fields():
            set_value(instance, field.name, None)
        return instance

    def _clear(self) -> None:
        for resolver in self._relations.values():
            resolver.clear()
        self._run(self._build_clear())
        logger.debug(f"Cleared '{self.model.entity}'")
