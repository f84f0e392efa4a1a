"""SQL statement builder.

Turns an operation plus field, value, condition, join, order and limit
descriptions into a statement string with named bind parameters. It knows
nothing about models or relations; ``Query`` feeds it column names.

Example:
    builder = QueryBuilder("sqlite")
    sql = (
        builder.operation("select", "articles")
        .field("id")
        .field("title_col", "title")
        .condition("author_id", [1, 2])
        .order("id", "asc")
        .limit(10)
        .build()
    )
    # SELECT "id", "title_col" AS "title" FROM "articles"
    #   WHERE "author_id" IN (:b0, :b1) ORDER BY "id" ASC LIMIT 10
    builder.binds  # {"b0": 1, "b1": 2}
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from relstore.core.types import (
    Aggregate,
    BuilderOperation,
    Comparison,
    JoinType,
    Logical,
    Order,
)
from relstore.exceptions import BuilderError

SUPPORTED_DIALECTS = ("sqlite", "postgresql", "mysql")

AGGREGATE_FUNCTIONS = {
    Aggregate.DISTINCT: "DISTINCT",
    Aggregate.COUNT: "COUNT",
    Aggregate.AVERAGE: "AVG",
    Aggregate.MAX: "MAX",
    Aggregate.MIN: "MIN",
    Aggregate.SUM: "SUM",
}


def _enum(enum_type: Any, value: Any, what: str) -> Any:
    try:
        return enum_type(value)
    except ValueError:
        raise BuilderError(
            f"Unknown {what} '{value}'. Valid: {', '.join(enum_type.values())}",
            {what: str(value)},
        ) from None


class QueryBuilder:
    """Dialect-aware SQL statement builder."""

    def __init__(self, dialect: str = "sqlite") -> None:
        """Initialize builder.

        Args:
            dialect: One of sqlite, postgresql, mysql

        Raises:
            BuilderError: If the dialect is not supported
        """
        if dialect not in SUPPORTED_DIALECTS:
            raise BuilderError(
                f"Unsupported dialect '{dialect}'. Supported: {', '.join(SUPPORTED_DIALECTS)}",
                {"dialect": dialect},
            )
        self._dialect = dialect
        self._quote_char = "`" if dialect == "mysql" else '"'
        self.reset()

    @property
    def dialect(self) -> str:
        return self._dialect

    @property
    def supports_returning(self) -> bool:
        """Whether INSERT ... RETURNING is used to read generated keys."""
        return self._dialect == "postgresql"

    def reset(self) -> QueryBuilder:
        """Forget every configured part of the statement."""
        self._operation: BuilderOperation | None = None
        self._table: str | None = None
        self._alias: str | None = None
        self._fields: list[tuple[str, str | None]] = []
        self._aggregates: list[tuple[Aggregate, str, str | None]] = []
        self._group: list[str] = []
        self._values: dict[str, str] = {}
        self._joins: list[str] = []
        self._conditions: list[tuple[Logical, str]] = []
        self._orders: list[tuple[str, Order]] = []
        self._limit: int | None = None
        self._offset: int | None = None
        self._returning: list[str] = []
        self._defaults = False
        self._binds: dict[str, Any] = {}
        return self

    # === Configuration ===

    def operation(
        self, operation: BuilderOperation | str, table: str, alias: str | None = None
    ) -> QueryBuilder:
        """Set statement kind and target table."""
        self._operation = _enum(BuilderOperation, operation, "operation")
        self._table = table
        self._alias = alias
        return self

    def fields(self, fields: Iterable[str | tuple[str, str | None]]) -> QueryBuilder:
        """Add selected columns, given as names or (column, alias) pairs."""
        for item in fields:
            if isinstance(item, str):
                self.field(item)
            else:
                self.field(*item)
        return self

    def field(self, column: str, alias: str | None = None) -> QueryBuilder:
        self._fields.append((column, alias))
        return self

    def aggregate(
        self, method: Aggregate | str, column: str, alias: str | None = None
    ) -> QueryBuilder:
        self._aggregates.append((_enum(Aggregate, method, "aggregate"), column, alias))
        return self

    def count(self, column: str = "*", alias: str | None = "count") -> QueryBuilder:
        return self.aggregate(Aggregate.COUNT, column, alias)

    def group(self, column: str) -> QueryBuilder:
        self._group.append(column)
        return self

    def value(self, column: str, value: Any) -> QueryBuilder:
        """Set a column value for insert/update."""
        self._values[column] = self._bind(value)
        return self

    def values(self, values: Mapping[str, Any]) -> QueryBuilder:
        for column, value in values.items():
            self.value(column, value)
        return self

    def join(
        self,
        join_type: JoinType | str,
        table: str,
        joins: Mapping[str, str],
        alias: str | None = None,
    ) -> QueryBuilder:
        """Join a table on local column -> joined column pairs."""
        join_type = _enum(JoinType, join_type, "join")
        if not joins:
            raise BuilderError(f"Join with '{table}' needs at least one column pair")

        local = self._alias or self._table or ""
        joined = alias or table
        on = " AND ".join(
            f"{self._qualify(local, left)} = {self._qualify(joined, right)}"
            for left, right in joins.items()
        )
        target = self._quote(table) + (f" AS {self._quote(alias)}" if alias else "")
        self._joins.append(f"{join_type.value.upper()} JOIN {target} ON {on}")
        return self

    def condition(
        self,
        column: str | Iterable[str],
        value: Any,
        comparison: Comparison | str = Comparison.EQUAL,
        logical: Logical | str = Logical.AND,
    ) -> QueryBuilder:
        """Add a condition.

        A list of columns matches any of them. A list of values matches any
        of them (``IN`` for equality, ``NOT IN`` for inequality).
        """
        comparison = _enum(Comparison, comparison, "comparison")
        logical = _enum(Logical, logical, "logical operator")
        columns = [column] if isinstance(column, str) else list(column)
        if not columns:
            raise BuilderError("Condition needs at least one column")

        parts = [self._predicate(c, value, comparison) for c in columns]
        sql = parts[0] if len(parts) == 1 else "(" + " OR ".join(parts) + ")"
        self._conditions.append((logical, sql))
        return self

    def order(self, column: str, direction: Order | str = Order.DESC) -> QueryBuilder:
        self._orders.append((column, _enum(Order, direction, "order")))
        return self

    def limit(self, limit: int | None, offset: int | None = None) -> QueryBuilder:
        if limit is not None and limit < 0:
            raise BuilderError(f"Limit must not be negative, got {limit}")
        if offset is not None and offset < 0:
            raise BuilderError(f"Offset must not be negative, got {offset}")
        self._limit = limit
        self._offset = offset
        return self

    def defaults(self) -> QueryBuilder:
        """Let an insert without values fall back to the column defaults."""
        self._defaults = True
        return self

    def returning(self, columns: Iterable[str]) -> QueryBuilder:
        """Columns returned by an insert (postgresql only, ignored elsewhere)."""
        self._returning = list(columns)
        return self

    @property
    def binds(self) -> dict[str, Any]:
        """Bind parameter values keyed by placeholder name."""
        return dict(self._binds)

    # === Rendering ===

    def _bind(self, value: Any) -> str:
        name = f"b{len(self._binds)}"
        self._binds[name] = value
        return f":{name}"

    def _quote(self, identifier: str) -> str:
        if identifier == "*":
            return identifier
        q = self._quote_char
        return ".".join(
            part if part == "*" else q + part.replace(q, q + q) + q
            for part in identifier.split(".")
        )

    def _qualify(self, table: str, column: str) -> str:
        if "." in column or not table:
            return self._quote(column)
        return self._quote(f"{table}.{column}")

    def _single(self, column: str, value: Any, comparison: Comparison) -> str:
        if value is None and comparison is Comparison.EQUAL:
            return f"{column} IS NULL"
        if value is None and comparison is Comparison.NOT_EQUAL:
            return f"{column} IS NOT NULL"

        if comparison is Comparison.LIKE:
            operator = "LIKE"
        elif comparison is Comparison.REGEX:
            operator = "~" if self._dialect == "postgresql" else "REGEXP"
        else:
            operator = comparison.value
        return f"{column} {operator} {self._bind(value)}"

    def _predicate(self, column: str, value: Any, comparison: Comparison) -> str:
        quoted = self._quote(column)
        if not isinstance(value, (list, tuple, set, frozenset)):
            return self._single(quoted, value, comparison)

        values = list(value)
        if comparison is Comparison.EQUAL:
            if not values:
                return "1 = 0"
            return f"{quoted} IN ({', '.join(self._bind(v) for v in values)})"
        if comparison is Comparison.NOT_EQUAL:
            if not values:
                return "1 = 1"
            return f"{quoted} NOT IN ({', '.join(self._bind(v) for v in values)})"
        if not values:
            return "1 = 0"
        return "(" + " OR ".join(self._single(quoted, v, comparison) for v in values) + ")"

    def _render_table(self) -> str:
        assert self._table is not None
        table = self._quote(self._table)
        if self._alias:
            table += f" AS {self._quote(self._alias)}"
        return table

    def _render_where(self) -> str:
        if not self._conditions:
            return ""
        parts: list[str] = []
        for i, (logical, sql) in enumerate(self._conditions):
            parts.append(sql if i == 0 else f"{logical.value.upper()} {sql}")
        return " WHERE " + " ".join(parts)

    def _render_fields(self) -> str:
        rendered: list[str] = []
        for column, alias in self._fields:
            item = self._quote(column)
            if alias and alias != column:
                item += f" AS {self._quote(alias)}"
            rendered.append(item)
        for method, column, alias in self._aggregates:
            item = f"{AGGREGATE_FUNCTIONS[method]}({self._quote(column)})"
            if alias:
                item += f" AS {self._quote(alias)}"
            rendered.append(item)
        return ", ".join(rendered) or "*"

    def _render_tail(self) -> str:
        sql = ""
        if self._group:
            sql += " GROUP BY " + ", ".join(self._quote(c) for c in self._group)
        if self._orders:
            sql += " ORDER BY " + ", ".join(
                f"{self._quote(c)} {d.value.upper()}" for c, d in self._orders
            )
        if self._limit is not None:
            sql += f" LIMIT {int(self._limit)}"
            if self._offset:
                sql += f" OFFSET {int(self._offset)}"
        return sql

    def build(self) -> str:
        """Render the statement.

        Raises:
            BuilderError: If the statement is incomplete
        """
        if self._operation is None or not self._table:
            raise BuilderError("No operation set. Call operation() before build()")

        operation = self._operation
        table = self._render_table()

        if operation is BuilderOperation.SELECT:
            return (
                f"SELECT {self._render_fields()} FROM {table}"
                + "".join(f" {j}" for j in self._joins)
                + self._render_where()
                + self._render_tail()
            )

        if operation is BuilderOperation.INSERT:
            if self._values:
                columns = ", ".join(self._quote(c) for c in self._values)
                binds = ", ".join(self._values.values())
                sql = f"INSERT INTO {table} ({columns}) VALUES ({binds})"
            elif self._defaults:
                if self._dialect == "mysql":
                    sql = f"INSERT INTO {table} () VALUES ()"
                else:
                    sql = f"INSERT INTO {table} DEFAULT VALUES"
            else:
                raise BuilderError(f"No values to insert into '{self._table}'")
            if self._returning and self.supports_returning:
                sql += " RETURNING " + ", ".join(self._quote(c) for c in self._returning)
            return sql

        if operation is BuilderOperation.UPDATE:
            if not self._values:
                raise BuilderError(f"No values to update in '{self._table}'")
            assignments = ", ".join(f"{self._quote(c)} = {b}" for c, b in self._values.items())
            return f"UPDATE {table} SET {assignments}" + self._render_where()

        if operation is BuilderOperation.DELETE:
            return f"DELETE FROM {table}" + self._render_where()

        if self._dialect == "sqlite":
            return f"DELETE FROM {table}"
        return f"TRUNCATE TABLE {table}"

    def __str__(self) -> str:
        return self.build()
