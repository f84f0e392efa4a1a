"""Statement building, query orchestration and relation resolution."""

from relstore.query.builder import QueryBuilder
from relstore.query.query import Query
from relstore.query.values import dump_value, load_value

__all__ = [
    "QueryBuilder",
    "Query",
    "dump_value",
    "load_value",
]
