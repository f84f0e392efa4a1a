"""relstore - entity-relational mapping on top of SQLAlchemy.

Entities are described by models (fields, indexes, relations) independently of
the database. relstore builds the statements for them and resolves relations
between entities (one, many, one-through, many-through) on read, write,
delete and clear.

Example:
    from relstore import Storage

    storage = Storage("sqlite:///blog.db")
    storage.register_spec(
        {
            "entity": "tag",
            "table": "tags",
            "fields": [
                {"name": "id", "type": "integer", "attributes": ["auto_increment"]},
                {"name": "name", "type": "string", "attributes": {"length": 64}},
            ],
            "indexes": [{"name": "primary", "type": "primary", "fields": ["id"]}],
        }
    )
    storage.create().execute()

    tag = storage.insert({"id": None, "name": "python"}, "tag").execute()
    tags = storage.read("tag").where("name", "py%", "like").execute()
"""

from relstore.core.connection import Driver
from relstore.core.storage import Storage
from relstore.core.types import (
    Attribute,
    Comparison,
    FieldSpec,
    FieldType,
    IndexSpec,
    IndexType,
    Logical,
    ModelSpec,
    Operation,
    Order,
    RelationSpec,
    RelationType,
    SchemaOperation,
)
from relstore.exceptions import (
    BackendError,
    BuilderError,
    DefinitionError,
    DriverError,
    FieldNotFoundError,
    IndexNotFoundError,
    ModelNotFoundError,
    NotFoundError,
    QueryError,
    RecordNotFoundError,
    RelationError,
    RelationNotFoundError,
    RelstoreError,
)
from relstore.model import (
    Field,
    Index,
    Model,
    ModelBag,
    Relation,
    build_model,
    foreign,
    index,
    load_models,
    primary,
    unique,
)
from relstore.query import Query, QueryBuilder
from relstore.query.relations import CompositeKey, RelationResolver, create_relation
from relstore.schema import Schema

__version__ = "0.1.0"

__all__ = [
    # Main classes
    "Storage",
    "Driver",
    "Query",
    "QueryBuilder",
    "Schema",
    # Models
    "Model",
    "ModelBag",
    "Field",
    "Index",
    "Relation",
    "primary",
    "unique",
    "index",
    "foreign",
    "build_model",
    "load_models",
    # Relations
    "RelationResolver",
    "CompositeKey",
    "create_relation",
    # Types
    "FieldType",
    "Attribute",
    "IndexType",
    "RelationType",
    "Operation",
    "SchemaOperation",
    "Comparison",
    "Logical",
    "Order",
    "FieldSpec",
    "IndexSpec",
    "RelationSpec",
    "ModelSpec",
    # Exceptions
    "RelstoreError",
    "DefinitionError",
    "NotFoundError",
    "ModelNotFoundError",
    "FieldNotFoundError",
    "IndexNotFoundError",
    "RelationNotFoundError",
    "RecordNotFoundError",
    "QueryError",
    "RelationError",
    "BackendError",
    "BuilderError",
    "DriverError",
]
