"""Shared test fixtures for relstore."""

import copy
import json
import os
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import event

from relstore import Storage


def _psycopg_available() -> bool:
    """Check if psycopg is installed."""
    try:
        import psycopg  # noqa: F401

        return True
    except ImportError:
        return False


def _postgresql_connectable(url: str) -> bool:
    """Check if we can connect to PostgreSQL."""
    if not _psycopg_available():
        return False
    try:
        from relstore.core.connection import Driver

        driver = Driver(url)
        result = driver.test_connection()
        driver.close()
        return result
    except Exception:
        return False


# Skip marker for tests requiring PostgreSQL
requires_postgresql = pytest.mark.skipif(
    not _psycopg_available(),
    reason="psycopg not installed (install with: pip install relstore[postgresql])",
)


def _primary(*fields: str) -> dict[str, Any]:
    return {"name": "primary", "type": "primary", "fields": list(fields)}


ID = {"name": "id", "type": "integer", "attributes": ["auto_increment"]}

# Blog model graph:
#   author 1-1 profile, author 1-n article, article 1-n comment,
#   article n-n tag (article_tag), article 1-1 category (article_category)
BLOG_MODELS: list[dict[str, Any]] = [
    {
        "entity": "author",
        "table": "authors",
        "fields": [
            ID,
            {"name": "name", "type": "string", "attributes": {"length": 64}},
            {"name": "email", "type": "string", "attributes": {"length": 128, "null": True}},
        ],
        "indexes": [_primary("id"), {"name": "authors_email", "type": "unique", "fields": ["email"]}],
        "relations": [
            {"entity": "profile", "type": "one", "keys": {"id": "author_id"}},
            {
                "entity": "article",
                "type": "many",
                "keys": {"id": "author_id"},
                "container": "articles",
            },
        ],
    },
    {
        "entity": "profile",
        "table": "profiles",
        "fields": [
            {"name": "author_id", "type": "integer"},
            {"name": "bio", "type": "string", "attributes": {"null": True}},
        ],
        "indexes": [
            _primary("author_id"),
            {
                "name": "profiles_author",
                "type": "foreign",
                "fields": {"author_id": "id"},
                "table": "authors",
            },
        ],
    },
    {
        "entity": "article",
        "table": "articles",
        "alias": "post",
        "fields": [
            ID,
            {"name": "author_id", "type": "integer", "attributes": {"null": True}},
            {"name": "title", "type": "string", "attributes": {"length": 128}},
            {
                "name": "status",
                "type": "string",
                "attributes": {"length": 16, "default": "draft"},
            },
            {"name": "published_at", "type": "datetime", "attributes": {"null": True}},
            {
                "name": "rating",
                "type": "decimal",
                "attributes": {"length": 5, "precision": 2, "null": True},
            },
            {"name": "featured", "type": "boolean", "attributes": {"default": False}},
            {"name": "meta", "type": "serial", "attributes": {"null": True}},
        ],
        "indexes": [
            _primary("id"),
            {"name": "articles_status", "type": "index", "fields": ["status"]},
            {
                "name": "articles_author",
                "type": "foreign",
                "fields": {"author_id": "id"},
                "table": "authors",
            },
        ],
        "relations": [
            {"entity": "author", "type": "one", "keys": {"author_id": "id"}},
            {
                "entity": "comment",
                "type": "many",
                "keys": {"id": "article_id"},
                "container": "comments",
            },
            {
                "entity": "tag",
                "type": "many_through",
                "keys": {"id": "article_id"},
                "target_keys": {"tag_id": "id"},
                "mediator": "article_tag",
                "container": "tags",
            },
            {
                "entity": "category",
                "type": "one_through",
                "keys": {"id": "article_id"},
                "target_keys": {"category_id": "id"},
                "mediator": "article_category",
                "container": "category",
            },
        ],
    },
    {
        "entity": "comment",
        "table": "comments",
        "fields": [
            ID,
            {"name": "article_id", "type": "integer"},
            {"name": "author_id", "type": "integer", "attributes": {"null": True}},
            {"name": "body", "type": "string", "mapping": "content"},
        ],
        "indexes": [
            _primary("id"),
            {
                "name": "comments_article",
                "type": "foreign",
                "fields": {"article_id": "id"},
                "table": "articles",
            },
        ],
        "relations": [{"entity": "author", "type": "one", "keys": {"author_id": "id"}}],
    },
    {
        "entity": "tag",
        "table": "tags",
        "fields": [ID, {"name": "name", "type": "string", "attributes": {"length": 64}}],
        "indexes": [_primary("id")],
    },
    {
        "entity": "article_tag",
        "table": "article_tags",
        "fields": [
            {"name": "article_id", "type": "integer"},
            {"name": "tag_id", "type": "integer"},
        ],
        "indexes": [
            _primary("article_id", "tag_id"),
            {
                "name": "article_tags_article",
                "type": "foreign",
                "fields": {"article_id": "id"},
                "table": "articles",
            },
            {
                "name": "article_tags_tag",
                "type": "foreign",
                "fields": {"tag_id": "id"},
                "table": "tags",
            },
        ],
    },
    {
        "entity": "category",
        "table": "categories",
        "fields": [ID, {"name": "name", "type": "string", "attributes": {"length": 64}}],
        "indexes": [_primary("id")],
    },
    {
        "entity": "article_category",
        "table": "article_categories",
        "fields": [
            {"name": "article_id", "type": "integer"},
            {"name": "category_id", "type": "integer"},
        ],
        "indexes": [_primary("article_id", "category_id")],
    },
]


class StatementRecorder:
    """Collects every statement sent to the database cursor."""

    def __init__(self) -> None:
        self.statements: list[str] = []

    def record(
        self,
        conn: Any,
        cursor: Any,
        statement: str,
        parameters: Any,
        context: Any,
        executemany: bool,
    ) -> None:
        self.statements.append(statement)

    def clear(self) -> None:
        self.statements.clear()

    def matching(self, verb: str, table: str) -> list[str]:
        """Statements starting with ``verb`` that mention ``table``."""
        return [
            s
            for s in self.statements
            if s.lstrip().upper().startswith(verb.upper()) and f'"{table}"' in s
        ]


@pytest.fixture
def postgresql_url() -> str:
    """Get PostgreSQL URL from environment or use default.

    Tests using this fixture should also use @requires_postgresql marker.
    """
    url = os.environ.get("TEST_DATABASE_URL")
    if not url:
        # Default to local PostgreSQL
        url = "postgresql://localhost/relstore_test"

    # Skip if psycopg not available
    if not _psycopg_available():
        pytest.skip("psycopg not installed")

    # Skip if can't connect (no PostgreSQL server)
    if not _postgresql_connectable(url):
        pytest.skip(f"Cannot connect to PostgreSQL at {url}")

    return url


@pytest.fixture
def memory_storage() -> Generator[Storage, None, None]:
    """Storage on SQLite in-memory without models."""
    storage = Storage("sqlite:///:memory:")
    yield storage
    storage.close()


@pytest.fixture
def blog() -> Generator[Storage, None, None]:
    """Storage on SQLite in-memory with the blog models and their tables."""
    storage = Storage("sqlite:///:memory:")
    for spec in BLOG_MODELS:
        storage.register_spec(spec)
    storage.create().execute()
    yield storage
    storage.close()


@pytest.fixture
def recorder(blog: Storage) -> StatementRecorder:
    """Records statements run by the ``blog`` storage from now on."""
    statements = StatementRecorder()
    event.listen(blog.driver.engine, "before_cursor_execute", statements.record)
    return statements


@pytest.fixture
def blog_models() -> list[dict[str, Any]]:
    """Fresh copy of the blog model specs."""
    return copy.deepcopy(BLOG_MODELS)


@pytest.fixture
def models_file(tmp_path: Path) -> str:
    """JSON file holding the blog models."""
    path = tmp_path / "models.json"
    path.write_text(json.dumps({"models": BLOG_MODELS}))
    return str(path)


@pytest.fixture
def pg_blog(postgresql_url: str) -> Generator[Storage, None, None]:
    """Storage on PostgreSQL with the blog models and their tables.

    The postgresql_url fixture handles skipping when PostgreSQL isn't available.
    """
    storage = Storage(postgresql_url)
    for spec in BLOG_MODELS:
        storage.register_spec(spec)
    storage.drop().execute()
    storage.create().execute()
    yield storage
    storage.drop().execute()
    storage.close()


# Re-export for use in test files
__all__ = ["BLOG_MODELS", "StatementRecorder", "requires_postgresql"]
