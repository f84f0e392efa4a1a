"""Tests for query operations."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

import pytest

from relstore import Storage
from relstore.core.types import FieldType
from relstore.exceptions import (
    DriverError,
    FieldNotFoundError,
    ModelNotFoundError,
    QueryError,
    RecordNotFoundError,
    RelationNotFoundError,
)
from relstore.model.definitions import Field
from relstore.query.query import Query, dump_value, load_value


@pytest.fixture
def tags(blog: Storage) -> list[dict]:
    """Insert three tags."""
    return [
        blog.insert({"id": None, "name": name}, "tag").execute()
        for name in ("python", "rust", "pytest")
    ]


class TestValueConversion:
    """Tests for dump_value/load_value."""

    def test_none_passes_through(self):
        for field_type in FieldType:
            assert dump_value(Field("f", field_type), None) is None
            assert load_value(Field("f", field_type), None) is None

    def test_dump(self):
        assert dump_value(Field("f", FieldType.BOOLEAN), 1) is True
        assert dump_value(Field("f", FieldType.INTEGER), "5") == 5
        assert dump_value(Field("f", FieldType.DECIMAL), Decimal("4.50")) == "4.50"
        assert dump_value(Field("f", FieldType.STRING), 5) == "5"
        assert dump_value(Field("f", FieldType.SERIAL), {"a": [1]}) == '{"a": [1]}'

    def test_dump_datetime(self):
        field = Field("f", FieldType.DATETIME)
        assert dump_value(field, datetime(2024, 5, 1, 10, 30)) == "2024-05-01 10:30:00"
        assert dump_value(field, "2024-05-01") == "2024-05-01"

    def test_load(self):
        assert load_value(Field("f", FieldType.BOOLEAN), 0) is False
        assert load_value(Field("f", FieldType.INTEGER), "7") == 7
        assert load_value(Field("f", FieldType.DECIMAL), 4.5) == Decimal("4.5")
        assert load_value(Field("f", FieldType.SERIAL), '{"a": 1}') == {"a": 1}
        assert load_value(Field("f", FieldType.SERIAL), [1, 2]) == [1, 2]

    def test_load_datetime(self):
        field = Field("f", FieldType.DATETIME)
        assert load_value(field, "2024-05-01 10:30:00") == datetime(2024, 5, 1, 10, 30)
        value = datetime(2024, 5, 1)
        assert load_value(field, value) is value


class TestQueryConfiguration:
    """Tests for configuring queries and rendering statements."""

    def test_read_statement(self, blog):
        query = blog.read("comment").where("article_id", 1).order("id", "asc").limit(5)
        assert query.query_string() == (
            'SELECT "id", "article_id", "author_id", "content" AS "body" FROM "comments" '
            'WHERE "article_id" = :b0 ORDER BY "id" ASC LIMIT 5'
        )
        assert query.binds == {"b0": 1}

    def test_count_statement(self, blog):
        assert blog.count("tag").query_string() == 'SELECT COUNT(*) AS "count" FROM "tags"'

    def test_values_are_dumped_in_conditions(self, blog):
        query = blog.read("article").where("featured", 1).where("id", ["1", "2"])
        query.query_string()
        assert query.binds == {"b0": True, "b1": 1, "b2": 2}

    def test_pattern_values_are_not_dumped(self, blog):
        query = blog.read("article").where("id", "1%", "like")
        query.query_string()
        assert query.binds == {"b0": "1%"}

    def test_alias_lookup(self, blog):
        assert blog.read("post").model.entity == "article"

    def test_restricted_fields_carry_relation_keys(self, blog):
        """Owner key fields are read even when not requested."""
        query = blog.read("article").fields("title").with_("comments")
        assert query.query_string() == 'SELECT "title", "id" FROM "articles"'

    def test_switching_entity_resets(self, blog):
        query = blog.read("tag").where("name", "python").limit(1)
        query.operation("read", "category")
        assert query.query_string() == 'SELECT "id", "name" FROM "categories"'

    def test_same_entity_keeps_configuration(self, blog):
        query = blog.read("tag").where("name", "python")
        query.operation("count", "tag")
        assert query.query_string() == 'SELECT COUNT(*) AS "count" FROM "tags" WHERE "name" = :b0'

    def test_write_has_no_single_statement(self, blog):
        with pytest.raises(QueryError, match="Write picks insert or update"):
            blog.write({"id": 1, "name": "x"}, "tag").query_string()

    def test_unknown_operation(self, blog):
        query = Query(blog.driver, blog.builder, blog.models())
        with pytest.raises(QueryError, match="Unknown operation 'upsert'"):
            query.operation("upsert", "tag")

    def test_instance_required(self, blog):
        with pytest.raises(QueryError, match="needs an entity instance"):
            blog.insert(None, "tag")

    def test_unknown_entity(self, blog):
        with pytest.raises(ModelNotFoundError):
            blog.read("video")

    def test_unknown_field(self, blog):
        with pytest.raises(FieldNotFoundError):
            blog.read("tag").where("slug", "x")
        with pytest.raises(FieldNotFoundError):
            blog.read("tag").order("slug")
        with pytest.raises(FieldNotFoundError):
            blog.read("tag").fields("slug")

    def test_unknown_comparison(self, blog):
        with pytest.raises(QueryError, match="Unknown comparison"):
            blog.read("tag").where("name", "x", "~~")

    def test_not_configured(self, blog):
        query = Query(blog.driver, blog.builder, blog.models())
        with pytest.raises(QueryError, match="No operation set"):
            query.execute()
        with pytest.raises(QueryError, match="No operation set"):
            _ = query.model

    def test_unknown_relation(self, blog):
        with pytest.raises(RelationNotFoundError):
            blog.read("article").with_("likes")

    def test_unknown_nested_relation(self, blog):
        with pytest.raises(RelationNotFoundError):
            blog.read("article").with_("comments.likes")

    def test_relation_must_be_requested(self, blog):
        with pytest.raises(QueryError, match="was not requested"):
            blog.read("article").relation("tags")

    def test_relation_lookup(self, blog):
        query = blog.read("article").with_("comments.author")
        assert query.relation("comments").name == "comments"
        assert query.relation("comments.author").query.model.entity == "author"

    def test_fresh_and_clone(self, blog):
        query = blog.read("article").where("status", "draft").with_("tags")
        clone = query.clone()
        assert clone.query_string() == query.query_string()
        assert clone.relation("tags") is query.relation("tags")
        with pytest.raises(QueryError):
            _ = query.fresh().model


class TestCrud:
    """Tests for count, read, insert, write, update, delete and clear."""

    def test_insert_assigns_generated_key(self, blog):
        tag = {"id": None, "name": "python"}
        result = blog.insert(tag, "tag").execute()
        assert result is tag
        assert tag["id"] == 1

    def test_insert_without_key_property(self, blog):
        tag = {"name": "python"}
        blog.insert(tag, "tag").execute()
        assert tag["id"] == 1

    def test_insert_only_generated_key(self, memory_storage):
        """An entity without values besides its empty generated key takes column defaults."""
        memory_storage.register_spec(
            {
                "entity": "ticket",
                "table": "tickets",
                "fields": [{"name": "id", "type": "integer", "attributes": ["auto_increment"]}],
                "indexes": [{"name": "primary", "type": "primary", "fields": ["id"]}],
            }
        )
        memory_storage.create().execute()

        query = memory_storage.insert({"id": None}, "ticket")
        assert query.query_string() == 'INSERT INTO "tickets" DEFAULT VALUES'

        first = memory_storage.insert({"id": None}, "ticket").execute()
        second = memory_storage.insert({}, "ticket").execute()
        assert (first["id"], second["id"]) == (1, 2)

    def test_insert_with_explicit_key(self, blog):
        blog.insert({"id": 10, "name": "python"}, "tag").execute()
        assert blog.read_one("tag").where("id", 10).execute()["name"] == "python"

    def test_read_converts_values(self, blog):
        """Values come back as Python types; database defaults apply."""
        article = {
            "id": None,
            "title": "Hello",
            "published_at": datetime(2024, 5, 1, 10, 30),
            "rating": Decimal("4.50"),
            "featured": True,
            "meta": {"words": [1, 2]},
        }
        blog.insert(article, "article").execute()

        row = blog.read_one("article").where("id", article["id"]).execute()
        assert row == {
            "id": 1,
            "author_id": None,
            "title": "Hello",
            "status": "draft",
            "published_at": datetime(2024, 5, 1, 10, 30),
            "rating": Decimal("4.50"),
            "featured": True,
            "meta": {"words": [1, 2]},
        }

    def test_mapped_column(self, blog):
        article = blog.insert({"title": "Hello"}, "article").execute()
        blog.insert({"article_id": article["id"], "body": "Nice"}, "comment").execute()

        rows = blog.read("comment").where("body", "Nice").execute()
        assert rows == [{"id": 1, "article_id": 1, "author_id": None, "body": "Nice"}]

    def test_count(self, blog, tags):
        assert blog.count("tag").execute() == 3
        assert blog.count("tag").where("name", "py%", "like").execute() == 2

    def test_read_conditions(self, blog, tags):
        names = [r["name"] for r in blog.read("tag").where("id", [1, 3]).order("id", "asc").execute()]
        assert names == ["python", "pytest"]

        rows = blog.read("tag").where("name", "rust", "!=").where("id", 1, "=", "and").execute()
        assert [r["name"] for r in rows] == ["python"]

    def test_read_or(self, blog, tags):
        rows = blog.read("tag").where("name", "rust").where("id", 1, logical="or").execute()
        assert sorted(r["name"] for r in rows) == ["python", "rust"]

    def test_read_regex(self, blog, tags):
        rows = blog.read("tag").where("name", "^py", "regex").order("id", "asc").execute()
        assert [r["name"] for r in rows] == ["python", "pytest"]

    def test_order_limit_offset(self, blog, tags):
        rows = blog.read("tag").order("id", "desc").limit(2, 1).execute()
        assert [r["id"] for r in rows] == [2, 1]

    def test_read_restricted_fields(self, blog, tags):
        rows = blog.read("tag").fields("name").where("id", 2).execute()
        assert rows == [{"name": "rust"}]

    def test_read_empty(self, blog):
        assert blog.read("tag").execute() == []

    def test_read_one(self, blog, tags):
        assert blog.read_one("tag").where("name", "rust").execute() == {"id": 2, "name": "rust"}

    def test_read_one_not_found(self, blog, tags):
        with pytest.raises(RecordNotFoundError) as exc_info:
            blog.read_one("tag").where("name", "go").execute()
        assert exc_info.value.conditions == {"name": "go"}
        assert "No 'tag' record matches name='go'" in str(exc_info.value)

    def test_read_one_keeps_limit(self, blog, tags):
        query = blog.read_one("tag").limit(5, 1)
        query.execute()
        assert query.query_string().endswith("LIMIT 5 OFFSET 1")

    def test_update(self, blog, tags):
        blog.update({"id": 2, "name": "rustlang"}, "tag").execute()
        assert blog.read_one("tag").where("id", 2).execute()["name"] == "rustlang"
        assert blog.read_one("tag").where("id", 1).execute()["name"] == "python"

    def test_update_only_present_fields(self, blog):
        article = blog.insert({"title": "Hello", "status": "published"}, "article").execute()
        blog.update({"id": article["id"], "title": "Bye"}, "article").execute()
        row = blog.read_one("article").where("id", article["id"]).execute()
        assert row["title"] == "Bye"
        assert row["status"] == "published"

    def test_update_needs_identity(self, blog):
        with pytest.raises(QueryError, match="identity \\(id\\) is incomplete"):
            blog.update({"name": "x"}, "tag").execute()

    def test_write_inserts_then_updates(self, blog):
        tag = {"id": None, "name": "python"}
        blog.write(tag, "tag").execute()
        assert tag["id"] == 1

        tag["name"] = "python3"
        blog.write(tag, "tag").execute()
        assert blog.count("tag").execute() == 1
        assert blog.read_one("tag").execute()["name"] == "python3"

    def test_write_unknown_key_inserts(self, blog):
        blog.write({"id": 5, "name": "python"}, "tag").execute()
        assert blog.read("tag").execute() == [{"id": 5, "name": "python"}]

    def test_write_composite_key(self, blog):
        """Rows without non-key fields are written once."""
        link = {"article_id": 1, "category_id": 2}
        blog.write(link, "article_category").execute()
        blog.write(dict(link), "article_category").execute()
        assert blog.count("article_category").execute() == 1

    def test_unique_violation(self, blog):
        blog.insert({"name": "Ann", "email": "ann@example.com"}, "author").execute()
        with pytest.raises(DriverError):
            blog.insert({"name": "Bob", "email": "ann@example.com"}, "author").execute()

    def test_delete_instance(self, blog, tags):
        tag = tags[0]
        result = blog.delete(tag, "tag").execute()
        assert result is tag
        assert tag["id"] is None
        assert blog.count("tag").execute() == 2

    def test_delete_by_conditions(self, blog, tags):
        deleted = blog.delete(entity="tag").where("name", "py%", "like").execute()
        assert deleted == 2
        assert [r["name"] for r in blog.read("tag").execute()] == ["rust"]

    def test_delete_needs_target(self, blog):
        with pytest.raises(QueryError, match="needs an instance or conditions"):
            blog.delete(entity="tag").execute()

    def test_delete_needs_identity(self, blog):
        with pytest.raises(QueryError, match="incomplete"):
            blog.delete({"name": "python"}, "tag").execute()

    def test_clear(self, blog, tags):
        assert blog.clear("tag").execute() is None
        assert blog.count("tag").execute() == 0

    def test_transaction_rollback(self, blog):
        with pytest.raises(RuntimeError):
            with blog.transaction():
                blog.insert({"name": "python"}, "tag").execute()
                raise RuntimeError("boom")
        assert blog.count("tag").execute() == 0


@dataclass
class Tag:
    id: int | None = None
    name: str = ""


class TestEntityClasses:
    """Tests for models hydrating entity classes."""

    @pytest.fixture
    def storage(self, blog_models):
        storage = Storage("sqlite:///:memory:")
        spec = next(m for m in blog_models if m["entity"] == "tag")
        storage.register_spec(spec, entity_class=Tag)
        storage.create().execute()
        yield storage
        storage.close()

    def test_entity_from_instance(self, storage):
        """The model is found from the instance's class."""
        tag = storage.insert(Tag(name="python")).execute()
        assert tag.id == 1

    def test_read_hydrates(self, storage):
        storage.insert(Tag(name="python")).execute()
        storage.insert(Tag(name="rust")).execute()
        tags = storage.read(Tag).order("id", "asc").execute()
        assert tags == [Tag(1, "python"), Tag(2, "rust")]

    def test_write_and_delete(self, storage):
        tag = storage.write(Tag(name="python")).execute()
        tag.name = "python3"
        storage.write(tag).execute()
        assert storage.read_one(Tag).execute() == Tag(1, "python3")

        storage.delete(tag).execute()
        assert tag.id is None
        assert storage.count(Tag).execute() == 0
