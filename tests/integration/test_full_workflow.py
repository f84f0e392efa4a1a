"""Integration tests for the full relstore workflow."""

from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest

from relstore import Storage
from relstore.exceptions import DriverError, RecordNotFoundError


@pytest.fixture
def file_storage(tmp_path: Path, models_file: str):
    """Storage on a SQLite file with the blog models loaded from JSON."""
    storage = Storage(f"sqlite:///{tmp_path / 'blog.db'}")
    storage.load_models(models_file)
    yield storage
    storage.close()


class TestFullWorkflow:
    """End-to-end tests on a SQLite file."""

    def test_complete_blog_workflow(
        self, file_storage: Storage, tmp_path: Path, models_file: str
    ):
        """Create the schema, publish an article with everything attached, read it back."""
        storage = file_storage

        # 1. Schema
        assert not any(storage.check().execute().values())
        storage.create().execute()
        assert all(storage.check().execute().values())

        # 2. Author with a profile
        ann = {"name": "Ann", "email": "ann@example.com", "profile": {"bio": "Writes things"}}
        storage.write(ann, "author").with_("profile").execute()
        assert ann["id"] == 1

        # 3. Article with comments, tags and a category
        published = datetime(2024, 5, 1, 12, 30)
        article = {
            "author_id": ann["id"],
            "title": "Hello relstore",
            "status": "published",
            "published_at": published,
            "rating": Decimal("4.50"),
            "featured": True,
            "meta": {"words": 512, "lang": "en"},
            "comments": [{"body": "Nice", "author_id": ann["id"]}, {"body": "More please"}],
            "tags": [{"name": "python"}, {"name": "orm"}],
            "category": {"name": "Guides"},
        }
        with storage.transaction():
            storage.write(article, "post").with_(["comments", "tags", "category"]).execute()

        # 4. Read back through every relation kind
        stored = (
            storage.read_one("article")
            .where("id", article["id"])
            .with_(["author.profile", "comments", "tags", "category"])
            .with_("tags", order=("name", "asc"))
            .execute()
        )
        assert stored["published_at"] == published
        assert stored["rating"] == Decimal("4.50")
        assert stored["featured"] is True
        assert stored["meta"] == {"words": 512, "lang": "en"}
        assert stored["author"]["profile"]["bio"] == "Writes things"
        assert [c["body"] for c in stored["comments"]] == ["Nice", "More please"]
        assert [t["name"] for t in stored["tags"]] == ["orm", "python"]
        assert stored["category"]["name"] == "Guides"

        # 5. Author view of their articles
        author = storage.read_one("author").with_("articles").execute()
        assert [a["title"] for a in author["articles"]] == ["Hello relstore"]

        # 6. Retag: drop one tag, keep the other
        stored["tags"] = [t for t in stored["tags"] if t["name"] == "python"]
        storage.write(stored, "article").with_("tags").execute()
        assert storage.count("article_tag").execute() == 1
        assert storage.count("tag").execute() == 2

        # 7. Data survives reopening the file
        storage.close()
        reopened = Storage(f"sqlite:///{tmp_path / 'blog.db'}")
        reopened.load_models(models_file)
        try:
            again = reopened.read_one("article").with_("tags").execute()
            assert [t["name"] for t in again["tags"]] == ["python"]

            # 8. Delete the article with its dependents
            again = reopened.read_one("article").with_(["comments", "tags", "category"]).execute()
            reopened.delete(again, "article").with_(["comments", "tags", "category"]).execute()
            assert again["id"] is None
            assert reopened.count("article").execute() == 0
            assert reopened.count("comment").execute() == 0
            assert reopened.count("article_tag").execute() == 0
            assert reopened.count("article_category").execute() == 0
            assert reopened.count("tag").execute() == 2
        finally:
            reopened.close()

    def test_filtering_and_paging(self, file_storage: Storage):
        storage = file_storage
        storage.create().execute()
        for i in range(1, 8):
            status = "published" if i % 2 else "draft"
            storage.insert({"title": f"Post {i}", "status": status}, "article").execute()

        published = storage.read("article").where("status", "published").order("id", "asc")
        assert [a["title"] for a in published.execute()] == ["Post 1", "Post 3", "Post 5", "Post 7"]

        page = storage.read("article").order("id", "asc").limit(3, 3).execute()
        assert [a["id"] for a in page] == [4, 5, 6]

        assert storage.count("article").where("id", [1, 2, 3]).execute() == 3
        assert storage.count("article").where("title", "^Post [1-3]$", "regex").execute() == 3
        assert (
            storage.count("article")
            .where("id", 2, "<")
            .where("id", 6, ">", "or")
            .execute()
            == 2
        )

        removed = storage.delete(entity="article").where("status", "draft").execute()
        assert removed == 3
        with pytest.raises(RecordNotFoundError):
            storage.read_one("article").where("status", "draft").execute()

    def test_transaction_rolls_back(self, file_storage: Storage):
        storage = file_storage
        storage.create().execute()
        storage.insert({"name": "Ann", "email": "ann@example.com"}, "author").execute()

        with pytest.raises(DriverError):
            with storage.transaction():
                storage.insert({"name": "Bob", "email": "bob@example.com"}, "author").execute()
                storage.insert({"name": "Eve", "email": "ann@example.com"}, "author").execute()

        assert not storage.transaction_check()
        assert [a["name"] for a in storage.read("author").execute()] == ["Ann"]

    def test_foreign_keys_enforced(self, file_storage: Storage):
        storage = file_storage
        storage.create().execute()
        with pytest.raises(DriverError):
            storage.insert({"article_id": 99, "body": "Orphan"}, "comment").execute()

    def test_drop_everything(self, file_storage: Storage):
        storage = file_storage
        storage.create().execute()
        assert len(storage.drop().execute()) == 8
        assert not any(storage.check().execute().values())


class TestPostgreSQLWorkflow:
    """The same workflow on PostgreSQL (skipped when no server is available)."""

    def test_write_and_read_relations(self, pg_blog: Storage):
        ann = pg_blog.insert({"name": "Ann", "email": "ann@example.com"}, "author").execute()
        assert ann["id"] is not None

        article = {
            "author_id": ann["id"],
            "title": "Hello",
            "rating": Decimal("3.25"),
            "featured": False,
            "comments": [{"body": "First"}],
            "tags": [{"name": "python"}, {"name": "sql"}],
            "category": {"name": "News"},
        }
        pg_blog.write(article, "article").with_(["comments", "tags", "category"]).execute()

        stored = (
            pg_blog.read_one("article")
            .with_(["author", "comments", "category"])
            .with_("tags", order=("name", "asc"))
            .execute()
        )
        assert stored["status"] == "draft"
        assert stored["rating"] == Decimal("3.25")
        assert stored["author"]["name"] == "Ann"
        assert [c["body"] for c in stored["comments"]] == ["First"]
        assert [t["name"] for t in stored["tags"]] == ["python", "sql"]
        assert stored["category"]["name"] == "News"

    def test_delete_with_relations(self, pg_blog: Storage):
        article = {"title": "Bye", "comments": [{"body": "x"}], "tags": [{"name": "python"}]}
        pg_blog.write(article, "article").with_(["comments", "tags"]).execute()

        pg_blog.delete(article, "article").with_(["comments", "tags"]).execute()

        assert pg_blog.count("article").execute() == 0
        assert pg_blog.count("comment").execute() == 0
        assert pg_blog.count("article_tag").execute() == 0
        assert pg_blog.count("tag").execute() == 1

    def test_regex_condition(self, pg_blog: Storage):
        for name in ["python", "pytest", "rust"]:
            pg_blog.insert({"name": name}, "tag").execute()
        assert pg_blog.count("tag").where("name", "^py", "regex").execute() == 2
