"""Tests for core vocabularies and declarative specs."""

import pytest
from pydantic import ValidationError

from relstore.core.types import (
    FieldSpec,
    FieldType,
    IndexSpec,
    ModelSpec,
    Operation,
    RelationSpec,
    RelationType,
)


class TestEnums:
    """Tests for enum vocabularies."""

    def test_field_type_values(self):
        """All field types are listed."""
        assert FieldType.values() == [
            "boolean",
            "integer",
            "decimal",
            "string",
            "datetime",
            "serial",
        ]

    def test_enum_compares_to_string(self):
        """Enum members compare equal to their tag."""
        assert Operation.READ_ONE == "read_one"
        assert Operation("clear") is Operation.CLEAR

    @pytest.mark.parametrize(
        "relation_type,through,many",
        [
            (RelationType.ONE, False, False),
            (RelationType.MANY, False, True),
            (RelationType.ONE_THROUGH, True, False),
            (RelationType.MANY_THROUGH, True, True),
        ],
    )
    def test_relation_type_flags(self, relation_type, through, many):
        """Relation types know whether they are mediated and whether they hold sequences."""
        assert relation_type.is_through is through
        assert relation_type.is_many is many


class TestSpecs:
    """Tests for pydantic model specs."""

    def test_field_spec_defaults(self):
        spec = FieldSpec(name="title")
        assert spec.type == "string"
        assert spec.attributes == {}
        assert spec.mapping is None

    def test_field_spec_flag_attributes(self):
        """Attributes may be given as a list of flags."""
        spec = FieldSpec(name="id", type="integer", attributes=["auto_increment"])
        assert spec.attributes == ["auto_increment"]

    def test_field_spec_rejects_unknown_type(self):
        with pytest.raises(ValidationError):
            FieldSpec(name="id", type="uuid")

    def test_foreign_index_spec_mapping(self):
        """Foreign index fields map local to referenced fields."""
        spec = IndexSpec(
            name="articles_author",
            type="foreign",
            fields={"author_id": "id"},
            table="authors",
        )
        assert spec.fields == {"author_id": "id"}
        assert spec.table == "authors"

    def test_relation_spec(self):
        spec = RelationSpec(
            entity="tag",
            type="many_through",
            keys={"id": "article_id"},
            target_keys={"tag_id": "id"},
            mediator="article_tag",
            container="tags",
        )
        assert spec.type == "many_through"
        assert spec.local_values == {}

    def test_model_spec_nested(self):
        """Model specs validate nested field, index and relation specs."""
        spec = ModelSpec.model_validate(
            {
                "entity": "tag",
                "table": "tags",
                "fields": [{"name": "id", "type": "integer"}],
                "indexes": [{"name": "primary", "type": "primary", "fields": ["id"]}],
            }
        )
        assert spec.fields[0].name == "id"
        assert spec.indexes[0].type == "primary"
        assert spec.relations == []
