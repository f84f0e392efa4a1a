"""Build models from declarative specifications.

Example:
    model = build_model(
        {
            "entity": "article",
            "table": "articles",
            "fields": [
                {"name": "id", "type": "integer", "attributes": ["auto_increment"]},
                {"name": "title", "type": "string", "attributes": {"length": 128}},
            ],
            "indexes": [{"name": "primary", "type": "primary", "fields": ["id"]}],
        }
    )
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from relstore.core.types import IndexType, IndexSpec, ModelSpec
from relstore.exceptions import DefinitionError
from relstore.model.definitions import Field, Index, Relation
from relstore.model.model import Model


def parse_spec(data: ModelSpec | dict[str, Any]) -> ModelSpec:
    """Validate raw model data.

    Raises:
        DefinitionError: If the data does not describe a model
    """
    if isinstance(data, ModelSpec):
        return data
    try:
        return ModelSpec.model_validate(data)
    except ValidationError as e:
        entity = data.get("entity", "<unnamed>") if isinstance(data, dict) else "<unnamed>"
        raise DefinitionError(
            f"Invalid model specification for '{entity}': {e.error_count()} error(s)",
            {"entity": entity, "errors": e.errors(include_url=False)},
        ) from e


def _build_index(spec: IndexSpec) -> Index:
    if spec.type == IndexType.FOREIGN:
        if not isinstance(spec.fields, dict):
            raise DefinitionError(
                f"Foreign index '{spec.name}' needs a mapping of local to referenced fields",
                {"index_name": spec.name},
            )
        return Index(
            spec.name,
            type=IndexType.FOREIGN,
            references=spec.fields,
            foreign_table=spec.table,
        )

    fields = list(spec.fields.keys()) if isinstance(spec.fields, dict) else spec.fields
    return Index(spec.name, tuple(fields), IndexType(spec.type))


def build_model(data: ModelSpec | dict[str, Any], entity_class: type | None = None) -> Model:
    """Build a validated Model from a spec or a dict.

    Args:
        data: ModelSpec or its dict form
        entity_class: Optional class for fetched entities

    Returns:
        The model

    Raises:
        DefinitionError: If the spec is malformed or inconsistent
    """
    spec = parse_spec(data)

    fields = [
        Field(f.name, f.type, f.attributes, mapping=f.mapping)  # type: ignore[arg-type]
        for f in spec.fields
    ]
    indexes = [_build_index(i) for i in spec.indexes]
    relations = [
        Relation(
            r.entity,
            r.type,  # type: ignore[arg-type]
            keys=r.keys,
            container=r.container,
            mediator=r.mediator,
            target_keys=r.target_keys,
            local_values=r.local_values,
            foreign_values=r.foreign_values,
            name=r.name,
        )
        for r in spec.relations
    ]

    return Model(spec.entity, spec.table, fields, indexes, relations, entity_class=entity_class)


def read_specs(path: str | Path) -> list[ModelSpec]:
    """Read model specs from a JSON file.

    The file holds either a list of models or ``{"models": [...]}``.

    Raises:
        FileNotFoundError: If the file doesn't exist
        DefinitionError: If the content is not a model list
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Model file not found: {path}")

    with file_path.open("r") as f:
        try:
            content = json.load(f)
        except json.JSONDecodeError as e:
            raise DefinitionError(f"Model file '{path}' is not valid JSON: {e.msg}") from e

    if isinstance(content, dict):
        content = content.get("models")
    if not isinstance(content, list):
        raise DefinitionError(
            f"Model file '{path}' must contain a list of models or {{\"models\": [...]}}"
        )

    return [parse_spec(item) for item in content]


def load_models(path: str | Path) -> list[tuple[Model, str | None]]:
    """Build every model declared in a JSON file.

    Returns:
        (model, alias) pairs in file order
    """
    return [(build_model(spec), spec.alias) for spec in read_specs(path)]
