"""Composite keys and entity property access.

Entities are either mappings (``dict`` rows) or plain objects with
attributes; the helpers here read and write both shapes.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, MutableMapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from relstore.core.types import FieldType
from relstore.query.values import dump_value, normalize_value

if TYPE_CHECKING:
    from relstore.model.definitions import Field
    from relstore.model.model import Model


def _key_part(field: Field, value: Any) -> Any:
    # Serial values key by their JSON text, loaded dicts and lists are unhashable
    if field.type == FieldType.SERIAL:
        return dump_value(field, value)
    return normalize_value(field, value)


def has_value(entity: Any, name: str) -> bool:
    """Whether the entity carries the property at all (``None`` counts)."""
    if isinstance(entity, Mapping):
        return name in entity
    return hasattr(entity, name)


def get_value(entity: Any, name: str, default: Any = None) -> Any:
    if isinstance(entity, Mapping):
        return entity.get(name, default)
    return getattr(entity, name, default)


def set_value(entity: Any, name: str, value: Any) -> None:
    if isinstance(entity, MutableMapping):
        entity[name] = value
    else:
        setattr(entity, name, value)


@dataclass(frozen=True)
class CompositeKey:
    """Ordered tuple of field values used to correlate rows of two fetches.

    Keys compare by value, so rows from different tables meet under the same
    key as long as their fields are read in the same declared order.
    """

    values: tuple[Any, ...]

    @classmethod
    def of(cls, entity: Any, fields: Iterable[str], model: Model | None = None) -> CompositeKey:
        """Key of an entity's field values.

        With a ``model``, every part is normalized to the type it reads back
        as, so caller supplied values meet the same values loaded from rows.
        """
        if model is None:
            return cls(tuple(get_value(entity, name) for name in fields))
        return cls(tuple(_key_part(model.field(name), get_value(entity, name)) for name in fields))

    @property
    def complete(self) -> bool:
        """Whether every part has a value."""
        return all(v is not None for v in self.values)

    def as_dict(self, fields: Iterable[str]) -> dict[str, Any]:
        return dict(zip(fields, self.values, strict=True))


def identity_fields(model: Model) -> list[str]:
    """Fields identifying one row: the primary key, or every field without one."""
    primary = [f.name for f in model.primary_fields()]
    return primary or list(model.fields)
