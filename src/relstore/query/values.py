"""Conversion of field values between Python and their bound form."""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from relstore.core.types import FieldType

if TYPE_CHECKING:
    from relstore.model.definitions import Field


def dump_value(field: Field, value: Any) -> Any:
    """Convert a field value to the form bound to the statement."""
    if value is None:
        return None

    if field.type == FieldType.BOOLEAN:
        return bool(value)
    elif field.type == FieldType.INTEGER:
        return int(value)
    elif field.type == FieldType.DECIMAL:
        return str(value)
    elif field.type == FieldType.DATETIME:
        if isinstance(value, datetime):
            return value.isoformat(sep=" ")
        if isinstance(value, date):
            return value.isoformat()
        return str(value)
    elif field.type == FieldType.SERIAL:
        return json.dumps(value)
    else:
        return str(value)


def load_value(field: Field, value: Any) -> Any:
    """Convert a fetched column value back to the field's Python type."""
    if value is None:
        return None

    if field.type == FieldType.BOOLEAN:
        return bool(value)
    elif field.type == FieldType.INTEGER:
        return int(value)
    elif field.type == FieldType.DECIMAL:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    elif field.type == FieldType.DATETIME:
        if isinstance(value, str):
            return datetime.fromisoformat(value)
        return value
    elif field.type == FieldType.SERIAL:
        if isinstance(value, (str, bytes)):
            return json.loads(value)
        return value
    else:
        return value


def normalize_value(field: Field, value: Any) -> Any:
    """Value as it reads back after being stored (``"1"`` and ``1`` both give ``1``)."""
    return load_value(field, dump_value(field, value))
