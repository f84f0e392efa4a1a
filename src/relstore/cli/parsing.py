"""Input parsing utilities for CLI commands."""

import json
from pathlib import Path
from typing import Any

# Longest operators first so ">=" is not read as ">"
CONDITION_OPERATORS = ("!=", ">=", "<=", "~=", "=", ">", "<")


def parse_value(raw: str) -> Any:
    """Parse a value as JSON, falling back to the raw string.

    Examples:
        "42" → 42
        "true" → True
        "null" → None
        "hello" → "hello"
    """
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def parse_condition(spec: str) -> tuple[str, Any, str]:
    """Parse a condition string.

    Format: field<op>value, where op is one of =, !=, >, <, >=, <=, ~= (like)

    Examples:
        "status=published" → ("status", "published", "=")
        "id>=10" → ("id", 10, ">=")
        "title~=%python%" → ("title", "%python%", "like")

    Args:
        spec: Condition string

    Returns:
        (field, value, comparison) tuple

    Raises:
        ValueError: If spec format is invalid
    """
    positions = [(spec.find(op), op) for op in CONDITION_OPERATORS if op in spec]
    if not positions:
        raise ValueError(
            f"Invalid condition: '{spec}'. Expected format: field=value "
            f"(operators: {', '.join(CONDITION_OPERATORS)})"
        )

    # Leftmost operator, longest on ties
    index, operator = min(positions, key=lambda p: (p[0], -len(p[1])))
    field = spec[:index].strip()
    if not field:
        raise ValueError(f"Invalid condition: '{spec}'. Field name is missing")

    raw = spec[index + len(operator) :]
    if operator == "~=":
        return field, raw, "like"
    return field, parse_value(raw), operator


def parse_order(spec: str) -> tuple[str, str]:
    """Parse an order string.

    Format: field[:asc|desc] (defaults to asc)

    Raises:
        ValueError: If the direction is not asc or desc
    """
    field, _, direction = spec.partition(":")
    direction = (direction or "asc").lower()
    if direction not in ("asc", "desc"):
        raise ValueError(f"Invalid order direction: '{direction}'. Supported: asc, desc")
    return field, direction


def read_json_file(path: str) -> Any:
    """Read JSON document from file.

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If file contains invalid JSON
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    with file_path.open("r") as f:
        return json.load(f)


def read_jsonl_file(path: str) -> list[dict[str, Any]]:
    """Read JSON Lines (JSONL) file.

    Each line should contain a separate JSON object.

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If any line contains invalid JSON
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    records = []
    with file_path.open("r") as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as e:
                raise json.JSONDecodeError(
                    f"Invalid JSON on line {line_num}: {e.msg}",
                    e.doc,
                    e.pos,
                ) from e

    return records


def read_records(path: str) -> list[dict[str, Any]]:
    """Read records from a ``.jsonl`` file, or a JSON file holding an object or a list."""
    if path.endswith(".jsonl"):
        return read_jsonl_file(path)
    content = read_json_file(path)
    return content if isinstance(content, list) else [content]


def parse_records(data_json: str) -> list[dict[str, Any]]:
    """Parse inline JSON holding one record or a list of records.

    Raises:
        ValueError: If the JSON is not an object or a list of objects
    """
    content = json.loads(data_json)
    records = content if isinstance(content, list) else [content]
    if not all(isinstance(r, dict) for r in records):
        raise ValueError("Records must be JSON objects")
    return records
