"""Input parsing utilities for CLI commands."""

import json
from pathlib import Path
from typing import Any

from tablewright import SchemaDocument


def read_json_file(path: str) -> Any:
    """Read a JSON document from file.

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If file contains invalid JSON
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    with file_path.open("r") as f:
        return json.load(f)


def load_schema_document(path: str) -> SchemaDocument:
    """Load a schema file: ``{"tables": [...], "relationships": [...]}``.

    A bare list is read as a list of tables.
    """
    data = read_json_file(path)
    if isinstance(data, list):
        data = {"tables": data}
    return SchemaDocument.model_validate(data)


def parse_query_params(pairs: list[str] | None) -> dict[str, str]:
    """Parse repeated ``key=value`` options into a query dict.

    Examples:
        ["page=2", "status__in=a,b"] → {"page": "2", "status__in": "a,b"}

    Raises:
        ValueError: If an item has no ``=``
    """
    query: dict[str, str] = {}
    for pair in pairs or []:
        if "=" not in pair:
            raise ValueError(f"Invalid query parameter: '{pair}'. Expected format: key=value")
        key, value = pair.split("=", 1)
        query[key.strip()] = value
    return query


def parse_json_body(raw: str | None) -> Any:
    """Parse an inline JSON body, or a file path prefixed with ``@``."""
    if raw is None:
        return None
    if raw.startswith("@"):
        return read_json_file(raw[1:])
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON body: {e.msg}") from e
