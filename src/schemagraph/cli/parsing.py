"""Input parsing utilities for CLI commands."""

import json
from pathlib import Path
from typing import Any


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


def parse_tables(document: Any) -> list[dict[str, Any]]:
    """Normalize introspection output into a list of table dicts.

    Accepted shapes:
        {"tables": [{"name": "orders", "columns": [...]}, ...]}
        [{"name": "orders", "columns": [...]}, ...]
        [{"table_name": "orders", "column_name": "id", "data_type": "uuid", ...}, ...]

    The last one is one row per column, as returned by information_schema
    queries; rows are grouped by table name.

    Raises:
        ValueError: If the document has none of these shapes
    """
    if isinstance(document, dict) and "tables" in document:
        document = document["tables"]
    if not isinstance(document, list):
        raise ValueError("Expected a list of tables or an object with a 'tables' key")

    if document and all(isinstance(r, dict) and "column_name" in r for r in document):
        grouped: dict[str, list[dict[str, Any]]] = {}
        for row in document:
            table = row.get("table_name")
            if not table:
                raise ValueError(f"Column row without table_name: {row}")
            grouped.setdefault(table, []).append(row)
        return [{"name": name, "columns": cols} for name, cols in grouped.items()]

    for item in document:
        if not isinstance(item, dict):
            raise ValueError(f"Invalid table entry: {item!r}")
    return document


def read_markdown_dir(path: str) -> dict[str, str]:
    """Read ``<entity>.md`` files from a directory.

    Returns:
        entity name (file stem) -> markdown

    Raises:
        FileNotFoundError: If the directory doesn't exist
    """
    dir_path = Path(path)
    if not dir_path.is_dir():
        raise FileNotFoundError(f"Directory not found: {path}")
    return {
        file.stem: file.read_text(encoding="utf-8")
        for file in sorted(dir_path.glob("*.md"))
    }


def read_history_file(path: str) -> list[dict[str, Any]]:
    """Read chat history as a JSON array or JSON Lines of {role, content}."""
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    text = file_path.read_text(encoding="utf-8").strip()
    if not text:
        return []
    if text.startswith("["):
        return json.loads(text)

    turns = []
    for line_num, line in enumerate(text.splitlines(), 1):
        line = line.strip()
        if not line:
            continue
        try:
            turns.append(json.loads(line))
        except json.JSONDecodeError as e:
            raise json.JSONDecodeError(
                f"Invalid JSON on line {line_num}: {e.msg}",
                e.doc,
                e.pos,
            ) from e
    return turns
