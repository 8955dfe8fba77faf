"""Shared file helpers for the project-local JSON trackers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ragdesk.errors import ConfigurationError, PersistenceError

NO_PROJECT = "Project path is not selected."


def normalize_root(project_root: Path | None) -> Path | None:
    """Return *project_root* as a directory (a file path maps to its parent)."""
    if project_root is None:
        return None
    return project_root if project_root.is_dir() else project_root.parent


def require_root(project_root: Path | None) -> Path:
    root = normalize_root(project_root)
    if root is None:
        raise ConfigurationError(NO_PROJECT)
    return root


def read_json_array(path: Path, label: str) -> list[Any]:
    """Read *path* as a JSON array.

    A leading BOM or NUL characters are stripped first; a blank file is an
    empty list.

    Raises:
        PersistenceError: If the file is missing, unreadable, or not an array.
    """
    if not path.exists():
        raise PersistenceError(f"{label} file not found at {path.resolve()}", path)
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise PersistenceError(f"Cannot read {label.lower()} file {path}: {exc}", path) from exc

    sanitized = content.lstrip("\ufeff\x00").strip()
    if not sanitized:
        return []
    try:
        data = json.loads(sanitized)
    except json.JSONDecodeError as exc:
        raise PersistenceError(f"Failed to parse {label.lower()} JSON: {exc}", path) from exc
    if not isinstance(data, list):
        raise PersistenceError(
            f"Failed to parse {label.lower()} JSON: expected an array at the top level", path
        )
    return data
