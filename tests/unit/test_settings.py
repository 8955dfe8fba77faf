"""Tests for persisted user state and logging helpers."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from ragdesk.log import setup_logging, snippet
from ragdesk.settings import SettingsStore, UserSettings


def test_load_missing_file_returns_defaults(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "state.json")

    assert store.load() == UserSettings()


def test_update_persists_project_and_models(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    project = tmp_path / "proj"
    project.mkdir()

    SettingsStore(path).update(project, "mistral", "nomic-embed-text")
    loaded = SettingsStore(path).load()

    assert loaded.last_project == str(project.resolve())
    assert loaded.last_chat_model == "mistral"
    assert loaded.last_embedding_model == "nomic-embed-text"


def test_update_none_keeps_previous_values(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "state.json")
    store.update(chat_model="mistral")

    updated = store.update(embedding_model="bge-m3")

    assert updated.last_chat_model == "mistral"
    assert updated.last_embedding_model == "bge-m3"


def test_tool_overrides_round_trip(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "state.json")

    store.set_tool_enabled("github-open-prs", True)
    store.set_tool_enabled("workspace-tasks", False)

    assert store.tool_overrides() == {"github-open-prs": True, "workspace-tasks": False}


def test_corrupt_file_falls_back_to_defaults(tmp_path: Path, caplog) -> None:
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="ragdesk.settings"):
        loaded = SettingsStore(path).load()

    assert loaded == UserSettings()
    assert "unreadable state file" in caplog.text


def test_non_object_file_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text(json.dumps(["a"]), encoding="utf-8")

    assert SettingsStore(path).load() == UserSettings()


def test_default_path_is_patched_to_tmp(isolated_home: Path) -> None:
    store = SettingsStore()
    store.update(chat_model="x")

    assert (isolated_home / ".ragdesk" / "state.json").exists()


# ---------------------------------------------------------------------------
# log
# ---------------------------------------------------------------------------


def test_snippet_collapses_whitespace() -> None:
    assert snippet("a\n\n  b\tc") == "a b c"


def test_snippet_truncates_with_ellipsis() -> None:
    assert snippet("x" * 200, max_chars=10) == "x" * 10 + "..."


def test_setup_logging_levels() -> None:
    logger = setup_logging(verbose=True)
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1

    logger = setup_logging(verbose=False)
    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1
    assert logger.propagate is False
