"""Shared pytest fixtures."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from ragdesk.rag.knowledge import EmbeddedFragment

_ENV_VARS = (
    "RAGDESK_BASE_URL",
    "RAGDESK_CHAT_MODEL",
    "RAGDESK_EMBEDDING_MODEL",
    "MCP_GITHUB_TOKEN",
    "GITHUB_TOKEN",
    "MCP_GITHUB_OWNER",
    "MCP_GITHUB_REPO",
    "MCP_GITHUB_API_URL",
    "GITHUB_WEBHOOK_PORT",
    "GITHUB_WEBHOOK_SECRET",
)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point global config + state at tmp_path and clear ragdesk env vars."""
    home = tmp_path / "home"
    monkeypatch.setattr("ragdesk.config._GLOBAL_CONFIG_PATH", home / ".ragdesk" / "config.yaml")
    monkeypatch.setattr("ragdesk.settings._STATE_PATH", home / ".ragdesk" / "state.json")
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return home


@pytest.fixture(autouse=True)
def reset_ragdesk_logger():
    """Undo setup_logging() so caplog sees ragdesk records in every test."""
    yield
    logger = logging.getLogger("ragdesk")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def project(tmp_path) -> Path:
    """Empty project directory."""
    root = tmp_path / "project"
    root.mkdir()
    return root


def write_tasks(root: Path, tasks: list[dict]) -> Path:
    path = root / "task_tracker" / "tasks.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(tasks), encoding="utf-8")
    return path


def write_issues(root: Path, issues: list[dict]) -> Path:
    path = root / "issues" / "user_issues.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(issues), encoding="utf-8")
    return path


def fragment(source: str, content: str, embedding=(1.0, 0.0)) -> EmbeddedFragment:
    return EmbeddedFragment(source=source, content=content, embedding=tuple(embedding))


@pytest.fixture
def make_fragment():
    return fragment


@pytest.fixture
def tasks_file():
    return write_tasks


@pytest.fixture
def issues_file():
    return write_issues
