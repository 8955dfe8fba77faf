"""Shared wiring for CLI commands.

Resolves the project directory and model selection, builds an Assistant with
its collaborators, loads the on-disk knowledge index and runs coroutines with
uniform error reporting.

Selection priority (high → low):
  project   --project flag → last project in ~/.ragdesk/state.json
  base URL  --base-url flag
            → RAGDESK_BASE_URL env → ragdesk.yaml → ~/.ragdesk/config.yaml → default
  models    --chat-model / --embedding-model flags → model last picked with
            that flag → RAGDESK_* env → ragdesk.yaml → ~/.ragdesk/config.yaml
            → defaults
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console

from ragdesk.assistant.orchestrator import Assistant
from ragdesk.cli.errors import (
    err_backend,
    err_embedding_model_mismatch,
    err_empty_index,
    err_failure,
    err_no_project,
    err_project_missing,
    err_tool_limit,
)
from ragdesk.config import AssistantConfig, ConfigError, github_settings, load_config
from ragdesk.errors import BackendError, RagdeskError, ToolLimitExceededError
from ragdesk.rag.knowledge import KnowledgeStore, index_path, load_index
from ragdesk.rag.llm_client import LlmClient
from ragdesk.rag.loader import DocumentLoader
from ragdesk.settings import SettingsStore
from ragdesk.tools.git import GitClient
from ragdesk.tools.github import GithubClient
from ragdesk.tools.registry import ToolRegistry
from ragdesk.tracker.issues import IssueRepository
from ragdesk.tracker.tasks import TaskTracker

console = Console()

T = TypeVar("T")


@dataclass
class Session:
    project: Path
    cfg: AssistantConfig
    settings: SettingsStore
    assistant: Assistant
    base_url: str
    chat_model: str
    embedding_model: str


def resolve_project(project: Path | None, settings: SettingsStore) -> Path:
    """Return the selected project directory or exit with an actionable error."""
    if project is None:
        last = settings.load().last_project
        if not last:
            console.print(err_no_project())
            raise typer.Exit(1)
        project = Path(last)
    if not project.exists():
        console.print(err_project_missing(project))
        raise typer.Exit(1)
    return project.resolve()


def build_assistant(cfg: AssistantConfig, settings: SettingsStore) -> Assistant:
    git = GitClient()
    issues = IssueRepository()
    tasks = TaskTracker()
    registry = ToolRegistry(
        settings,
        git,
        GithubClient(),
        issues,
        tasks,
        github_settings=github_settings(cfg),
    )
    return Assistant(
        KnowledgeStore(),
        DocumentLoader(),
        LlmClient(),
        registry,
        git,
        issues,
        tasks,
        max_tool_attempts=cfg.chat.max_tool_attempts,
        history_limit=cfg.chat.history_limit,
        review_language=cfg.review.language,
        diff_limit=cfg.review.diff_limit,
    )


def open_session(
    project: Path | None,
    base_url: str | None = None,
    chat_model: str | None = None,
    embedding_model: str | None = None,
    *,
    load_knowledge: bool = True,
    state_path: Path | None = None,
) -> Session:
    """Resolve selections, build the Assistant and (optionally) load the index.

    The project and any model passed explicitly are remembered in the state file.
    """
    settings = SettingsStore(state_path)
    root = resolve_project(project, settings)
    try:
        cfg = load_config(root)
    except ConfigError as exc:
        console.print(err_failure(str(exc)))
        raise typer.Exit(1) from exc

    remembered = settings.load()
    session = Session(
        project=root,
        cfg=cfg,
        settings=settings,
        assistant=build_assistant(cfg, settings),
        base_url=(base_url or cfg.ollama.base_url).rstrip("/"),
        chat_model=chat_model or remembered.last_chat_model or cfg.ollama.chat_model,
        embedding_model=(
            embedding_model or remembered.last_embedding_model or cfg.ollama.embedding_model
        ),
    )
    settings.update(root, chat_model, embedding_model)

    if load_knowledge:
        _load_knowledge(session)
    return session


def _load_knowledge(session: Session) -> None:
    try:
        index_model = load_index(session.assistant.store, index_path(session.project))
    except RagdeskError as exc:
        console.print(err_failure(str(exc)))
        raise typer.Exit(1) from exc
    if index_model is None:
        console.print(err_empty_index(session.project))
    elif index_model != session.embedding_model:
        console.print(err_embedding_model_mismatch(index_model, session.embedding_model))
        raise typer.Exit(1)


def run(coro: Coroutine[Any, Any, T], base_url: str = "") -> T:
    """Run *coro* to completion; report ragdesk errors and exit 1."""
    try:
        return asyncio.run(coro)
    except ToolLimitExceededError as exc:
        console.print(err_tool_limit(str(exc)))
        raise typer.Exit(1) from exc
    except BackendError as exc:
        console.print(err_backend(str(exc), base_url or "the configured base URL"))
        raise typer.Exit(1) from exc
    except RagdeskError as exc:
        console.print(err_failure(str(exc)))
        raise typer.Exit(1) from exc
