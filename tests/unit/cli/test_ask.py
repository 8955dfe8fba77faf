"""Tests for ragdesk ingest / ask / chat with a mocked model backend."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from ragdesk.cli.main import app

runner = CliRunner()

_EMBED = "ragdesk.rag.llm_client.litellm.aembedding"
_CHAT = "ragdesk.rag.llm_client.litellm.acompletion"


def _embedding(vector: list[float]) -> MagicMock:
    response = MagicMock()
    response.data = [{"embedding": vector}]
    return response


def _chat(content: str) -> MagicMock:
    response = MagicMock()
    response.choices[0].message.content = content
    return response


@pytest.fixture()
def readme_project(project: Path) -> Path:
    (project / "README.md").write_text("Hello world", encoding="utf-8")
    return project


def _ingest(project: Path, model: str = "nomic-embed-text"):
    with patch(_EMBED, AsyncMock(return_value=_embedding([0.5, 0.5]))):
        return runner.invoke(app, ["ingest", "--project", str(project), "-e", model])


# ------------------------------------------------------------------
# ingest
# ------------------------------------------------------------------


def test_ingest_writes_index(readme_project: Path) -> None:
    result = _ingest(readme_project)

    assert result.exit_code == 0, result.output
    assert "Indexed 1 chunks from 1 sources" in result.output
    index = json.loads((readme_project / ".ragdesk" / "index.json").read_text(encoding="utf-8"))
    assert index["embedding_model"] == "nomic-embed-text"
    assert [f["source"] for f in index["fragments"]] == ["README.md"]


def test_ingest_reports_embedding_failures(readme_project: Path) -> None:
    with patch(_EMBED, AsyncMock(side_effect=RuntimeError("model not found"))):
        result = runner.invoke(app, ["ingest", "--project", str(readme_project)])

    assert result.exit_code == 0
    assert "Embedding failed for README.md" in result.output
    assert "Indexed 0 chunks" in result.output


# ------------------------------------------------------------------
# ask
# ------------------------------------------------------------------


def test_ask_help_question_uses_index(readme_project: Path) -> None:
    _ingest(readme_project)
    chat = AsyncMock(return_value=_chat("It greets the world."))

    with patch(_EMBED, AsyncMock(return_value=_embedding([0.5, 0.5]))), patch(_CHAT, chat):
        result = runner.invoke(app, ["ask", "/help project summary", "--raw"])

    assert result.exit_code == 0, result.output
    assert "It greets the world." in result.output
    system = chat.call_args.kwargs["messages"][0]["content"]
    assert "[README.md]\nHello world" in system


def test_ask_without_index_warns_and_answers(project: Path) -> None:
    with patch(_CHAT, AsyncMock(return_value=_chat("Four."))):
        result = runner.invoke(app, ["ask", "2+2?", "--project", str(project), "--raw"])

    assert result.exit_code == 0
    assert "No knowledge index" in result.output
    assert "Four." in result.output


def test_ask_embedding_mismatch_exits_one(readme_project: Path) -> None:
    _ingest(readme_project, model="nomic-embed-text")

    result = runner.invoke(app, ["ask", "hi", "-e", "bge-m3"])

    assert result.exit_code == 1
    assert "Embedding model mismatch" in result.output


def test_ask_tool_limit_exits_one(project: Path) -> None:
    chat = AsyncMock(return_value=_chat("MCP_REQUEST:x"))

    with patch(_CHAT, chat):
        result = runner.invoke(app, ["ask", "loop", "--project", str(project)])

    assert result.exit_code == 1
    assert "Exceeded MCP tool request limit." in result.output
    assert chat.await_count == 6


def test_ask_backend_failure_exits_one(project: Path) -> None:
    with patch(_CHAT, AsyncMock(side_effect=RuntimeError("connection refused"))):
        result = runner.invoke(app, ["ask", "hi", "--project", str(project)])

    assert result.exit_code == 1
    assert "Model backend request failed" in result.output


def test_ask_create_task(project: Path) -> None:
    chat = AsyncMock(side_effect=[
        _chat('MCP_REQUEST:workspace-create-task\n{"title": "Fix login", "priority": "HIGH"}'),
        _chat("Task recorded."),
    ])

    with patch(_CHAT, chat):
        result = runner.invoke(
            app, ["ask", "Track the login bug", "--project", str(project), "--create-task", "--raw"]
        )

    assert result.exit_code == 0, result.output
    assert "Task recorded." in result.output
    stored = json.loads((project / "task_tracker" / "tasks.json").read_text(encoding="utf-8"))
    assert stored[0]["title"] == "Fix login"
    assert stored[0]["priority"] == "HIGH"


# ------------------------------------------------------------------
# chat
# ------------------------------------------------------------------


def test_chat_keeps_history_until_exit(project: Path) -> None:
    chat = AsyncMock(side_effect=[_chat("First answer."), _chat("Second answer.")])

    with patch(_CHAT, chat):
        result = runner.invoke(
            app, ["chat", "--project", str(project)], input="hello\nagain\n/exit\n"
        )

    assert result.exit_code == 0, result.output
    assert "Second answer." in result.output
    second_messages = chat.call_args_list[1].kwargs["messages"]
    assert {"role": "user", "content": "hello"} in second_messages
    assert {"role": "assistant", "content": "First answer."} in second_messages


def test_chat_ends_on_eof(project: Path) -> None:
    result = runner.invoke(app, ["chat", "--project", str(project)], input="")

    assert result.exit_code == 0
