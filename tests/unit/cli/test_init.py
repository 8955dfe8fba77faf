"""Tests for ragdesk init."""

from __future__ import annotations

import json
import stat
from pathlib import Path

from typer.testing import CliRunner

from ragdesk.cli.main import app

runner = CliRunner()


def test_init_creates_configs_and_selects_project(project: Path, isolated_home: Path) -> None:
    result = runner.invoke(app, ["init", str(project)])

    assert result.exit_code == 0, result.output
    assert "ragdesk.yaml" in result.output
    assert (project / "ragdesk.yaml").read_text(encoding="utf-8").startswith("# ragdesk project")
    global_cfg = isolated_home / ".ragdesk" / "config.yaml"
    assert global_cfg.exists()
    assert stat.S_IMODE(global_cfg.stat().st_mode) == 0o600
    state = json.loads((isolated_home / ".ragdesk" / "state.json").read_text(encoding="utf-8"))
    assert state["last_project"] == str(project.resolve())


def test_init_keeps_existing_project_config(project: Path) -> None:
    (project / "ragdesk.yaml").write_text("chat:\n  history_limit: 4\n", encoding="utf-8")

    result = runner.invoke(app, ["init", str(project)])

    assert result.exit_code == 0, result.output
    assert "(kept)" in result.output
    assert (project / "ragdesk.yaml").read_text(encoding="utf-8") == "chat:\n  history_limit: 4\n"


def test_init_updates_existing_gitignore_once(project: Path) -> None:
    (project / ".gitignore").write_text("dist/", encoding="utf-8")

    runner.invoke(app, ["init", str(project)])
    runner.invoke(app, ["init", str(project)])

    assert (project / ".gitignore").read_text(encoding="utf-8") == "dist/\n# ragdesk\n.ragdesk/\n"


def test_init_without_gitignore_does_not_create_one(project: Path) -> None:
    runner.invoke(app, ["init", str(project)])

    assert not (project / ".gitignore").exists()


def test_init_missing_directory_exits_one(tmp_path: Path) -> None:
    result = runner.invoke(app, ["init", str(tmp_path / "nope")])

    assert result.exit_code == 1
    assert "does not exist" in result.output
