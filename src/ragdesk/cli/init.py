"""ragdesk init: prepare a project and the global config.

Creates (never overwrites):
  ~/.ragdesk/config.yaml     model defaults, mode 0o600
  <project>/ragdesk.yaml     commented project template
and adds ``.ragdesk/`` to an existing ``.gitignore``. The project becomes the
default for later commands.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from ragdesk.cli.errors import err_project_missing
from ragdesk.cli.options import StateOpt
from ragdesk.config import ensure_global_config
from ragdesk.settings import SettingsStore

console = Console()

_PROJECT_TEMPLATE = (
    "# ragdesk project configuration.\n"
    "# Tokens and secrets come from the environment, never from this file.\n"
    "\n"
    "# ollama:\n"
    "#   chat_model: llama3.1\n"
    "#   embedding_model: nomic-embed-text\n"
    "# github:\n"
    "#   owner: acme\n"
    "#   repo: widgets\n"
    "# webhook:\n"
    "#   port: 8787\n"
)
_GITIGNORE_ENTRY = ".ragdesk/"


def init_cmd(
    path: Annotated[Path, typer.Argument(help="Project directory.")] = Path("."),
    state: StateOpt = None,
) -> None:
    """Create ragdesk.yaml and the global config, and select the project."""
    if not path.is_dir():
        console.print(err_project_missing(path))
        raise typer.Exit(1)
    project = path.resolve()

    project_cfg = project / "ragdesk.yaml"
    if project_cfg.exists():
        console.print(f"  [dim]-[/] {project_cfg} (kept)")
    else:
        project_cfg.write_text(_PROJECT_TEMPLATE, encoding="utf-8")
        console.print(f"  [green]✓[/] {project_cfg}")

    _update_gitignore(project)

    cfg_path = ensure_global_config()
    console.print(f"  [green]✓[/] {cfg_path} (global config)")

    SettingsStore(state).update(project)
    console.print(f"\n[bold green]✓ Project '{project.name}' selected.[/]")
    console.print("\nNext steps:")
    console.print("  1. ragdesk ingest                 (build the knowledge index)")
    console.print("  2. ragdesk ask '/help overview'   (ask with project context)")


def _update_gitignore(project: Path) -> None:
    """Add the index directory to .gitignore if the file already exists."""
    gitignore = project / ".gitignore"
    if not gitignore.exists():
        return
    existing = gitignore.read_text(encoding="utf-8")
    if _GITIGNORE_ENTRY in existing.splitlines():
        return
    with gitignore.open("a", encoding="utf-8") as f:
        if existing and not existing.endswith("\n"):
            f.write("\n")
        f.write(f"# ragdesk\n{_GITIGNORE_ENTRY}\n")
    console.print("  [green]✓[/] .gitignore (updated)")
