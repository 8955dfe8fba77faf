"""ragdesk status / models commands.

``status`` shows the selected project, model selection, knowledge index and
tool availability. ``models`` lists what the Ollama backend has installed.
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel

from ragdesk.cli.options import BaseUrlOpt, ChatModelOpt, EmbeddingModelOpt, ProjectOpt, StateOpt
from ragdesk.cli.session import Session, open_session, run
from ragdesk.rag.knowledge import index_path

console = Console()


def status_cmd(
    project: ProjectOpt = None,
    base_url: BaseUrlOpt = None,
    chat_model: ChatModelOpt = None,
    embedding_model: EmbeddingModelOpt = None,
    question: Annotated[
        str | None,
        typer.Option("--question", "-q", help="Echo a structure question under the overview."),
    ] = None,
    state: StateOpt = None,
) -> None:
    """Show project, models, knowledge index and tools."""
    session = open_session(project, base_url, chat_model, embedding_model, state_path=state)

    # ---- Panel 1: Project + models ----
    _show_project_panel(session)

    # ---- Panel 2: Structure + knowledge ----
    console.print(
        Panel(
            session.assistant.describe_project(session.project, question),
            title="[bold]Structure[/]",
            expand=False,
        )
    )

    # ---- Panel 3: Tools ----
    _show_tools_panel(session)


def _show_project_panel(session: Session) -> None:
    index = index_path(session.project)
    if index.exists():
        size_kb = index.stat().st_size / 1024
        sources = session.assistant.knowledge_sources()
        index_info = (
            f"{index} ({size_kb:.1f} KB, {len(session.assistant.store)} chunks"
            f" from {len(sources)} sources)"
        )
    else:
        index_info = f"{index} [yellow]✗ missing[/]"

    lines = [
        f"Project:    [bold]{session.project}[/]",
        f"Backend:    {session.base_url}",
        f"Chat:       {session.chat_model}",
        f"Embedding:  {session.embedding_model}",
        f"Index:      {index_info}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Project[/]", expand=False))


def _show_tools_panel(session: Session) -> None:
    servers = run(session.assistant.tool_servers(session.project))
    lines: list[str] = []
    for server in servers:
        mark = "[green]●[/]" if server.online else "[dim]○[/]"
        enabled = sum(1 for t in server.tools if t.enabled)
        lines.append(f"{mark} {server.name}: {enabled}/{len(server.tools)} tools enabled")
    if not any(s.id == "github" for s in servers):
        lines.append("[dim]○ GitHub: set MCP_GITHUB_TOKEN to enable repository tools[/]")
    console.print(Panel("\n".join(lines), title="[bold]Tools[/]", expand=False))


def models_cmd(
    base_url: BaseUrlOpt = None,
    project: ProjectOpt = None,
    state: StateOpt = None,
) -> None:
    """List models installed on the Ollama backend."""
    session = open_session(project, base_url, load_knowledge=False, state_path=state)
    models = run(session.assistant.list_models(session.base_url), session.base_url)
    if not models:
        console.print(f"[yellow]No models installed at {session.base_url}.[/]")
        raise typer.Exit(0)
    for name in models:
        marker = ""
        if name == session.chat_model or name.split(":", 1)[0] == session.chat_model:
            marker = "  [green](chat)[/]"
        if name == session.embedding_model or name.split(":", 1)[0] == session.embedding_model:
            marker += "  [cyan](embedding)[/]"
        console.print(f"  {name}{marker}")
