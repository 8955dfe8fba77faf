"""ragdesk tools: inspect and toggle the tools offered to the model.

Commands:
  ragdesk tools list               show servers, their tools and enabled state
  ragdesk tools enable <tool-id>   persist an override (~/.ragdesk/state.json)
  ragdesk tools disable <tool-id>
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from ragdesk.cli.errors import err_unknown_tool
from ragdesk.cli.options import ProjectOpt, StateOpt
from ragdesk.cli.session import Session, open_session, run
from ragdesk.tools.models import ServerState

console = Console()

tools_app = typer.Typer(
    name="tools",
    help="List, enable and disable assistant tools.",
    add_completion=False,
)

ToolIdArg = Annotated[str, typer.Argument(help="Tool id, e.g. github-open-prs.")]


def _print_servers(servers: list[ServerState]) -> None:
    table = Table(title="Tools", show_header=True, header_style="bold")
    table.add_column("Server")
    table.add_column("Tool", style="bold")
    table.add_column("Enabled")
    table.add_column("Description")
    for server in servers:
        online = "" if server.online else " [dim](offline)[/]"
        for tool in server.tools:
            enabled = "[green]✓ on[/]" if tool.enabled else "[yellow]✗ off[/]"
            table.add_row(f"{server.name}{online}", tool.id, enabled, tool.description)
    console.print(table)


@tools_app.command("list")
def tools_list_cmd(project: ProjectOpt = None, state: StateOpt = None) -> None:
    """Show every tool and whether the model may use it."""
    session = open_session(project, load_knowledge=False, state_path=state)
    _print_servers(run(session.assistant.tool_servers(session.project)))


def _toggle(session: Session, tool_id: str, enabled: bool) -> None:
    servers = run(session.assistant.tool_servers(session.project))
    known = [t.id for s in servers for t in s.tools]
    match = next((t for t in known if t.lower() == tool_id.lower()), None)
    if match is None:
        console.print(err_unknown_tool(tool_id, known))
        raise typer.Exit(1)
    servers = run(session.assistant.set_tool_enabled(match, enabled, session.project))
    word = "enabled" if enabled else "disabled"
    console.print(f"[green]✓[/] {match} {word}")
    _print_servers(servers)


@tools_app.command("enable")
def tools_enable_cmd(tool_id: ToolIdArg, project: ProjectOpt = None, state: StateOpt = None) -> None:
    """Allow the model to call a tool."""
    _toggle(open_session(project, load_knowledge=False, state_path=state), tool_id, True)


@tools_app.command("disable")
def tools_disable_cmd(tool_id: ToolIdArg, project: ProjectOpt = None, state: StateOpt = None) -> None:
    """Stop offering a tool to the model."""
    _toggle(open_session(project, load_knowledge=False, state_path=state), tool_id, False)
