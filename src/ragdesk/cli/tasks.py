"""ragdesk tasks: the project task tracker (task_tracker/tasks.json).

Commands:
  ragdesk tasks list
  ragdesk tasks create TITLE [--description ..] [--priority ..] [--requirement ..]
  ragdesk tasks delete TASK_ID
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from ragdesk.cli.options import ProjectOpt, StateOpt
from ragdesk.cli.session import open_session, run
from ragdesk.tracker.tasks import TaskDraft, TaskPriority

console = Console()

tasks_app = typer.Typer(
    name="tasks",
    help="List, create and delete tracked tasks.",
    add_completion=False,
)

_PRIORITY_STYLE = {
    TaskPriority.LOW: "dim",
    TaskPriority.MEDIUM: "white",
    TaskPriority.HIGH: "yellow",
    TaskPriority.CRITICAL: "bold red",
}


@tasks_app.command("list")
def tasks_list_cmd(project: ProjectOpt = None, state: StateOpt = None) -> None:
    """Show all tracked tasks."""
    session = open_session(project, load_knowledge=False, state_path=state)
    tasks = run(session.assistant.load_tasks(session.project))

    if not tasks:
        console.print("[yellow]Task tracker is empty.[/]")
        raise typer.Exit(0)

    table = Table(title="Tasks", show_header=True, header_style="bold")
    table.add_column("ID")
    table.add_column("Title", style="bold")
    table.add_column("Priority")
    table.add_column("Requirements")
    for task in tasks:
        style = _PRIORITY_STYLE[task.priority]
        table.add_row(
            task.id,
            task.title,
            f"[{style}]{task.priority.value}[/]",
            "\n".join(task.requirements),
        )
    console.print(table)
    console.print(f"\n  {len(tasks)} tasks")


@tasks_app.command("create")
def tasks_create_cmd(
    title: Annotated[str, typer.Argument(help="Task title.")],
    description: Annotated[str, typer.Option("--description", "-d", help="Task description.")] = "",
    priority: Annotated[
        str,
        typer.Option("--priority", help="LOW, MEDIUM, HIGH or CRITICAL (case-insensitive)."),
    ] = "MEDIUM",
    requirement: Annotated[
        list[str] | None,
        typer.Option("--requirement", "-r", help="Acceptance requirement (repeatable)."),
    ] = None,
    project: ProjectOpt = None,
    state: StateOpt = None,
) -> None:
    """Record a new task."""
    session = open_session(project, load_knowledge=False, state_path=state)

    async def create():
        draft = TaskDraft(
            title=title,
            description=description,
            priority=TaskPriority.parse(priority),
            requirements=list(requirement or []),
        )
        return await session.assistant.create_task(session.project, draft)

    task = run(create())
    console.print(f"[green]✓[/] Created task [bold]{task.id}[/] ({task.priority.value})")


@tasks_app.command("delete")
def tasks_delete_cmd(
    task_id: Annotated[str, typer.Argument(help="Task id (case-insensitive).")],
    project: ProjectOpt = None,
    state: StateOpt = None,
) -> None:
    """Delete a task by id."""
    session = open_session(project, load_knowledge=False, state_path=state)
    task = run(session.assistant.delete_task(session.project, task_id))
    console.print(f"[green]✓[/] Deleted task [bold]{task.id}[/]: {task.title}")
