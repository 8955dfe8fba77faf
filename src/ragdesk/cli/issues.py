"""ragdesk issues: user-reported issues (issues/user_issues.json, read-only).

Commands:
  ragdesk issues list
  ragdesk issues solve ISSUE_ID    ask the model for a support answer grounded in the index
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.rule import Rule
from rich.table import Table

from ragdesk.cli.errors import err_issue_not_found
from ragdesk.cli.options import BaseUrlOpt, ChatModelOpt, EmbeddingModelOpt, ProjectOpt, StateOpt
from ragdesk.cli.session import open_session, run

console = Console()

issues_app = typer.Typer(
    name="issues",
    help="List user issues and draft answers for them.",
    add_completion=False,
)


@issues_app.command("list")
def issues_list_cmd(project: ProjectOpt = None, state: StateOpt = None) -> None:
    """Show every recorded user issue."""
    session = open_session(project, load_knowledge=False, state_path=state)
    issues = run(session.assistant.load_issues(session.project))

    if not issues:
        console.print("[yellow]No user issues recorded.[/]")
        raise typer.Exit(0)

    table = Table(title="User issues", show_header=True, header_style="bold")
    table.add_column("ID")
    table.add_column("#", justify="right")
    table.add_column("Subject", style="bold")
    table.add_column("Reporter")
    for item in issues:
        table.add_row(
            item.issue.issue_id,
            str(item.issue.issue_number),
            item.issue.subject,
            item.user_name,
        )
    console.print(table)


@issues_app.command("solve")
def issues_solve_cmd(
    issue_id: Annotated[str, typer.Argument(help="Issue id or number.")],
    project: ProjectOpt = None,
    base_url: BaseUrlOpt = None,
    chat_model: ChatModelOpt = None,
    embedding_model: EmbeddingModelOpt = None,
    state: StateOpt = None,
) -> None:
    """Draft a support answer for one issue."""
    session = open_session(project, base_url, chat_model, embedding_model, state_path=state)
    issues = run(session.assistant.load_issues(session.project))

    wanted = issue_id.strip().lower()
    issue = next(
        (
            i for i in issues
            if i.issue.issue_id.lower() == wanted or str(i.issue.issue_number) == wanted
        ),
        None,
    )
    if issue is None:
        console.print(err_issue_not_found(issue_id))
        raise typer.Exit(1)

    with console.status(f"Drafting answer for {issue.issue.issue_id}..."):
        text = run(
            session.assistant.propose_issue_solution(
                issue, session.base_url, session.chat_model, session.embedding_model
            ),
            session.base_url,
        )
    console.print(Rule(f"{issue.issue.issue_id}: {issue.issue.subject}"))
    console.print(Markdown(text))
