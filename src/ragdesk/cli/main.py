"""ragdesk CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from ragdesk.cli.ask import ask_cmd, chat_cmd
from ragdesk.cli.ingest import ingest_cmd
from ragdesk.cli.init import init_cmd
from ragdesk.cli.issues import issues_app
from ragdesk.cli.review import prs_cmd, review_cmd, watch_cmd, webhook_cmd
from ragdesk.cli.status import models_cmd, status_cmd
from ragdesk.cli.tasks import tasks_app
from ragdesk.cli.tools import tools_app
from ragdesk.log import setup_logging


def _installed_version() -> str:
    try:
        return importlib.metadata.version("ragdesk")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"ragdesk {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="ragdesk",
    help=(
        "ragdesk: project assistant for Ollama models.\n\n"
        "  ragdesk init     Select a project and create its config.\n"
        "  ragdesk ingest   Index the project's documents.\n"
        "  ragdesk ask      Ask a question (/help ... for project context).\n"
        "  ragdesk review   Review a GitHub pull request."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log debug output to stderr."),
    ] = False,
) -> None:
    """ragdesk: project assistant for Ollama models."""
    setup_logging(verbose)


app.command("init")(init_cmd)
app.command("ingest")(ingest_cmd)
app.command("ask")(ask_cmd)
app.command("chat")(chat_cmd)
app.command("review")(review_cmd)
app.command("prs")(prs_cmd)
app.command("watch")(watch_cmd)
app.command("webhook")(webhook_cmd)
app.command("status")(status_cmd)
app.command("models")(models_cmd)
app.add_typer(tools_app, name="tools")
app.add_typer(tasks_app, name="tasks")
app.add_typer(issues_app, name="issues")


@app.command("version")
def version_cmd() -> None:
    """Show the installed ragdesk version."""
    typer.echo(f"ragdesk {_installed_version()}")


if __name__ == "__main__":
    app()
