"""Pull request commands: review, prs, watch, webhook.

  ragdesk review 42            one structured review of PR #42
  ragdesk review --ci          GitHub Actions mode (env driven, ::group:: output)
  ragdesk prs                  list open PRs of the project's repository
  ragdesk watch                poll open PRs and review the ones that changed
  ragdesk webhook              receive GitHub pull_request events and review them

GitHub access needs MCP_GITHUB_TOKEN (or GITHUB_TOKEN) and a resolvable
repository (github.owner/repo in ragdesk.yaml, else the ``origin`` remote).

CI environment:
  PR_NUMBER            required
  PROJECT_ROOT         default "."
  OLLAMA_BASE_URL      default http://localhost:11434
  OLLAMA_CHAT_MODEL    default llama3.1
  OLLAMA_EMBED_MODEL   default OLLAMA_CHAT_MODEL
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated
from urllib.parse import urlparse

import typer
import uvicorn
from rich.console import Console
from rich.markdown import Markdown
from rich.rule import Rule
from rich.table import Table

from ragdesk.automation.poller import AutoReviewPoller, ModelSelection
from ragdesk.automation.webhook import create_webhook_app, make_review_handler
from ragdesk.cli.errors import err_failure, err_github_not_configured, err_pr_number_env, err_webhook_port
from ragdesk.cli.options import BaseUrlOpt, ChatModelOpt, EmbeddingModelOpt, ProjectOpt, StateOpt
from ragdesk.cli.session import build_assistant, open_session, run
from ragdesk.config import ConfigError, load_config, webhook_settings
from ragdesk.errors import RagdeskError
from ragdesk.settings import SettingsStore
from ragdesk.tools.models import PullRequestSummary, RepoRef

console = Console()

_CI_DEFAULT_BASE_URL = "http://localhost:11434"
_CI_DEFAULT_MODEL = "llama3.1"


# ---------------------------------------------------------------------------
# ragdesk review
# ---------------------------------------------------------------------------


def review_cmd(
    pr_number: Annotated[
        int | None,
        typer.Argument(help="Pull request number (read from PR_NUMBER with --ci)."),
    ] = None,
    ci: Annotated[
        bool,
        typer.Option("--ci", help="Non-interactive GitHub Actions mode driven by environment variables."),
    ] = False,
    project: ProjectOpt = None,
    base_url: BaseUrlOpt = None,
    chat_model: ChatModelOpt = None,
    embedding_model: EmbeddingModelOpt = None,
    state: StateOpt = None,
) -> None:
    """Review a pull request using the project knowledge index as context."""
    if ci:
        _review_ci()
        return

    if pr_number is None:
        console.print(err_failure("Missing PR number.\n  Usage:  ragdesk review NUMBER"))
        raise typer.Exit(1)

    session = open_session(project, base_url, chat_model, embedding_model, state_path=state)
    with console.status(f"Reviewing PR #{pr_number}..."):
        text = run(
            session.assistant.review_pull_request(
                pr_number,
                session.base_url,
                session.chat_model,
                session.embedding_model,
                session.project,
            ),
            session.base_url,
        )
    console.print(Rule(f"PR #{pr_number}"))
    console.print(Markdown(text))


def _review_ci() -> None:
    raw_number = (os.environ.get("PR_NUMBER") or "").strip()
    if not raw_number.isdigit():
        console.print(err_pr_number_env())
        raise typer.Exit(1)

    root = Path(os.environ.get("PROJECT_ROOT") or ".").resolve()
    base_url = (os.environ.get("OLLAMA_BASE_URL") or _CI_DEFAULT_BASE_URL).rstrip("/")
    chat_model = os.environ.get("OLLAMA_CHAT_MODEL") or _CI_DEFAULT_MODEL
    embedding_model = os.environ.get("OLLAMA_EMBED_MODEL") or chat_model

    try:
        cfg = load_config(root)
    except ConfigError as exc:
        console.print(err_failure(str(exc)))
        raise typer.Exit(1) from exc
    assistant = build_assistant(cfg, SettingsStore())

    typer.echo("::group::RAG ingestion")
    result = run(assistant.ingest(root, base_url, embedding_model), base_url)
    typer.echo(f"Indexed {result.chunk_count} chunks from {len(result.sources)} sources.")
    for warning in result.warnings:
        typer.echo(f"Warning: {warning}")
    typer.echo("::endgroup::")

    typer.echo("::group::Pull request review")
    text = run(
        assistant.review_pull_request(int(raw_number), base_url, chat_model, embedding_model, root),
        base_url,
    )
    typer.echo(text)
    typer.echo("::endgroup::")


# ---------------------------------------------------------------------------
# ragdesk prs
# ---------------------------------------------------------------------------


def prs_cmd(
    project: ProjectOpt = None,
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, max=100, help="Maximum PRs to list.")] = 10,
    state: StateOpt = None,
) -> None:
    """List open pull requests of the project's GitHub repository."""
    session = open_session(project, load_knowledge=False, state_path=state)
    _require_github_token(session.assistant)
    pulls = run(session.assistant.list_pull_requests(session.project, limit=limit))

    if not pulls:
        console.print("[yellow]No open pull requests.[/]")
        raise typer.Exit(0)

    table = Table(title="Open pull requests", show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Title", style="bold")
    table.add_column("Author")
    table.add_column("Branches")
    table.add_column("+/-", justify="right")
    table.add_column("Updated")
    for pr in pulls:
        table.add_row(
            str(pr.number),
            pr.title,
            pr.author,
            f"{pr.head_branch} → {pr.base_branch}",
            f"[green]+{pr.additions}[/] [red]-{pr.deletions}[/]",
            pr.updated_at,
        )
    console.print(table)


def _require_github_token(assistant) -> None:
    if assistant.registry.github_settings is None:
        console.print(err_github_not_configured())
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# ragdesk watch
# ---------------------------------------------------------------------------


def watch_cmd(
    project: ProjectOpt = None,
    base_url: BaseUrlOpt = None,
    chat_model: ChatModelOpt = None,
    embedding_model: EmbeddingModelOpt = None,
    interval: Annotated[
        float | None,
        typer.Option("--interval", min=1.0, help="Seconds between polls (default review.poll_interval)."),
    ] = None,
    once: Annotated[bool, typer.Option("--once", help="Run a single poll cycle and exit.")] = False,
    state: StateOpt = None,
) -> None:
    """Poll open pull requests and review every one that changed."""
    session = open_session(project, base_url, chat_model, embedding_model, state_path=state)
    _require_github_token(session.assistant)

    async def show_review(pr: PullRequestSummary, text: str) -> None:
        console.print(Rule(f"PR #{pr.number}: {pr.title}"))
        console.print(Markdown(text))

    poller = AutoReviewPoller(
        session.assistant,
        session.project,
        ModelSelection(session.base_url, session.chat_model, session.embedding_model),
        on_review=show_review,
        on_status=lambda message: console.print(f"[dim]{message}[/]"),
        interval=interval or session.cfg.review.poll_interval,
    )

    if once:
        run(poller.poll_once(), session.base_url)
        return
    try:
        run(poller.run(), session.base_url)
    except KeyboardInterrupt:
        console.print("[dim]Auto review is disabled.[/]")


# ---------------------------------------------------------------------------
# ragdesk webhook
# ---------------------------------------------------------------------------


def webhook_cmd(
    project: ProjectOpt = None,
    base_url: BaseUrlOpt = None,
    chat_model: ChatModelOpt = None,
    embedding_model: EmbeddingModelOpt = None,
    host: Annotated[str, typer.Option("--host", help="Interface to bind.")] = "0.0.0.0",
    port: Annotated[int | None, typer.Option("--port", help="Port (default webhook.port / GITHUB_WEBHOOK_PORT).")] = None,
    state: StateOpt = None,
) -> None:
    """Serve the GitHub webhook endpoint and review PRs on pull_request events."""
    session = open_session(project, base_url, chat_model, embedding_model, state_path=state)
    _require_github_token(session.assistant)

    hook = webhook_settings(session.cfg, port)
    if hook is None:
        console.print(err_webhook_port())
        raise typer.Exit(1)

    config = run(session.assistant.registry.resolve_github(session.project))
    watched = (
        RepoRef(host=urlparse(config.api_url).hostname or "", owner=config.owner, repo=config.repo)
        if config is not None
        else None
    )

    async def review(number: int) -> None:
        try:
            text = await session.assistant.review_pull_request(
                number,
                session.base_url,
                session.chat_model,
                session.embedding_model,
                session.project,
            )
        except RagdeskError as exc:
            console.print(f"[red]Webhook review failed for PR #{number}:[/] {exc}")
            return
        console.print(Rule(f"PR #{number}"))
        console.print(Markdown(text))

    handler = make_review_handler(
        watched, review, on_status=lambda message: console.print(f"[dim]{message}[/]")
    )
    path = hook.path
    app = create_webhook_app(handler, secret=hook.secret, path=path)

    target = watched.slug if watched else "(repository not detected)"
    console.print(f"Listening on [bold]http://{host}:{hook.port}{path}[/] for {target}")
    uvicorn.run(app, host=host, port=hook.port, log_level="warning")
