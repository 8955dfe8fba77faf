"""ragdesk rich error messages: actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from ragdesk.cli.errors import err_no_project
    console.print(err_no_project())
    raise typer.Exit(1)
"""

from __future__ import annotations

from pathlib import Path


def err_no_project() -> str:
    """No --project given and no last project remembered."""
    return (
        "[red]Error:[/] Project path is not selected.\n"
        "  Run:  ragdesk ingest --project PATH"
    )


def err_project_missing(path: Path) -> str:
    return (
        f"[red]Error:[/] Project path does not exist: '{path}'\n"
        "  Pass an existing directory with --project PATH."
    )


def err_empty_index(project: Path) -> str:
    """Knowledge index has not been built for *project* yet."""
    return (
        f"[yellow]Warning:[/] No knowledge index for '{project}'.\n"
        "  /help questions will use an empty context.\n"
        f"  Run:  ragdesk ingest --project {project}"
    )


def err_embedding_model_mismatch(index_model: str, config_model: str) -> str:
    """Embedding model stored in the index does not match the current one."""
    return (
        f"[red]Error:[/] Embedding model mismatch.\n"
        f"  Index uses:   {index_model}\n"
        f"  Current:      {config_model}\n"
        "  Re-run ragdesk ingest or pass --embedding-model to match the index."
    )


def err_backend(detail: str, base_url: str) -> str:
    """Chat / embedding backend call failed."""
    return (
        f"[red]Error:[/] Model backend request failed: {detail}\n"
        f"  Check that Ollama is running at {base_url}\n"
        "  Run:  ragdesk models  to list available models."
    )


def err_tool_limit(detail: str) -> str:
    """The model kept requesting tools until the round-trip budget ran out."""
    return (
        f"[red]Error:[/] {detail}\n"
        "  The model kept requesting tools without answering.\n"
        "  Rephrase the question or disable tools:  ragdesk tools disable TOOL_ID"
    )


def err_github_not_configured() -> str:
    return (
        "[red]Error:[/] GitHub MCP is not configured.\n"
        "  Set:  export MCP_GITHUB_TOKEN=ghp_...\n"
        "  and make sure the project has a GitHub 'origin' remote\n"
        "  (or set github.owner / github.repo in ragdesk.yaml)."
    )


def err_webhook_port() -> str:
    return (
        "[red]Error:[/] Webhook port is not configured.\n"
        "  Pass --port, set webhook.port in ragdesk.yaml,\n"
        "  or:  export GITHUB_WEBHOOK_PORT=8787"
    )


def err_pr_number_env() -> str:
    """PR_NUMBER missing in CI mode."""
    return (
        "[red]Error:[/] PR_NUMBER environment variable is required in --ci mode.\n"
        "  In GitHub Actions:  PR_NUMBER: ${{ github.event.pull_request.number }}"
    )


def err_unknown_tool(tool_id: str, known: list[str]) -> str:
    known_list = ", ".join(known) if known else "(none)"
    return (
        f"[red]Error:[/] Unknown tool '{tool_id}'.\n"
        f"  Available tools: {known_list}\n"
        "  Run:  ragdesk tools list"
    )


def err_issue_not_found(issue_id: str) -> str:
    return (
        f"[red]Error:[/] Issue '{issue_id}' not found in issues/user_issues.json.\n"
        "  Run:  ragdesk issues list"
    )


def err_failure(message: str) -> str:
    """Generic failure carrying the underlying message."""
    return f"[red]Error:[/] {message}"
