"""ragdesk ingest: build the project knowledge index.

Loads the project's documents (README, project/docs, src, top-level markdown),
embeds every fragment and writes ``<project>/.ragdesk/index.json``. Fragments
whose embedding fails are reported and left out of the index.
"""

from __future__ import annotations

import typer
from rich.console import Console

from ragdesk.cli.errors import err_failure
from ragdesk.cli.options import BaseUrlOpt, EmbeddingModelOpt, ProjectOpt, StateOpt
from ragdesk.cli.session import open_session, run
from ragdesk.errors import PersistenceError
from ragdesk.rag.knowledge import index_path, save_index

console = Console()


def ingest_cmd(
    project: ProjectOpt = None,
    base_url: BaseUrlOpt = None,
    embedding_model: EmbeddingModelOpt = None,
    state: StateOpt = None,
) -> None:
    """Index the project's documents for /help questions and reviews."""
    session = open_session(
        project,
        base_url=base_url,
        embedding_model=embedding_model,
        load_knowledge=False,
        state_path=state,
    )
    console.print(f"[bold]→ {session.project}[/]")

    with console.status(f"Embedding with {session.embedding_model}..."):
        result = run(
            session.assistant.ingest(session.project, session.base_url, session.embedding_model),
            session.base_url,
        )

    for warning in result.warnings:
        console.print(f"  [yellow]⚠[/] {warning}")

    target = index_path(session.project)
    try:
        save_index(session.assistant.store, target, session.embedding_model)
    except PersistenceError as exc:
        console.print(err_failure(str(exc)))
        raise typer.Exit(1) from exc

    console.print(
        f"[green]✓[/] Indexed [bold]{result.chunk_count}[/] chunks "
        f"from [bold]{len(result.sources)}[/] sources → {target}"
    )
