"""Typer option types shared by several commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

ProjectOpt = Annotated[
    Path | None,
    typer.Option("--project", "-p", help="Project directory (defaults to the last one used)."),
]
BaseUrlOpt = Annotated[
    str | None,
    typer.Option("--base-url", help="Ollama base URL (e.g. http://localhost:11434)."),
]
ChatModelOpt = Annotated[
    str | None,
    typer.Option("--chat-model", "-m", help="Chat model name."),
]
EmbeddingModelOpt = Annotated[
    str | None,
    typer.Option("--embedding-model", "-e", help="Embedding model name."),
]
StateOpt = Annotated[
    Path | None,
    typer.Option("--state", hidden=True, help="Override ~/.ragdesk/state.json (for testing)."),
]
