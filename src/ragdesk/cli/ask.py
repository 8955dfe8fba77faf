"""ragdesk ask / chat: talk to the assistant.

``ask`` sends one question; ``chat`` keeps a session with history. Prefix a
question with ``/help`` to ground the answer in the project knowledge index.
Tool requests the model makes are executed in between and never shown.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.status import Status

from ragdesk.assistant.orchestrator import Assistant, ConversationState
from ragdesk.cli.options import BaseUrlOpt, ChatModelOpt, EmbeddingModelOpt, ProjectOpt, StateOpt
from ragdesk.cli.session import Session, open_session, run
from ragdesk.errors import ConfigurationError, GitError
from ragdesk.rag.llm_client import ChatMessage

console = Console()
logger = logging.getLogger(__name__)

_STATE_LABELS = {
    ConversationState.RETRIEVING_CONTEXT: "Searching project context...",
    ConversationState.PROMPTING: "Waiting for the model...",
    ConversationState.AWAITING_TOOL: "Running tool...",
}

_EXIT_WORDS = frozenset(["/exit", "/quit", "exit", "quit"])


async def _branch(assistant: Assistant, project: Path) -> str | None:
    try:
        return await assistant.fetch_branch(project)
    except (GitError, ConfigurationError) as exc:
        logger.info("No git branch for %s: %s", project, exc)
        return None


async def _answer(
    session: Session,
    question: str,
    status: Status,
    history: list[ChatMessage],
    require_task: bool,
    system: str | None,
) -> str:
    def on_state(state: ConversationState) -> None:
        label = _STATE_LABELS.get(state)
        if label:
            status.update(label)

    branch = await _branch(session.assistant, session.project)
    return await session.assistant.ask(
        question,
        session.chat_model,
        session.embedding_model,
        session.base_url,
        git_branch=branch,
        project_root=session.project,
        require_task_creation=require_task,
        history=history,
        extra_system_prompt=system,
        on_state=on_state,
    )


def ask_cmd(
    question: Annotated[str, typer.Argument(help="Question; start with /help for project context.")],
    project: ProjectOpt = None,
    base_url: BaseUrlOpt = None,
    chat_model: ChatModelOpt = None,
    embedding_model: EmbeddingModelOpt = None,
    create_task: Annotated[
        bool,
        typer.Option("--create-task", help="Require the model to record at least one task."),
    ] = False,
    system: Annotated[
        str | None,
        typer.Option("--system", help="Extra system instructions for this request."),
    ] = None,
    raw: Annotated[bool, typer.Option("--raw", help="Print plain text instead of Markdown.")] = False,
    state: StateOpt = None,
) -> None:
    """Ask a single question."""
    session = open_session(
        project, base_url, chat_model, embedding_model, state_path=state
    )
    with console.status("Thinking...") as status:
        answer = run(
            _answer(session, question, status, [], create_task, system),
            session.base_url,
        )
    _print_answer(answer, raw)


def chat_cmd(
    project: ProjectOpt = None,
    base_url: BaseUrlOpt = None,
    chat_model: ChatModelOpt = None,
    embedding_model: EmbeddingModelOpt = None,
    system: Annotated[
        str | None,
        typer.Option("--system", help="Extra system instructions for the whole session."),
    ] = None,
    state: StateOpt = None,
) -> None:
    """Interactive chat session (type /exit to leave)."""
    session = open_session(
        project, base_url, chat_model, embedding_model, state_path=state
    )
    console.print(
        f"[bold]ragdesk chat[/] | {session.project.name} · {session.chat_model}\n"
        "[dim]/help <question> for project context, /exit to quit.[/]"
    )
    history: list[ChatMessage] = []

    while True:
        try:
            question = console.input("[bold cyan]you>[/] ").strip()
        except EOFError:
            break
        if not question:
            continue
        if question.lower() in _EXIT_WORDS:
            break

        with console.status("Thinking...") as status:
            try:
                answer = run(
                    _answer(session, question, status, history, False, system),
                    session.base_url,
                )
            except typer.Exit:
                # Already reported; keep the session alive.
                continue

        _print_answer(answer, raw=False)
        history.append(ChatMessage("user", question))
        history.append(ChatMessage("assistant", answer))


def _print_answer(answer: str, raw: bool) -> None:
    if raw:
        typer.echo(answer)
    else:
        console.print(Markdown(answer))
