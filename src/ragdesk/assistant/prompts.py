"""Prompt builders for the conversation loop.

System prompt structure:
  framing line
  Current git branch: {branch}          ← optional
  {extra_system_prompt}                 ← optional caller instructions
  Context snippets:
  {context}                             ← reranked RAG blocks or a placeholder
  (blank line)
  tool catalog + usage rules            ← or a single "no tools approved" line
"""

from __future__ import annotations

from collections.abc import Sequence

from ragdesk.rag.llm_client import ChatMessage
from ragdesk.tools.models import ToolSummary

HELP_PREFIX = "/help"

CONTEXT_NOT_REQUESTED = (
    "RAG context not provided (use /help to request project-specific information)."
)
NO_TOOLS_LINE = "No MCP tools are currently approved by the user."
TASK_REMINDER = (
    "The user explicitly asked to create tasks. Call `workspace-create-task` with the "
    "JSON payload you prepared, wait for the tool result, and only then respond to the user."
)
MALFORMED_TOOL_REQUEST = (
    "Malformed tool request: missing tool id after MCP_REQUEST:. Put the tool id on the "
    "same line as the marker, or answer the user without the marker."
)

_FRAMING = "You are an engineering assistant. Help the user understand the project."

_TOOL_RULES = (
    "Available MCP tools (request them by responding with `MCP_REQUEST:tool_name` and, "
    "if arguments are necessary, add a newline followed by a JSON payload).",
    "Tool usage principles:",
    "1) Always gather required data via tools when it exists locally instead of asking "
    "the user to paste it (e.g., fetch user issues with `workspace-user-issues`).",
    "2) You may request multiple tools sequentially to complete a workflow (for example, "
    "read user issues and then create project tasks).",
    "3) When calling task-creation tools (`workspace-create-task` or "
    "`workspace-create-tasks-batch`), provide a full JSON payload such as "
    '{"title":"...","description":"...","priority":"HIGH","requirements":["..."]}. '
    "Use the batch tool when the user asks for multiple tasks in one message.",
    "4) If the user explicitly asks to add or update tasks, you MUST call one of the "
    "task-creation tools; do not respond with JSON only. Show the JSON, then immediately "
    "issue the MCP request so the task is persisted.",
    "5) Never claim a task exists unless the tool succeeded. If the tool fails, explain "
    "the failure and ask the user to correct the payload.",
    "After each tool result, continue reasoning; only send the final answer once you have "
    "satisfied the request without referencing MCP or intermediate steps.",
)
_TOOL_CLOSING = (
    "Only request a tool when it helps fulfill the instruction; once the tool returns "
    "data, incorporate it naturally into your answer."
)


def is_help_request(question: str) -> bool:
    return question[: len(HELP_PREFIX)].lower() == HELP_PREFIX


def strip_help_prefix(question: str) -> str:
    """Remainder of a /help question, trimmed (may be empty)."""
    return question[len(HELP_PREFIX):].strip() if is_help_request(question) else question.strip()


def build_system_prompt(
    context: str,
    tools: Sequence[ToolSummary],
    git_branch: str | None = None,
    extra_system_prompt: str | None = None,
) -> str:
    lines = [_FRAMING]
    if git_branch and git_branch.strip():
        lines.append(f"Current git branch: {git_branch.strip()}")
    if extra_system_prompt and extra_system_prompt.strip():
        lines.append(extra_system_prompt.strip())
    lines.append("Context snippets:")
    lines.append(context)
    lines.append("")
    if not tools:
        lines.append(NO_TOOLS_LINE)
    else:
        lines.extend(_TOOL_RULES)
        lines.extend(f"- {t.id} ({t.server_name}): {t.description}" for t in tools)
        lines.append(_TOOL_CLOSING)
    return "\n".join(lines)


def build_user_message(question: str) -> ChatMessage:
    """Plain question, or the PROJECT_CONTEXT_QUESTION wrapper for /help."""
    if not is_help_request(question):
        return ChatMessage("user", question)
    payload = strip_help_prefix(question)
    content = (
        "PROJECT_CONTEXT_QUESTION: The user is asking specifically about the currently "
        "selected project. Rely on the RAG context and MCP responses to reason about "
        "project structure, files, and conventions. "
    )
    if payload:
        content += f"User request: {payload}"
    else:
        content += "Provide a concise overview and structure summary of the project."
    return ChatMessage("user", content)


def history_messages(history: Sequence[ChatMessage], limit: int = 10) -> list[ChatMessage]:
    """Last *limit* history entries with blank messages dropped, order kept."""
    recent = list(history)[-limit:] if limit > 0 else []
    return [m for m in recent if m.content.strip() and m.role in ("system", "user", "assistant")]


def tool_result_message(tool_id: str, text: str) -> ChatMessage:
    return ChatMessage(
        "system",
        f"Tool '{tool_id}' returned:\n{text}\n"
        "Use this information to answer the user naturally without referencing tool invocations.",
    )


def issue_solution_messages(
    user_name: str,
    issue_id: str,
    issue_number: int,
    subject: str,
    description: str,
    context: str,
    language: str = "English",
) -> list[ChatMessage]:
    """Support-style prompt for proposing a fix or workaround for a user issue."""
    system = "\n".join([
        "You are a support engineer for this project.",
        "Explain the behaviour and propose resolution steps as if answering the user "
        "directly, without deep implementation details.",
        "Base your answer on the FAQ, README, docs and sources, but retell conclusions "
        f"in plain words. Always answer in {language}.",
        "Context from the knowledge base search:",
        context,
    ])
    user = "\n".join([
        f"User {user_name} submitted an issue.",
        f"ID: {issue_id}, number: {issue_number}",
        f"Subject: {subject}",
        f"Description: {description}",
        "",
        "Propose a solution or explain the current product behaviour in plain words. "
        "If needed, suggest diagnostic steps or a workaround.",
        "Do not go deep into code implementation details; focus on the user's actions "
        "and the expected effect.",
    ])
    return [ChatMessage("system", system), ChatMessage("user", user)]
