"""Pull request review prompt assembly.

One review = one two-message chat request (system + user); no tool loop.
The RAG context for the system prompt is keyed by the PR title, branches,
description and changed file names. The diff is fenced as ```diff and
capped at ``diff_limit`` characters with an explicit truncation marker.
"""

from __future__ import annotations

from collections.abc import Sequence

from ragdesk.rag.llm_client import ChatMessage
from ragdesk.tools.models import PullRequestFile, PullRequestReviewBundle

DEFAULT_DIFF_LIMIT = 120_000
TRUNCATION_MARKER = "\n... (diff truncated)"
NO_CONTEXT = "No relevant context found in the knowledge base."


def limit_text(text: str, max_chars: int = DEFAULT_DIFF_LIMIT) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


def build_context_query(bundle: PullRequestReviewBundle) -> str:
    s = bundle.summary
    return "\n".join([
        f"Pull request #{s.number}: {s.title}",
        f"Base branch: {s.base_branch}, head: {s.head_branch}",
        f"Summary: {s.body if s.body.strip() else 'No description'}",
        f"Changed files: {', '.join(f.filename for f in bundle.files)}",
    ])


def format_files_summary(files: Sequence[PullRequestFile]) -> str:
    return "\n".join(
        f"- {f.filename} ({f.status}, +{f.additions} -{f.deletions}, Δ{f.changes})"
        for f in files
    )


def build_review_messages(
    bundle: PullRequestReviewBundle,
    rag_context: str,
    language: str = "English",
    diff_limit: int = DEFAULT_DIFF_LIMIT,
) -> list[ChatMessage]:
    """Return ``[system, user]`` for a structured review of *bundle*."""
    s = bundle.summary
    system = "\n".join([
        "You are a senior software engineer performing an in-depth pull request review.",
        "Identify correctness issues, security concerns, style problems, missing tests, "
        "and offer actionable suggestions.",
        f"Write the final review in {language}, even if the diff/comments are in another language.",
        "Project context snippets:",
        rag_context,
    ])
    files_summary = format_files_summary(bundle.files)
    user = "\n".join([
        f"Review pull request #{s.number}: {s.title}",
        f"Author: {s.author} ({s.head_branch} -> {s.base_branch})",
        f"Pull request URL: {s.url}",
        "",
        "Pull request description:",
        s.body if s.body.strip() else "No description provided.",
        "",
        "Changed files:",
        files_summary or "No file data.",
        "",
        "Unified diff (truncated if necessary):",
        "```diff",
        limit_text(bundle.diff, diff_limit),
        "```",
        "",
        "Return a structured review with headings for Findings, Potential Bugs, "
        "and Recommendations.",
    ])
    return [ChatMessage("system", system), ChatMessage("user", user)]
