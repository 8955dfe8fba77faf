"""Short textual overview of a project directory (used by ``ragdesk status``)."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

_NOTABLE_FILES = ("README.md", "pyproject.toml", "setup.cfg", "build.gradle.kts", "package.json")
_MAX_DIRS = 6
_MAX_DOCS = 5
_MAX_SOURCES = 4


def describe_project(root: Path, rag_sources: Sequence[str], question: str | None = None) -> str:
    lines = [f"Project {root.name} structure:"]

    directories = sorted(p.name for p in root.iterdir() if p.is_dir()) if root.is_dir() else []
    shown = ", ".join(directories[:_MAX_DIRS]) or "n/a"
    lines.append(f"- Top level directories: {shown}")
    if len(directories) > _MAX_DIRS:
        lines.append(f"  (and {len(directories) - _MAX_DIRS} more)")

    notable = [name for name in _NOTABLE_FILES if (root / name).is_file()]
    if notable:
        lines.append(f"- Notable files: {', '.join(notable)}")

    docs_root = root / "project" / "docs"
    if docs_root.is_dir():
        docs = sorted(
            p.relative_to(docs_root).as_posix()
            for p in docs_root.glob("**/*")
            if p.is_file() and len(p.relative_to(docs_root).parts) <= 2
        )
        if docs:
            head = ", ".join(docs[:_MAX_DOCS])
            more = ", ..." if len(docs) > _MAX_DOCS else ""
            lines.append(f"- project/docs entries: {head}{more}")

    if rag_sources:
        head = ", ".join(rag_sources[:_MAX_SOURCES])
        extra = f" (+{len(rag_sources) - _MAX_SOURCES})" if len(rag_sources) > _MAX_SOURCES else ""
        lines.append(f"- Active RAG sources: {head}{extra}")
    else:
        lines.append("- RAG sources are empty.")

    if question and question.strip():
        lines.append("")
        lines.append(f"Request: {question.strip()}")
        lines.append("Use /help for structure questions and regular prompts for model responses.")

    return "\n".join(lines)
