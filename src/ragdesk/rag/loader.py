"""Project document loader: file discovery + paragraph-bounded chunking.

Discovery order for a directory (duplicates keep their first position):
  1. README.md at the root
  2. every allowed file under project/docs/
  3. every allowed file under src/
  4. every *.md file up to depth 2
  5. fallback, only if nothing was found: any allowed file up to depth 2

A single file selection loads just that file. Files larger than 512 KiB or
with an extension outside the allow-list are ignored, and hidden directories
are never entered. Unreadable files are reported as warnings, never raised.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS: frozenset[str] = frozenset(
    ["md", "txt", "json", "py", "kt", "kts", "java", "js", "ts"]
)
MAX_FILE_BYTES = 512 * 1024
MAX_FRAGMENT_CHARS = 900


@dataclass(frozen=True)
class TextFragment:
    source: str
    content: str


@dataclass
class LoadResult:
    """Output of DocumentLoader.load_sources().

    Attributes:
        fragments: Chunked text, in discovery order.
        sources: Files that were selected for loading.
        skipped: Human-readable warnings for files that could not be read.
    """

    fragments: list[TextFragment] = field(default_factory=list)
    sources: list[Path] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


class DocumentLoader:
    def __init__(
        self,
        allowed_extensions: frozenset[str] = DEFAULT_EXTENSIONS,
        max_file_bytes: int = MAX_FILE_BYTES,
        max_chars: int = MAX_FRAGMENT_CHARS,
    ) -> None:
        self.allowed_extensions = frozenset(e.lower() for e in allowed_extensions)
        self.max_file_bytes = max_file_bytes
        self.max_chars = max_chars

    def load_sources(self, selected: Path) -> LoadResult:
        normalized = selected.expanduser().resolve()
        root = normalized if normalized.is_dir() else normalized.parent
        targets = self.collect_targets(normalized)
        result = LoadResult(sources=targets)

        for file in targets:
            try:
                text = file.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                result.skipped.append(f"Cannot read {file.name}: {exc}")
                continue
            result.fragments.extend(chunk_text(_label_for(root, file), text, self.max_chars))

        logger.debug(
            "Loaded %d fragments from %d files under %s (%d skipped)",
            len(result.fragments), len(targets), root, len(result.skipped),
        )
        return result

    def collect_targets(self, selection: Path) -> list[Path]:
        if selection.is_file():
            return [selection]
        if not selection.is_dir():
            return []

        # dict preserves insertion order and drops duplicates
        files: dict[Path, None] = {}
        readme = selection / "README.md"
        if readme.is_file():
            files[readme] = None

        for sub in (selection / "project" / "docs", selection / "src"):
            if sub.is_dir():
                for path in _walk(sub):
                    if self._should_include(path):
                        files[path] = None

        for path in _walk(selection, max_depth=2):
            if path.suffix.lower() == ".md" and self._should_include(path):
                files[path] = None

        if not files:
            for path in _walk(selection, max_depth=2):
                if self._should_include(path):
                    files[path] = None

        return list(files)

    def _should_include(self, path: Path) -> bool:
        if path.suffix.lstrip(".").lower() not in self.allowed_extensions:
            return False
        try:
            return path.stat().st_size <= self.max_file_bytes
        except OSError:
            return False


def chunk_text(source: str, text: str, max_chars: int = MAX_FRAGMENT_CHARS) -> list[TextFragment]:
    """Pack blank-line separated paragraphs into fragments of about *max_chars*.

    A paragraph longer than *max_chars* becomes a fragment on its own.
    """
    if not text.strip():
        return []

    fragments: list[TextFragment] = []
    buffer: list[str] = []
    buffer_len = 0

    def flush() -> None:
        nonlocal buffer_len
        chunk = "\n\n".join(buffer).strip()
        if chunk:
            fragments.append(TextFragment(source=source, content=chunk))
        buffer.clear()
        buffer_len = 0

    for paragraph in text.replace("\r\n", "\n").split("\n\n"):
        if buffer_len + len(paragraph) + 2 > max_chars:
            flush()
        if paragraph.strip():
            stripped = paragraph.strip()
            buffer_len += len(stripped) + (2 if buffer else 0)
            buffer.append(stripped)
    flush()
    return fragments


def _walk(root: Path, max_depth: int | None = None) -> Iterator[Path]:
    """Yield regular files under *root* in sorted order, down to *max_depth* levels.

    Hidden directories (.git, .ragdesk, ...) are not entered.
    """
    stack: list[tuple[Path, int]] = [(root, 0)]
    while stack:
        directory, depth = stack.pop()
        try:
            entries = sorted(directory.iterdir())
        except OSError:
            continue
        subdirs: list[Path] = []
        for entry in entries:
            if entry.is_file():
                if max_depth is None or depth + 1 <= max_depth:
                    yield entry
            elif entry.is_dir() and not entry.name.startswith(".") and (
                max_depth is None or depth + 1 < max_depth
            ):
                subdirs.append(entry)
        stack.extend((d, depth + 1) for d in reversed(subdirs))


def _label_for(root: Path, target: Path) -> str:
    try:
        relative = target.relative_to(root).as_posix()
    except ValueError:
        return target.name
    return relative if relative and relative != "." else target.name
