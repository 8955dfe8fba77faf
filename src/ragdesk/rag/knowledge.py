"""In-memory knowledge store: embedded fragments + cosine-similarity search.

The store holds one ordered list of EmbeddedFragment, replaced wholesale on
every ingest. All reads and writes go through a single lock so callers on
other threads (CLI progress, webhook workers) always see a consistent view.

Between CLI invocations the store lives in ``<project>/.ragdesk/index.json``
(save_index / load_index), tagged with the embedding model that built it.
"""

from __future__ import annotations

import json
import math
import threading
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from ragdesk.atomic import atomic_write_text
from ragdesk.errors import PersistenceError


@dataclass(frozen=True)
class EmbeddedFragment:
    """A text fragment together with its embedding vector.

    Attributes:
        source: Root-relative label of the file the fragment came from.
        content: Fragment text.
        embedding: Vector returned by the embedding model.
        id: Random UUID4 string.
    """

    source: str
    content: str
    embedding: tuple[float, ...]
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity over the shared prefix of *a* and *b*.

    Returns 0.0 when either vector is empty or has zero norm.
    """
    if not a or not b:
        return 0.0
    length = min(len(a), len(b))
    dot = norm_a = norm_b = 0.0
    for i in range(length):
        av = a[i]
        bv = b[i]
        dot += av * bv
        norm_a += av * av
        norm_b += bv * bv
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


class KnowledgeStore:
    """Thread-safe list of EmbeddedFragment with dense search."""

    def __init__(self) -> None:
        self._fragments: list[EmbeddedFragment] = []
        self._lock = threading.Lock()

    def replace_all(self, fragments: Iterable[EmbeddedFragment]) -> None:
        new_state = list(fragments)
        with self._lock:
            self._fragments = new_state

    def clear(self) -> None:
        self.replace_all([])

    def is_empty(self) -> bool:
        with self._lock:
            return not self._fragments

    def __len__(self) -> int:
        with self._lock:
            return len(self._fragments)

    def snapshot(self) -> list[EmbeddedFragment]:
        with self._lock:
            return list(self._fragments)

    def sources(self) -> list[str]:
        """Distinct source labels in first-seen order."""
        with self._lock:
            return list(dict.fromkeys(f.source for f in self._fragments))

    def search(self, query_vector: Sequence[float], top_k: int = 4) -> list[EmbeddedFragment]:
        """Return up to *top_k* fragments with positive similarity, best first.

        Ties keep insertion order (sorted() is stable).
        """
        if not query_vector or top_k <= 0:
            return []
        state = self.snapshot()
        if not state:
            return []

        scored = [(f, cosine_similarity(query_vector, f.embedding)) for f in state]
        positive = [pair for pair in scored if pair[1] > 0.0]
        positive = sorted(positive, key=lambda pair: pair[1], reverse=True)
        return [f for f, _ in positive[:top_k]]


# ------------------------------------------------------------------
# On-disk index (one JSON file per project)
# ------------------------------------------------------------------

INDEX_RELATIVE_PATH = Path(".ragdesk") / "index.json"


def index_path(project_root: Path) -> Path:
    root = project_root if project_root.is_dir() else project_root.parent
    return root / INDEX_RELATIVE_PATH


def save_index(store: KnowledgeStore, path: Path, embedding_model: str) -> None:
    """Persist the store so a later process can answer without re-ingesting."""
    payload = {
        "embedding_model": embedding_model,
        "fragments": [
            {"id": f.id, "source": f.source, "content": f.content, "embedding": list(f.embedding)}
            for f in store.snapshot()
        ],
    }
    try:
        atomic_write_text(path, json.dumps(payload))
    except OSError as exc:
        raise PersistenceError(f"Cannot write knowledge index {path}: {exc}", path) from exc


def load_index(store: KnowledgeStore, path: Path) -> str | None:
    """Replace the store with the index at *path*; return its embedding model.

    A missing index leaves the store untouched and returns None.

    Raises:
        PersistenceError: The index exists but cannot be parsed.
    """
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        fragments = [
            EmbeddedFragment(
                id=str(item["id"]),
                source=str(item["source"]),
                content=str(item["content"]),
                embedding=tuple(float(v) for v in item["embedding"]),
            )
            for item in data["fragments"]
        ]
    except (OSError, ValueError, KeyError, TypeError) as exc:
        raise PersistenceError(f"Cannot read knowledge index {path}: {exc}", path) from exc
    store.replace_all(fragments)
    return data.get("embedding_model")
