"""Tests for the in-memory knowledge store and its on-disk index."""

from __future__ import annotations

import json
import math
from pathlib import Path

import pytest

from ragdesk.errors import PersistenceError
from ragdesk.rag.knowledge import (
    EmbeddedFragment,
    KnowledgeStore,
    cosine_similarity,
    index_path,
    load_index,
    save_index,
)


def _frag(source: str, embedding: tuple[float, ...], content: str = "text") -> EmbeddedFragment:
    return EmbeddedFragment(source=source, content=content, embedding=embedding)


# ------------------------------------------------------------------
# cosine_similarity
# ------------------------------------------------------------------


def test_cosine_identical_vectors_is_one() -> None:
    assert math.isclose(cosine_similarity([0.3, 0.4], [0.3, 0.4]), 1.0)


def test_cosine_orthogonal_is_zero() -> None:
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0


def test_cosine_zero_norm_is_zero() -> None:
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0


def test_cosine_empty_is_zero() -> None:
    assert cosine_similarity([], [1.0]) == 0.0


def test_cosine_uses_shared_prefix_on_dimension_mismatch() -> None:
    # only the first two dimensions are compared
    assert math.isclose(cosine_similarity([1.0, 0.0], [1.0, 0.0, 5.0]), 1.0)


# ------------------------------------------------------------------
# KnowledgeStore
# ------------------------------------------------------------------


def test_empty_store_search_returns_empty() -> None:
    store = KnowledgeStore()

    assert store.is_empty()
    assert store.search([1.0, 0.0]) == []


def test_empty_query_vector_returns_empty() -> None:
    store = KnowledgeStore()
    store.replace_all([_frag("a.md", (1.0, 0.0))])

    assert store.search([]) == []


def test_search_excludes_non_positive_similarity() -> None:
    store = KnowledgeStore()
    store.replace_all([
        _frag("same.md", (1.0, 0.0)),
        _frag("orthogonal.md", (0.0, 1.0)),
        _frag("opposite.md", (-1.0, 0.0)),
    ])

    results = store.search([1.0, 0.0], top_k=10)

    assert [f.source for f in results] == ["same.md"]


def test_search_respects_top_k_and_orders_best_first() -> None:
    store = KnowledgeStore()
    store.replace_all([
        _frag("weak.md", (1.0, 1.0)),
        _frag("best.md", (1.0, 0.0)),
        _frag("mid.md", (1.0, 0.5)),
    ])

    results = store.search([1.0, 0.0], top_k=2)

    assert [f.source for f in results] == ["best.md", "mid.md"]


def test_search_ties_keep_insertion_order() -> None:
    store = KnowledgeStore()
    store.replace_all([_frag("first.md", (2.0, 0.0)), _frag("second.md", (1.0, 0.0))])

    results = store.search([1.0, 0.0], top_k=2)

    assert [f.source for f in results] == ["first.md", "second.md"]


def test_replace_all_swaps_state_and_sources_are_distinct() -> None:
    store = KnowledgeStore()
    store.replace_all([_frag("old.md", (1.0,))])
    store.replace_all([
        _frag("b.md", (1.0,)),
        _frag("a.md", (1.0,)),
        _frag("b.md", (1.0,)),
    ])

    assert len(store) == 3
    assert store.sources() == ["b.md", "a.md"]


def test_clear_empties_store() -> None:
    store = KnowledgeStore()
    store.replace_all([_frag("a.md", (1.0,))])

    store.clear()

    assert store.is_empty()
    assert store.sources() == []


def test_snapshot_is_a_copy() -> None:
    store = KnowledgeStore()
    store.replace_all([_frag("a.md", (1.0,))])

    snap = store.snapshot()
    snap.clear()

    assert len(store) == 1


def test_fragment_ids_are_unique_uuids() -> None:
    a = _frag("a.md", (1.0,))
    b = _frag("a.md", (1.0,))

    assert a.id != b.id
    assert len(a.id) == 36


# ------------------------------------------------------------------
# On-disk index
# ------------------------------------------------------------------


def test_index_path_for_directory_and_file(tmp_path: Path) -> None:
    readme = tmp_path / "README.md"
    readme.write_text("x", encoding="utf-8")

    assert index_path(tmp_path) == tmp_path / ".ragdesk" / "index.json"
    assert index_path(readme) == tmp_path / ".ragdesk" / "index.json"


def test_save_then_load_restores_fragments(tmp_path: Path) -> None:
    store = KnowledgeStore()
    original = _frag("README.md", (0.5, 0.25), content="Hello world")
    store.replace_all([original])
    path = tmp_path / ".ragdesk" / "index.json"

    save_index(store, path, "nomic-embed-text")
    restored = KnowledgeStore()
    model = load_index(restored, path)

    assert model == "nomic-embed-text"
    assert restored.snapshot() == [original]


def test_load_missing_index_returns_none_and_keeps_store(tmp_path: Path) -> None:
    store = KnowledgeStore()
    store.replace_all([_frag("a.md", (1.0,))])

    assert load_index(store, tmp_path / "missing.json") is None
    assert len(store) == 1


def test_load_corrupt_index_raises(tmp_path: Path) -> None:
    path = tmp_path / "index.json"
    path.write_text(json.dumps({"fragments": [{"source": "a.md"}]}), encoding="utf-8")

    with pytest.raises(PersistenceError, match="Cannot read knowledge index"):
        load_index(KnowledgeStore(), path)
