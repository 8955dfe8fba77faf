"""Lexical rerank + context formatting for dense search results.

Dense search returns up to 8 candidates; the ranker reorders them by a cheap
keyword score and keeps the best 4 for the prompt.

Keyword score per fragment:
  +1 for each non-overlapping occurrence of a keyword in the lowercased content
  +2 if the keyword appears in the lowercased source label
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from ragdesk.rag.knowledge import EmbeddedFragment

EMPTY_CONTEXT = "RAG context is empty. Answer using your general knowledge."

# Maximal runs of Unicode letters/digits (no underscore).
_WORD_RE = re.compile(r"[^\W_]+")
_MIN_KEYWORD_LEN = 3
_BLOCK_SEPARATOR = "\n---\n"


def extract_keywords(query: str) -> set[str]:
    return {
        word
        for word in _WORD_RE.findall(query.lower())
        if len(word) >= _MIN_KEYWORD_LEN
    }


def _count_occurrences(haystack: str, needle: str) -> int:
    count = 0
    index = haystack.find(needle)
    while index >= 0:
        count += 1
        index = haystack.find(needle, index + len(needle))
    return count


def keyword_score(fragment: EmbeddedFragment, keywords: set[str]) -> int:
    content = fragment.content.lower()
    source = fragment.source.lower()
    score = 0
    for keyword in keywords:
        score += _count_occurrences(content, keyword)
        if keyword in source:
            score += 2
    return score


def rerank(query: str, candidates: Sequence[EmbeddedFragment]) -> list[EmbeddedFragment]:
    """Stable sort of *candidates* by keyword score, highest first.

    Order is unchanged when the query yields no keywords.
    """
    keywords = extract_keywords(query)
    if not keywords:
        return list(candidates)
    return sorted(candidates, key=lambda f: keyword_score(f, keywords), reverse=True)


def format_context(fragments: Sequence[EmbeddedFragment]) -> str:
    """Render ``[source]\\ncontent`` blocks separated by ``---`` lines."""
    return _BLOCK_SEPARATOR.join(f"[{f.source}]\n{f.content}" for f in fragments)


def build_context(
    query: str,
    candidates: Sequence[EmbeddedFragment],
    limit: int = 4,
) -> str:
    """Rerank *candidates*, keep the top *limit*, and format them.

    Returns EMPTY_CONTEXT when nothing is left.
    """
    selected = rerank(query, candidates)[:limit]
    if not selected:
        return EMPTY_CONTEXT
    return format_context(selected)
