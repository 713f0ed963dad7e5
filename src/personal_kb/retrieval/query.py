"""
Similarity query engine - exact brute-force cosine ranking.

Scores every live embedding against the query vector in one vectorized
pass, keeps the ones above the relevance threshold, ranks them and
annotates each hit with a snippet and the query terms it contains.

O(n * D) per query. Fine for a personal corpus of a few thousand
documents; an approximate index would be the next step beyond that.
"""

from __future__ import annotations

import re

import numpy as np

from personal_kb.core.errors import InvalidArgument
from personal_kb.retrieval.document import SearchResult
from personal_kb.retrieval.store import DocumentStore

# Ranking policy
RELEVANCE_THRESHOLD = 0.3
SNIPPET_CONTEXT = 50  # characters kept on each side of the first hit
SNIPPET_LENGTH = 100  # leading excerpt when no query word occurs


# ---------------------------------------------------------------------------
# SCORING
# ---------------------------------------------------------------------------


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity of two vectors; 0.0 if either has zero magnitude."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    denom = np.linalg.norm(a) * np.linalg.norm(b)
    if denom == 0:
        return 0.0
    return float(np.clip(np.dot(a, b) / denom, -1.0, 1.0))


def cosine_scores(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of `query` against every row of `matrix`."""
    query = np.asarray(query, dtype=np.float64)
    matrix = np.asarray(matrix, dtype=np.float64)

    denom = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    scores = np.zeros(matrix.shape[0], dtype=np.float64)
    np.divide(matrix @ query, denom, out=scores, where=denom > 0)
    return np.clip(scores, -1.0, 1.0)


# ---------------------------------------------------------------------------
# ANNOTATION
# ---------------------------------------------------------------------------


def query_words(query: str) -> list[str]:
    """Lowercased whitespace tokens of the query."""
    return query.lower().split()


def make_snippet(content: str, query: str) -> str:
    """
    Excerpt of `content` around the first query word found in it.

    Query words are tried in query order. The window runs from
    SNIPPET_CONTEXT characters before the hit to SNIPPET_CONTEXT after it,
    clamped to the content. Without any hit, the first SNIPPET_LENGTH
    characters are returned.
    """
    for word in query_words(query):
        match = re.search(re.escape(word), content, re.IGNORECASE)
        if match:
            start = max(0, match.start() - SNIPPET_CONTEXT)
            end = min(len(content), match.end() + SNIPPET_CONTEXT)
            return content[start:end]
    return content[:SNIPPET_LENGTH]


def matched_terms(content: str, query: str) -> list[str]:
    """Query words (lowercased, deduplicated) that occur in the content."""
    haystack = content.lower()
    terms: list[str] = []
    for word in query_words(query):
        if word in haystack and word not in terms:
            terms.append(word)
    return terms


# ---------------------------------------------------------------------------
# ENGINE
# ---------------------------------------------------------------------------


class SimilarityQueryEngine:
    """Ranks the documents of a DocumentStore against a query vector."""

    def __init__(self, store: DocumentStore):
        self._store = store

    def search(
        self,
        query_vector: np.ndarray,
        query: str = "",
        limit: int = 10,
    ) -> list[SearchResult]:
        """
        Rank stored documents by cosine similarity to `query_vector`.

        Args:
            query_vector: Embedding of the query, same dimension as the store
            query: Query text, used only for snippets and matched terms
            limit: Maximum number of results, must be > 0

        Returns:
            Results scoring above RELEVANCE_THRESHOLD, best first. Equal
            scores keep insertion order.
        """
        snapshot = self._store.snapshot()
        validate_limit(limit)
        try:
            vector = self._store.validate_embedding(query_vector)
        except InvalidArgument as e:
            raise InvalidArgument(f"Invalid query vector: {e}") from e

        if not len(snapshot):
            return []

        scores = cosine_scores(vector, snapshot.embeddings)
        candidates = np.flatnonzero(scores > RELEVANCE_THRESHOLD)
        ranked = candidates[np.argsort(-scores[candidates], kind="stable")][:limit]

        results = []
        for row in ranked:
            document = snapshot.documents[row]
            results.append(
                SearchResult(
                    document=document,
                    score=float(scores[row]),
                    snippet=make_snippet(document.content, query),
                    matched_terms=matched_terms(document.content, query),
                )
            )
        return results


def validate_limit(limit: int) -> None:
    """Raise InvalidArgument unless `limit` is a positive integer."""
    if isinstance(limit, bool) or not isinstance(limit, (int, np.integer)):
        raise InvalidArgument(f"limit must be an integer, got {type(limit).__name__}")
    if limit <= 0:
        raise InvalidArgument(f"limit must be > 0, got {limit}")
