"""
Core protocols defining contracts for the knowledge store.

All infrastructure components implement these protocols,
enabling dependency injection and easy testing.

PATTERN: Same structure throughout the package
- Protocol defines the contract
- Multiple implementations possible
- Factory functions for instantiation
- Test doubles for fast unit tests
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Protocol, runtime_checkable

import numpy as np

if TYPE_CHECKING:
    from personal_kb.retrieval.document import Document


# ---------------------------------------------------------------------------
# EMBEDDING PROVIDER PROTOCOL
# ---------------------------------------------------------------------------


@runtime_checkable
class EmbeddingProvider(Protocol):
    """
    Contract for embedding generation.

    embed() must return a vector of exactly `dimensions` floats and must
    raise when it cannot produce one, not return a placeholder vector.

    Implementations:
    - OpenAIEmbeddings (remote model)
    - HashingEmbeddings (deterministic, offline)
    """

    @property
    def dimensions(self) -> int:
        """Length of every vector this provider returns."""
        ...

    def embed(self, text: str) -> np.ndarray:
        """Generate embedding for a single text."""
        ...

    def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Generate embeddings for multiple texts."""
        ...


# ---------------------------------------------------------------------------
# CATALOG BACKEND PROTOCOL
# ---------------------------------------------------------------------------


@runtime_checkable
class CatalogBackend(Protocol):
    """
    Contract for durable storage of documents and their embeddings.

    Every mutating call must be durable when it returns, or raise.

    Implementations:
    - JsonlCatalog (append-only log file)
    - SqliteCatalog (embedded database)
    - InMemoryCatalog (testing)
    """

    def load(self) -> list[tuple[Document, np.ndarray]]:
        """Return every live (document, embedding) pair in insertion order."""
        ...

    def append(self, document: Document, embedding: np.ndarray) -> None:
        """Durably record a new document."""
        ...

    def delete(self, document_id: str) -> None:
        """Durably record the removal of a document."""
        ...

    def rewrite(self, entries: Iterable[tuple[Document, np.ndarray]]) -> None:
        """Replace the whole persisted state with `entries`."""
        ...
