"""
Document store - the authoritative set of documents and embeddings.

The store owns two things exclusively:
1. The in-memory collection (documents + aligned embedding matrix)
2. The persisted catalog (via an injected CatalogBackend)

CONCURRENCY MODEL:
------------------
Single writer, many readers. The whole in-memory state lives in one
immutable StoreSnapshot. Writers hold a lock, build the next snapshot,
make it durable, and only then publish it with a single reference swap.
Readers grab the current reference once and work on it, so they never
see a document without its embedding (or the reverse), and never see
a mutation that has not reached the catalog.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Iterator

import numpy as np

from personal_kb.core.errors import (
    DuplicateId,
    InvalidArgument,
    NotFound,
    NotInitialized,
    PersistenceFailed,
)
from personal_kb.core.protocols import CatalogBackend
from personal_kb.embeddings.providers import DEFAULT_DIMENSIONS
from personal_kb.retrieval.document import Document

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# SNAPSHOT
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class StoreSnapshot:
    """
    Immutable view of the store at one point in time.

    Row i of `embeddings` belongs to `documents[i]`; order is insertion order.
    """

    documents: tuple[Document, ...]
    embeddings: np.ndarray
    positions: dict[str, int] = field(repr=False)

    @classmethod
    def build(
        cls, documents: list[Document], vectors: list[np.ndarray], dimension: int
    ) -> "StoreSnapshot":
        if vectors:
            matrix = np.vstack(vectors).astype(np.float32, copy=False)
        else:
            matrix = np.empty((0, dimension), dtype=np.float32)
        matrix.setflags(write=False)
        return cls(
            documents=tuple(documents),
            embeddings=matrix,
            positions={doc.id: i for i, doc in enumerate(documents)},
        )

    def __len__(self) -> int:
        return len(self.documents)

    def __contains__(self, document_id: object) -> bool:
        return document_id in self.positions

    def entries(self) -> Iterator[tuple[Document, np.ndarray]]:
        """Yield (document, embedding) pairs in insertion order."""
        for i, doc in enumerate(self.documents):
            yield doc, self.embeddings[i]

    def with_added(self, document: Document, vector: np.ndarray) -> "StoreSnapshot":
        documents = list(self.documents)
        documents.append(document)
        matrix = np.vstack([self.embeddings, vector[np.newaxis, :]])
        matrix.setflags(write=False)
        positions = dict(self.positions)
        positions[document.id] = len(documents) - 1
        return StoreSnapshot(tuple(documents), matrix, positions)

    def without(self, document_id: str) -> "StoreSnapshot":
        row = self.positions[document_id]
        documents = self.documents[:row] + self.documents[row + 1:]
        matrix = np.delete(self.embeddings, row, axis=0)
        matrix.setflags(write=False)
        positions = {doc.id: i for i, doc in enumerate(documents)}
        return StoreSnapshot(documents, matrix, positions)


# ---------------------------------------------------------------------------
# DOCUMENT STORE
# ---------------------------------------------------------------------------


class DocumentStore:
    """
    Owns documents, their embeddings and their persistence.

    Two states: Uninitialized (no snapshot yet) and Ready. initialize()
    is the only transition and cannot be undone.
    """

    def __init__(self, catalog: CatalogBackend, dimension: int = DEFAULT_DIMENSIONS):
        """
        Initialize with injected dependencies.

        Args:
            catalog: Durable storage backend (injected, not created here)
            dimension: Length of every embedding in this store
        """
        if dimension <= 0:
            raise InvalidArgument(f"dimension must be positive, got {dimension}")
        self._catalog = catalog
        self._dimension = dimension
        self._write_lock = threading.Lock()
        self._snapshot: StoreSnapshot | None = None

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def is_ready(self) -> bool:
        return self._snapshot is not None

    def _ready(self) -> StoreSnapshot:
        snapshot = self._snapshot
        if snapshot is None:
            raise NotInitialized()
        return snapshot

    def validate_embedding(self, embedding: np.ndarray) -> np.ndarray:
        """Return a private float32 copy of `embedding`, or raise InvalidArgument."""
        try:
            vector = np.array(embedding, dtype=np.float32)
        except (TypeError, ValueError) as e:
            raise InvalidArgument(f"Embedding is not a numeric vector: {e}") from e

        if vector.shape != (self._dimension,):
            raise InvalidArgument(
                f"Embedding must have shape ({self._dimension},), got {vector.shape}"
            )
        if not np.all(np.isfinite(vector)):
            raise InvalidArgument("Embedding contains NaN or infinite values")
        return vector

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    def initialize(self) -> None:
        """
        Load the persisted catalog. Calling it again once Ready is a no-op.

        Raises PersistenceFailed (and stays Uninitialized) if the catalog
        cannot be read or does not describe a valid store.
        """
        with self._write_lock:
            if self._snapshot is not None:
                return

            documents: list[Document] = []
            vectors: list[np.ndarray] = []
            seen: set[str] = set()
            for document, embedding in self._catalog.load():
                if document.id in seen:
                    raise PersistenceFailed(f"Catalog lists document {document.id} twice")
                vector = np.asarray(embedding, dtype=np.float32)
                if vector.shape != (self._dimension,):
                    raise PersistenceFailed(
                        f"Document {document.id} has a {vector.shape} embedding, "
                        f"store dimension is {self._dimension}"
                    )
                seen.add(document.id)
                documents.append(document)
                vectors.append(vector)

            self._snapshot = StoreSnapshot.build(documents, vectors, self._dimension)

        logger.info("Document store ready with %d documents", len(documents))

    # -----------------------------------------------------------------------
    # Mutations (serialized, durable before publication)
    # -----------------------------------------------------------------------

    def add(self, document: Document, embedding: np.ndarray) -> None:
        """Insert a new document and its embedding."""
        with self._write_lock:
            current = self._ready()
            vector = self.validate_embedding(embedding)
            if document.id in current:
                raise DuplicateId(document.id)

            updated = current.with_added(document, vector)
            self._catalog.append(document, vector)
            self._snapshot = updated

        logger.debug("Document added: %s (%s)", document.id, document.title)

    def remove(self, document_id: str) -> None:
        """Delete a document together with its embedding."""
        with self._write_lock:
            current = self._ready()
            if document_id not in current:
                raise NotFound(document_id)

            updated = current.without(document_id)
            self._catalog.delete(document_id)
            self._snapshot = updated

        logger.debug("Document removed: %s", document_id)

    def compact(self) -> None:
        """Rewrite the persisted catalog from the live set."""
        with self._write_lock:
            current = self._ready()
            self._catalog.rewrite(current.entries())

        logger.info("Catalog compacted to %d documents", len(current))

    # -----------------------------------------------------------------------
    # Reads (lock-free, one snapshot each)
    # -----------------------------------------------------------------------

    def snapshot(self) -> StoreSnapshot:
        """Current immutable state, for the query engine."""
        return self._ready()

    def all(self) -> list[Document]:
        """All documents in insertion order (a copy)."""
        return list(self._ready().documents)

    def count(self) -> int:
        return len(self._ready())

    def get(self, document_id: str) -> Document:
        snapshot = self._ready()
        row = snapshot.positions.get(document_id)
        if row is None:
            raise NotFound(document_id)
        return snapshot.documents[row]

    def find_by_tag(self, tag: str) -> list[Document]:
        """Documents carrying exactly `tag`, in insertion order."""
        return [doc for doc in self._ready().documents if tag in doc.tags]
