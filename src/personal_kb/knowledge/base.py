"""
Knowledge base facade - the API the rest of the application talks to.

Sequences embedding generation with store mutation so callers can
never create a document without its embedding:

    add_document: check Ready -> embed content -> build Document -> store.add
    search:       check Ready -> embed query   -> query engine

Dependencies are INJECTED (store, embedding provider, tracer); there is
no process-wide instance.
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping

import numpy as np

from personal_kb.config import KnowledgeStoreConfig
from personal_kb.config import get_config as get_store_config
from personal_kb.core.errors import EmbeddingFailed, InvalidArgument
from personal_kb.core.protocols import EmbeddingProvider
from personal_kb.embeddings.providers import get_embedding_provider
from personal_kb.ingestion.text_source import ProcessedDocument, load_text_file
from personal_kb.observability import get_config as get_tracing_config
from personal_kb.observability import (
    KB_DOCUMENT_COUNT,
    KB_DOCUMENT_ID,
    KB_EMBEDDING_DIMENSIONS,
    KB_EMBEDDING_PROVIDER,
    KB_SEARCH_RESULT_COUNT,
    KB_SEARCH_TOP_SCORE,
    TracerProtocol,
    document_attributes,
    get_tracer,
    kb_span,
    search_attributes,
)
from personal_kb.retrieval.catalog import get_catalog
from personal_kb.retrieval.document import Document, DocumentType, SearchResult
from personal_kb.retrieval.query import SimilarityQueryEngine, validate_limit
from personal_kb.retrieval.store import DocumentStore

logger = logging.getLogger(__name__)


def new_document_id() -> str:
    return str(uuid.uuid4())


def _document_type(value: DocumentType | str) -> DocumentType:
    try:
        return DocumentType(value)
    except ValueError as e:
        raise InvalidArgument(f"Unknown document type: {value!r}") from e


@dataclass
class KnowledgeStats:
    """Document counts, in total and per type and tag."""

    total: int
    by_type: dict[str, int] = field(default_factory=dict)
    by_tag: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"total": self.total, "by_type": dict(self.by_type), "by_tag": dict(self.by_tag)}


class KnowledgeBase:
    """
    Ingestion and retrieval over a DocumentStore.

    Every operation except initialize() requires the store to be Ready
    and raises NotInitialized otherwise.
    """

    def __init__(
        self,
        store: DocumentStore,
        embeddings: EmbeddingProvider,
        tracer: TracerProtocol | None = None,
    ):
        """
        Initialize with injected dependencies.

        Args:
            store: Document store (owns documents and persistence)
            embeddings: Embedding provider producing store-sized vectors
            tracer: Span factory (global tracer if not provided)
        """
        self._store = store
        self._embeddings = embeddings
        self._engine = SimilarityQueryEngine(store)
        self._tracer = tracer or get_tracer()

    @property
    def store(self) -> DocumentStore:
        return self._store

    def initialize(self) -> None:
        """Load persisted documents. Idempotent."""
        with kb_span(self._tracer, "kb.initialize") as span:
            self._store.initialize()
            span.set_attribute(KB_DOCUMENT_COUNT, self._store.count())

    # -----------------------------------------------------------------------
    # Embedding
    # -----------------------------------------------------------------------

    def _embed(self, text: str) -> np.ndarray:
        """Embed `text`, turning every provider failure into EmbeddingFailed."""
        try:
            raw = self._embeddings.embed(text)
        except Exception as e:
            raise EmbeddingFailed(
                f"{type(self._embeddings).__name__} failed to embed text: {e}"
            ) from e

        try:
            return self._store.validate_embedding(raw)
        except InvalidArgument as e:
            raise EmbeddingFailed(f"Embedding provider returned an unusable vector: {e}") from e

    def _embedding_attributes(self) -> dict:
        return {
            KB_EMBEDDING_PROVIDER: type(self._embeddings).__name__,
            KB_EMBEDDING_DIMENSIONS: self._store.dimension,
        }

    # -----------------------------------------------------------------------
    # Ingestion
    # -----------------------------------------------------------------------

    def add_document(
        self,
        title: str,
        content: str,
        document_type: DocumentType | str = DocumentType.TEXT,
        tags: Iterable[str] | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> str:
        """
        Embed and store a new document.

        Returns:
            The new document's id. When this returns, the document and its
            embedding are durably stored.

        Raises:
            NotInitialized, EmbeddingFailed, PersistenceFailed
        """
        document_type = _document_type(document_type)
        attrs = document_attributes(
            "add_document",
            document_type=document_type.value,
            content_length=len(content),
        )
        attrs.update(self._embedding_attributes())

        with kb_span(self._tracer, "kb.add_document", attrs) as span:
            self._store.snapshot()  # NotInitialized before any embedding call
            embedding = self._embed(content)
            document = Document.create(
                id=new_document_id(),
                title=title,
                content=content,
                document_type=document_type,
                tags=tags,
                metadata=metadata,
            )
            self._store.add(document, embedding)
            span.set_attribute(KB_DOCUMENT_ID, document.id)
            span.set_attribute(KB_DOCUMENT_COUNT, self._store.count())

        logger.info("Added %s document %r as %s", document.document_type.value, title, document.id)
        return document.id

    def add_note(self, title: str, content: str, tags: Iterable[str] | None = None) -> str:
        return self.add_document(title, content, DocumentType.NOTE, tags=tags)

    def add_code_snippet(
        self,
        title: str,
        code: str,
        language: str,
        tags: Iterable[str] | None = None,
    ) -> str:
        return self.add_document(
            title, code, DocumentType.CODE, tags=tags, metadata={"language": language}
        )

    def add_processed_document(
        self,
        processed: ProcessedDocument,
        tags: Iterable[str] | None = None,
    ) -> str:
        """Ingest the output of a document text source."""
        metadata = dict(processed.metadata)
        if processed.source:
            metadata.setdefault("source", processed.source)
        return self.add_document(
            processed.title,
            processed.content,
            processed.document_type,
            tags=tags,
            metadata=metadata,
        )

    def add_text_file(
        self,
        path: Path | str,
        tags: Iterable[str] | None = None,
        preprocess: bool = False,
    ) -> str:
        """Read a text, markdown or source file and ingest it."""
        return self.add_processed_document(load_text_file(path, preprocess=preprocess), tags=tags)

    # -----------------------------------------------------------------------
    # Retrieval
    # -----------------------------------------------------------------------

    def search(self, query: str, limit: int = 10) -> list[SearchResult]:
        """
        Rank stored documents against `query`.

        Raises:
            NotInitialized, InvalidArgument (limit <= 0), EmbeddingFailed
        """
        captured = query if get_tracing_config().capture_content else None
        attrs = search_attributes(limit, query=captured)
        attrs.update(self._embedding_attributes())
        with kb_span(self._tracer, "kb.search", attrs) as span:
            self._store.snapshot()
            validate_limit(limit)
            query_vector = self._embed(query)
            results = self._engine.search(query_vector, query, limit)
            span.set_attribute(KB_SEARCH_RESULT_COUNT, len(results))
            if results:
                span.set_attribute(KB_SEARCH_TOP_SCORE, results[0].score)

        return results

    def remove_document(self, document_id: str) -> None:
        """Remove a document and its embedding. Raises NotFound if absent."""
        with kb_span(self._tracer, "kb.remove_document", {KB_DOCUMENT_ID: document_id}) as span:
            self._store.remove(document_id)
            span.set_attribute(KB_DOCUMENT_COUNT, self._store.count())

        logger.info("Removed document %s", document_id)

    def update_document(
        self,
        document_id: str,
        title: str | None = None,
        content: str | None = None,
        document_type: DocumentType | str | None = None,
        tags: Iterable[str] | None = None,
        metadata: Mapping[str, str] | None = None,
    ) -> Document:
        """
        Replace a document wholesale, keeping its id and created_at.

        Fields left as None keep their current value. The new content is
        embedded before anything changes, so NotFound or EmbeddingFailed
        leave the store as it was. The replacement then goes through
        remove + add and moves to the end of insertion order.

        Returns:
            The stored replacement.

        Raises:
            NotInitialized, NotFound, InvalidArgument, EmbeddingFailed,
            PersistenceFailed
        """
        current = self._store.get(document_id)
        replacement = Document.create(
            id=current.id,
            title=current.title if title is None else title,
            content=current.content if content is None else content,
            document_type=(
                current.document_type if document_type is None else _document_type(document_type)
            ),
            tags=current.tags if tags is None else tags,
            metadata=current.metadata if metadata is None else metadata,
            created_at=current.created_at,
        )

        attrs = document_attributes(
            "update_document",
            document_type=replacement.document_type.value,
            content_length=len(replacement.content),
        )
        attrs[KB_DOCUMENT_ID] = document_id
        attrs.update(self._embedding_attributes())

        with kb_span(self._tracer, "kb.update_document", attrs) as span:
            embedding = self._embed(replacement.content)
            self._store.remove(document_id)
            self._store.add(replacement, embedding)
            span.set_attribute(KB_DOCUMENT_COUNT, self._store.count())

        logger.info("Updated document %s", document_id)
        return replacement

    def list_documents(self, document_type: DocumentType | str | None = None) -> list[Document]:
        """All documents in insertion order, optionally only one type."""
        documents = self._store.all()
        if document_type is None:
            return documents
        wanted = _document_type(document_type)
        return [doc for doc in documents if doc.document_type is wanted]

    def stats(self) -> KnowledgeStats:
        """Counts over the current document set."""
        documents = self._store.all()
        return KnowledgeStats(
            total=len(documents),
            by_type=dict(Counter(doc.document_type.value for doc in documents)),
            by_tag=dict(Counter(tag for doc in documents for tag in doc.tags)),
        )

    def count(self) -> int:
        return self._store.count()

    def get_document(self, document_id: str) -> Document:
        return self._store.get(document_id)

    def find_by_tag(self, tag: str) -> list[Document]:
        """Exact tag match, independent of similarity search."""
        return self._store.find_by_tag(tag)

    def compact(self) -> None:
        self._store.compact()


# ---------------------------------------------------------------------------
# FACTORY FUNCTION
# ---------------------------------------------------------------------------


def get_knowledge_base(
    config: KnowledgeStoreConfig | None = None,
    embeddings: EmbeddingProvider | None = None,
) -> KnowledgeBase:
    """
    Wire a KnowledgeBase from configuration.

    The returned instance is NOT initialized; call initialize() once
    before using it.

    Args:
        config: Store configuration (loaded from env if not provided)
        embeddings: Embedding provider (built from config if not provided)
    """
    config = config or get_store_config()

    if embeddings is None:
        embeddings = get_embedding_provider(
            config.embedding_provider,
            dimensions=config.embedding_dim,
            model=config.openai_model,
        )
    if embeddings.dimensions != config.embedding_dim:
        raise InvalidArgument(
            f"Embedding provider produces {embeddings.dimensions}-d vectors, "
            f"store is configured for {config.embedding_dim}"
        )

    catalog = get_catalog(config.backend, config.store_path)
    store = DocumentStore(catalog, dimension=config.embedding_dim)
    return KnowledgeBase(store, embeddings)
