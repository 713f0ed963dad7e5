"""
Document model for the knowledge store.

Single responsibility: Define the structure of stored documents
and of the results returned by similarity search.

Embeddings are NOT part of Document - they live in
the DocumentStore next to it and are only seen by the query engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping


class DocumentType(str, Enum):
    """Kind of source a document came from. Informational only."""

    TEXT = "text"
    PDF = "pdf"
    DOCX = "docx"
    MARKDOWN = "markdown"
    WEBPAGE = "webpage"
    NOTE = "note"
    CODE = "code"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_tags(tags: Iterable[str] | str | None) -> frozenset[str]:
    # A bare string is one tag, not a sequence of characters
    if isinstance(tags, str):
        return frozenset((tags,))
    return frozenset(tags or ())


@dataclass(frozen=True)
class Document:
    """
    A unit of stored knowledge.

    Documents are immutable. The only way to "change" one is to
    remove it and add a replacement. `metadata` is a read-only copy,
    so a document handed out by the store cannot be edited in place.
    """

    id: str
    title: str
    content: str
    document_type: DocumentType = DocumentType.TEXT
    tags: frozenset[str] = field(default_factory=frozenset)
    metadata: Mapping[str, str] = field(default_factory=dict, hash=False)
    created_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @classmethod
    def create(
        cls,
        id: str,
        title: str,
        content: str,
        document_type: DocumentType | str = DocumentType.TEXT,
        tags: Iterable[str] | str | None = None,
        metadata: Mapping[str, str] | None = None,
        created_at: datetime | None = None,
    ) -> "Document":
        """Build a document, normalizing tags and metadata."""
        return cls(
            id=id,
            title=title,
            content=content,
            document_type=DocumentType(document_type),
            tags=_normalize_tags(tags),
            metadata={str(k): str(v) for k, v in (metadata or {}).items()},
            created_at=created_at or _utcnow(),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "document_type": self.document_type.value,
            "tags": sorted(self.tags),
            "metadata": dict(self.metadata),
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class SearchResult:
    """A document ranked against a query."""

    document: Document
    score: float  # cosine similarity
    snippet: str
    matched_terms: list[str]

    def to_dict(self) -> dict:
        return {
            "document": self.document.to_dict(),
            "score": self.score,
            "snippet": self.snippet,
            "matched_terms": list(self.matched_terms),
        }
