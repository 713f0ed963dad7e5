"""
On-disk record schemas for the document catalog.

These Pydantic models are the CONTRACT between the store and its
persisted representation. Anything read back from disk is validated
against them, so a corrupted or hand-edited catalog is detected at
load time instead of surfacing later as a confusing search failure.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

import numpy as np
from pydantic import BaseModel, Field, TypeAdapter

from personal_kb.retrieval.document import Document, DocumentType


class DocumentRecord(BaseModel):
    """Serialized form of a Document."""

    id: str = Field(min_length=1)
    title: str
    content: str
    document_type: DocumentType
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, str] = Field(default_factory=dict)
    created_at: datetime

    @classmethod
    def from_document(cls, document: Document) -> "DocumentRecord":
        return cls(
            id=document.id,
            title=document.title,
            content=document.content,
            document_type=document.document_type,
            tags=sorted(document.tags),
            metadata=dict(document.metadata),
            created_at=document.created_at,
        )

    def to_document(self) -> Document:
        return Document(
            id=self.id,
            title=self.title,
            content=self.content,
            document_type=self.document_type,
            tags=frozenset(self.tags),
            metadata=dict(self.metadata),
            created_at=self.created_at,
        )


class AddRecord(BaseModel):
    """A document and its embedding entering the catalog."""

    op: Literal["add"] = "add"
    document: DocumentRecord
    embedding: list[float] = Field(min_length=1)

    @classmethod
    def build(cls, document: Document, embedding: np.ndarray) -> "AddRecord":
        return cls(
            document=DocumentRecord.from_document(document),
            embedding=np.asarray(embedding, dtype=np.float32).tolist(),
        )

    def vector(self) -> np.ndarray:
        return np.asarray(self.embedding, dtype=np.float32)


class RemoveRecord(BaseModel):
    """A document leaving the catalog."""

    op: Literal["remove"] = "remove"
    id: str = Field(min_length=1)


CatalogEntry = Annotated[Union[AddRecord, RemoveRecord], Field(discriminator="op")]

# Parses one line of the append-only catalog log
LOG_ENTRY = TypeAdapter(CatalogEntry)
