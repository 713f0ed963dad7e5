"""
Error taxonomy for the knowledge store.

Every failure the core can produce is a KnowledgeStoreError subclass.
Errors are always raised to the immediate caller - the core never logs
and swallows them, and never retries on its own.
"""

from __future__ import annotations


class KnowledgeStoreError(Exception):
    """Base class for all knowledge store errors."""


class NotInitialized(KnowledgeStoreError):
    """An operation was attempted before initialize() completed."""

    def __init__(self, message: str = "Knowledge store is not initialized"):
        super().__init__(message)


class DuplicateId(KnowledgeStoreError):
    """A document with the same id already exists in the store."""

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document already exists: {document_id}")


class NotFound(KnowledgeStoreError, KeyError):
    """No live document has the requested id."""

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class EmbeddingFailed(KnowledgeStoreError):
    """The embedding provider could not produce a usable vector."""


class InvalidArgument(KnowledgeStoreError, ValueError):
    """A caller-supplied argument violates the operation's contract."""


class PersistenceFailed(KnowledgeStoreError):
    """The durable catalog could not be read or written."""


# initialize() reports load failures under this name
NotPersistable = PersistenceFailed


class UnsupportedFormat(KnowledgeStoreError):
    """A document source cannot extract plain text from this file."""
