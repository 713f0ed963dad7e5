"""
Core module - shared protocols and errors for the entire package.

USAGE:
------
from personal_kb.core import EmbeddingProvider, NotFound

class MyEmbeddings:
    '''Implements EmbeddingProvider protocol.'''
    ...
"""

from personal_kb.core.errors import (
    KnowledgeStoreError,
    NotInitialized,
    DuplicateId,
    NotFound,
    EmbeddingFailed,
    InvalidArgument,
    PersistenceFailed,
    NotPersistable,
    UnsupportedFormat,
)
from personal_kb.core.protocols import (
    EmbeddingProvider,
    CatalogBackend,
)

__all__ = [
    # Protocols
    "EmbeddingProvider",
    "CatalogBackend",
    # Errors
    "KnowledgeStoreError",
    "NotInitialized",
    "DuplicateId",
    "NotFound",
    "EmbeddingFailed",
    "InvalidArgument",
    "PersistenceFailed",
    "NotPersistable",
    "UnsupportedFormat",
]
