"""
personal_kb - a local semantic knowledge store.

Documents are stored with a fixed-dimension embedding and retrieved by
exact cosine similarity, with snippet-annotated ranked results.

USAGE:
------
from personal_kb import DocumentStore, InMemoryCatalog, HashingEmbeddings, KnowledgeBase

kb = KnowledgeBase(DocumentStore(InMemoryCatalog()), HashingEmbeddings())
kb.initialize()
doc_id = kb.add_note("Swift Notes", "Swift is a powerful programming language")
results = kb.search("Swift", limit=5)
"""

from personal_kb.retrieval import (
    Document,
    DocumentType,
    SearchResult,
    DocumentStore,
    SimilarityQueryEngine,
    JsonlCatalog,
    SqliteCatalog,
    InMemoryCatalog,
    get_catalog,
)
from personal_kb.embeddings import (
    HashingEmbeddings,
    OpenAIEmbeddings,
    get_embedding_provider,
)
from personal_kb.knowledge import KnowledgeBase, KnowledgeStats, get_knowledge_base
from personal_kb.config import KnowledgeStoreConfig
from personal_kb.core import (
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

__version__ = "0.1.0"

__all__ = [
    # Model
    "Document",
    "DocumentType",
    "SearchResult",
    # Store + query
    "DocumentStore",
    "SimilarityQueryEngine",
    "JsonlCatalog",
    "SqliteCatalog",
    "InMemoryCatalog",
    "get_catalog",
    # Embeddings
    "HashingEmbeddings",
    "OpenAIEmbeddings",
    "get_embedding_provider",
    # Facade
    "KnowledgeBase",
    "KnowledgeStats",
    "get_knowledge_base",
    "KnowledgeStoreConfig",
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
