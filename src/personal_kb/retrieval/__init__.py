"""
Retrieval module - document storage and similarity search.

This module provides:
- Document, DocumentType, SearchResult: the data model
- JsonlCatalog, SqliteCatalog, InMemoryCatalog: persistence backends
- DocumentStore: the authoritative in-memory collection
- SimilarityQueryEngine: cosine ranking with snippets

ARCHITECTURE:
-------------
1. Protocol defines the contract (in core.protocols)
2. Multiple backend implementations (JSONL log, SQLite, in-memory)
3. Factory function for instantiation
4. Test doubles for fast unit tests
"""

# Document model
from personal_kb.retrieval.document import Document, DocumentType, SearchResult

# Persistence
from personal_kb.retrieval.catalog import (
    JsonlCatalog,
    SqliteCatalog,
    InMemoryCatalog,
    get_catalog,
)

# Store and query engine
from personal_kb.retrieval.store import DocumentStore, StoreSnapshot
from personal_kb.retrieval.query import (
    RELEVANCE_THRESHOLD,
    SNIPPET_CONTEXT,
    SNIPPET_LENGTH,
    SimilarityQueryEngine,
    cosine_similarity,
)

__all__ = [
    # Model
    "Document",
    "DocumentType",
    "SearchResult",
    # Catalogs
    "JsonlCatalog",
    "SqliteCatalog",
    "InMemoryCatalog",
    "get_catalog",
    # Store
    "DocumentStore",
    "StoreSnapshot",
    # Query
    "RELEVANCE_THRESHOLD",
    "SNIPPET_CONTEXT",
    "SNIPPET_LENGTH",
    "SimilarityQueryEngine",
    "cosine_similarity",
]
