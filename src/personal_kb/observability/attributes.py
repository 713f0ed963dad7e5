"""
Semantic Conventions for Span Attributes

Attribute keys for knowledge store spans, all under the `kb.` namespace.
"""

# ---------------------------------------------------------------------------
# KNOWLEDGE BASE NAMESPACE
# ---------------------------------------------------------------------------

KB_OPERATION = "kb.operation"  # "add_document", "search", "remove_document"

# Document level
KB_DOCUMENT_ID = "kb.document.id"
KB_DOCUMENT_TYPE = "kb.document.type"  # "note", "code", ...
KB_DOCUMENT_CONTENT_LENGTH = "kb.document.content_length"
KB_DOCUMENT_COUNT = "kb.document.count"  # store size after the operation

# Search level
KB_SEARCH_QUERY = "kb.search.query"  # only with KB_TRACE_CONTENT=true
KB_SEARCH_LIMIT = "kb.search.limit"
KB_SEARCH_RESULT_COUNT = "kb.search.result_count"
KB_SEARCH_TOP_SCORE = "kb.search.top_score"

# Embedding level
KB_EMBEDDING_PROVIDER = "kb.embedding.provider"  # class name
KB_EMBEDDING_DIMENSIONS = "kb.embedding.dimensions"


# ---------------------------------------------------------------------------
# HELPER FUNCTIONS
# ---------------------------------------------------------------------------


def document_attributes(
    operation: str,
    document_type: str | None = None,
    content_length: int | None = None,
) -> dict:
    """Create attributes dict for an ingestion span."""
    attrs = {KB_OPERATION: operation}
    if document_type is not None:
        attrs[KB_DOCUMENT_TYPE] = document_type
    if content_length is not None:
        attrs[KB_DOCUMENT_CONTENT_LENGTH] = content_length
    return attrs


def search_attributes(
    limit: int,
    query: str | None = None,
) -> dict:
    """Create attributes dict for a search span.

    Pass `query` only when content capture is enabled.
    """
    attrs = {
        KB_OPERATION: "search",
        KB_SEARCH_LIMIT: limit,
    }
    if query is not None:
        attrs[KB_SEARCH_QUERY] = query
    return attrs
