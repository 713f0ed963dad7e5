"""
Embeddings module - text embedding generation.

1. Protocol (EmbeddingProvider) defines the interface
2. Remote implementation (OpenAIEmbeddings)
3. Deterministic offline implementation (HashingEmbeddings)
4. Factory function (get_embedding_provider)
"""

from personal_kb.embeddings.providers import (
    DEFAULT_DIMENSIONS,
    EmbeddingProvider,
    OpenAIEmbeddings,
    HashingEmbeddings,
    get_embedding_provider,
    tokenize,
)

__all__ = [
    "DEFAULT_DIMENSIONS",
    "EmbeddingProvider",
    "OpenAIEmbeddings",
    "HashingEmbeddings",
    "get_embedding_provider",
    "tokenize",
]
