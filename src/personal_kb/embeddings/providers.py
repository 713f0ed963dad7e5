"""
Embeddings Module - Single Responsibility: Generate text embeddings.

It has ONE job: convert text to fixed-length vectors.
No storage logic, no document handling.

The store only relies on the EmbeddingProvider contract
(personal_kb.core.protocols), so providers are freely swappable.
"""

from __future__ import annotations

import hashlib
import os

import numpy as np
from openai import OpenAI

from personal_kb.core.protocols import EmbeddingProvider

DEFAULT_DIMENSIONS = 384

_TOKEN_EDGES = ".,;:!?()[]{}\"'`"


def tokenize(text: str) -> list[str]:
    """Lowercase, split on whitespace, strip punctuation-ish edges."""
    out: list[str] = []
    for raw in text.lower().split():
        tok = raw.strip(_TOKEN_EDGES)
        if tok:
            out.append(tok)
    return out


class OpenAIEmbeddings:
    """
    OpenAI-based embedding provider.

    Uses text-embedding-3-small by default. The text-embedding-3 family
    can shorten its output, so we ask for exactly `dimensions` values.
    """

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        dimensions: int = DEFAULT_DIMENSIONS,
        api_key: str | None = None,
    ):
        self.model = model
        self._dimensions = dimensions
        self._client = OpenAI(api_key=api_key or os.environ.get("OPENAI_API_KEY"))

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def _request_kwargs(self) -> dict:
        kwargs = {"model": self.model}
        if self.model.startswith("text-embedding-3"):
            kwargs["dimensions"] = self._dimensions
        return kwargs

    def embed(self, text: str) -> np.ndarray:
        """Generate embedding for a single text."""
        response = self._client.embeddings.create(input=text, **self._request_kwargs())
        return np.array(response.data[0].embedding, dtype=np.float32)

    def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Generate embeddings for multiple texts efficiently."""
        if not texts:
            return []

        response = self._client.embeddings.create(input=texts, **self._request_kwargs())
        return [
            np.array(item.embedding, dtype=np.float32)
            for item in response.data
        ]


class HashingEmbeddings:
    """
    Deterministic bag-of-words embeddings via feature hashing.

    Each token is hashed (blake2b, so results are stable across processes
    unlike the builtin hash()) into one of `dimensions` buckets; the counts
    are L2-normalized. Texts sharing words get positive similarity, texts
    sharing none score 0.

    Not semantically meaningful - for tests and offline use.
    """

    def __init__(self, dimensions: int = DEFAULT_DIMENSIONS):
        if dimensions <= 0:
            raise ValueError(f"dimensions must be positive, got {dimensions}")
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def _bucket(self, token: str) -> int:
        digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
        return int.from_bytes(digest, "little") % self._dimensions

    def embed(self, text: str) -> np.ndarray:
        """
        Hash the tokens of `text` into a normalized count vector.

        Raises ValueError when `text` has no tokens (empty, whitespace or
        punctuation only) instead of returning an all-zero vector.
        """
        tokens = tokenize(text)
        if not tokens:
            raise ValueError("Cannot embed text without any tokens")

        vector = np.zeros(self._dimensions, dtype=np.float32)
        for token in tokens:
            vector[self._bucket(token)] += 1.0
        return vector / np.linalg.norm(vector)

    def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Generate embeddings for multiple texts."""
        return [self.embed(text) for text in texts]


_PROVIDERS = ("hash", "openai")


def get_embedding_provider(
    name: str = "hash",
    dimensions: int = DEFAULT_DIMENSIONS,
    model: str | None = None,
) -> EmbeddingProvider:
    """
    Factory function to get the appropriate embedding provider.

    Args:
        name: "hash" for HashingEmbeddings, "openai" for OpenAIEmbeddings
        dimensions: Vector length every embedding must have
        model: OpenAI model name (ignored for "hash")
    """
    name = name.strip().lower()
    if name == "hash":
        return HashingEmbeddings(dimensions=dimensions)
    if name == "openai":
        if model:
            return OpenAIEmbeddings(model=model, dimensions=dimensions)
        return OpenAIEmbeddings(dimensions=dimensions)
    raise ValueError(f"Unknown embedding provider {name!r}, expected one of {_PROVIDERS}")
