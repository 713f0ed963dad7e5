"""
Knowledge store configuration.

Loads settings from environment variables (the CLI also reads a .env
file first). Ranking policy - the relevance threshold and the snippet
window - is NOT configurable; see personal_kb.retrieval.query.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from personal_kb.embeddings.providers import DEFAULT_DIMENSIONS

DEFAULT_STORE_PATH = Path.home() / ".personal_kb" / "catalog.jsonl"


@dataclass
class KnowledgeStoreConfig:
    """Configuration for the knowledge store.

    Environment Variables:
        KB_STORE_PATH: Catalog location (default: ~/.personal_kb/catalog.jsonl)
        KB_BACKEND: jsonl | sqlite | memory (default: jsonl)
        KB_EMBEDDING_PROVIDER: hash | openai (default: hash)
        KB_EMBEDDING_DIM: Embedding dimension D (default: 384)
        KB_OPENAI_MODEL: OpenAI embedding model (default: text-embedding-3-small)

    The dimension is fixed for the lifetime of a catalog. Opening an
    existing catalog with a different KB_EMBEDDING_DIM fails at load.
    """

    store_path: Path = DEFAULT_STORE_PATH
    backend: str = "jsonl"
    embedding_provider: str = "hash"
    embedding_dim: int = DEFAULT_DIMENSIONS
    openai_model: str = "text-embedding-3-small"

    @classmethod
    def from_env(cls) -> "KnowledgeStoreConfig":
        """Load config from environment variables."""
        raw_dim = os.environ.get("KB_EMBEDDING_DIM", str(DEFAULT_DIMENSIONS))
        try:
            embedding_dim = int(raw_dim)
        except ValueError as e:
            raise ValueError(f"KB_EMBEDDING_DIM must be an integer, got {raw_dim!r}") from e

        return cls(
            store_path=Path(
                os.environ.get("KB_STORE_PATH") or DEFAULT_STORE_PATH
            ).expanduser(),
            backend=os.environ.get("KB_BACKEND", "jsonl").lower(),
            embedding_provider=os.environ.get("KB_EMBEDDING_PROVIDER", "hash").lower(),
            embedding_dim=embedding_dim,
            openai_model=os.environ.get("KB_OPENAI_MODEL", "text-embedding-3-small"),
        )


# Global config singleton
_config: KnowledgeStoreConfig | None = None


def get_config() -> KnowledgeStoreConfig:
    """Get the global store config (lazy-loaded from env)."""
    global _config
    if _config is None:
        _config = KnowledgeStoreConfig.from_env()
    return _config


def reset_config() -> None:
    """Reset config (useful for testing)."""
    global _config
    _config = None
