"""
Knowledge module - the facade callers use.

- KnowledgeBase: ingestion and retrieval, sequencing embedding + storage
- get_knowledge_base(): factory wiring config -> provider -> catalog -> store
"""

from personal_kb.knowledge.base import (
    KnowledgeBase,
    KnowledgeStats,
    get_knowledge_base,
    new_document_id,
)

__all__ = [
    "KnowledgeBase",
    "KnowledgeStats",
    "get_knowledge_base",
    "new_document_id",
]
