"""
Persisted record schemas.
"""

from personal_kb.schemas.catalog import (
    DocumentRecord,
    AddRecord,
    RemoveRecord,
    CatalogEntry,
    LOG_ENTRY,
)

__all__ = [
    "DocumentRecord",
    "AddRecord",
    "RemoveRecord",
    "CatalogEntry",
    "LOG_ENTRY",
]
