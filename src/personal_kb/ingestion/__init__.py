"""
Ingestion module - turn files into plain text for the knowledge base.
"""

from personal_kb.ingestion.text_source import (
    ProcessedDocument,
    detect_document_type,
    load_text_file,
    preprocess_text,
    extract_keywords,
    generate_summary,
)

__all__ = [
    "ProcessedDocument",
    "detect_document_type",
    "load_text_file",
    "preprocess_text",
    "extract_keywords",
    "generate_summary",
]
