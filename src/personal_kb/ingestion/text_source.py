"""
Plain-text document source.

Turns a file on disk into a ProcessedDocument (title, content, type,
metadata) the knowledge base can ingest. Only formats that ARE plain
text are handled here: text, markdown and source code. PDF, Word,
RTF and HTML need real parsers and are rejected with UnsupportedFormat.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from personal_kb.core.errors import UnsupportedFormat
from personal_kb.retrieval.document import DocumentType

TEXT_EXTENSIONS = {"txt", "text"}
MARKDOWN_EXTENSIONS = {"md", "markdown"}
CODE_EXTENSIONS = {"py", "js", "ts", "java", "swift", "cpp", "c", "go", "rs", "rb", "php"}
RICH_EXTENSIONS = {"pdf", "docx", "doc", "rtf", "html", "htm"}

STOP_WORDS = frozenset(
    "the and or but in on at to for of with by is are was were be been being "
    "have has had do does did will would could should may might must can "
    "this that these those a an".split()
)

_BOILERPLATE = [
    re.compile(r"© \d{4}.*?All rights reserved\.?", re.IGNORECASE),
    re.compile(r"Terms of Service"),
    re.compile(r"Privacy Policy"),
    re.compile(r"Cookie Policy"),
]


@dataclass
class ProcessedDocument:
    """Plain text extracted from a source, ready for ingestion."""

    title: str
    content: str
    document_type: DocumentType
    source: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    def keywords(self, limit: int = 20) -> list[str]:
        return extract_keywords(self.content, limit=limit)

    def summary(self, max_length: int = 200) -> str:
        return generate_summary(self.content, max_length=max_length)


# ---------------------------------------------------------------------------
# FILE LOADING
# ---------------------------------------------------------------------------


def detect_document_type(path: Path) -> DocumentType:
    """Document type from the file extension; unknown extensions are text."""
    ext = path.suffix.lower().lstrip(".")
    if ext in RICH_EXTENSIONS:
        raise UnsupportedFormat(f"Cannot extract plain text from .{ext} files: {path}")
    if ext in MARKDOWN_EXTENSIONS:
        return DocumentType.MARKDOWN
    if ext in CODE_EXTENSIONS:
        return DocumentType.CODE
    return DocumentType.TEXT


def extract_title(path: Path, content: str, document_type: DocumentType) -> str:
    """First-line H1 for markdown, otherwise the file name without extension."""
    if document_type is DocumentType.MARKDOWN:
        first_line = content.split("\n", 1)[0]
        if first_line.startswith("# "):
            heading = first_line[2:].strip()
            if heading:
                return heading
    return path.stem


def load_text_file(path: Path | str, preprocess: bool = False) -> ProcessedDocument:
    """
    Read a text, markdown or source file.

    Args:
        path: File to read (UTF-8)
        preprocess: Collapse whitespace and strip boilerplate lines

    Raises:
        UnsupportedFormat: rich-format or non-UTF-8 file
        OSError: the file cannot be read
    """
    path = Path(path)
    document_type = detect_document_type(path)

    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise UnsupportedFormat(f"{path} is not UTF-8 text") from e

    stat = path.stat()
    metadata = {
        "file_name": path.name,
        "file_size": str(stat.st_size),
        "modified_at": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
    }
    if document_type is DocumentType.CODE:
        metadata["language"] = path.suffix.lower().lstrip(".")

    title = extract_title(path, content, document_type)
    if preprocess:
        content = preprocess_text(content)

    return ProcessedDocument(
        title=title,
        content=content,
        document_type=document_type,
        source=str(path),
        metadata=metadata,
    )


# ---------------------------------------------------------------------------
# TEXT PROCESSING
# ---------------------------------------------------------------------------


def preprocess_text(text: str) -> str:
    """Collapse whitespace and remove common web boilerplate."""
    cleaned = re.sub(r"\s+", " ", text).strip()
    for pattern in _BOILERPLATE:
        cleaned = pattern.sub("", cleaned)
    return re.sub(r"\s{2,}", " ", cleaned).strip()


def extract_keywords(text: str, limit: int = 20) -> list[str]:
    """Most frequent words longer than two characters, stop words excluded."""
    words = [
        w for w in text.lower().split()
        if len(w) > 2 and w not in STOP_WORDS
    ]
    return [word for word, _ in Counter(words).most_common(limit)]


def generate_summary(text: str, max_length: int = 200) -> str:
    """Leading sentences of `text` that fit in `max_length` characters."""
    sentences = [s.strip() for s in text.split(".") if s.strip()]
    if not sentences:
        return text

    summary = ""
    for sentence in sentences:
        if len(summary) + len(sentence) + 1 > max_length:
            break
        summary += sentence + ". "
    return summary.strip()
