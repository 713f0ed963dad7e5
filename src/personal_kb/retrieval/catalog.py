"""
Catalog backends - durable storage for documents and embeddings.

Pattern: Protocol -> Production impls -> Test double -> Factory

1. JsonlCatalog - append-only log file (default)
2. SqliteCatalog - embedded SQLite database
3. InMemoryCatalog - no I/O (testing)
4. get_catalog() - factory function

Every mutating call is durable when it returns or raises
PersistenceFailed. Backends only store and replay; id uniqueness
and dimension checks are the DocumentStore's job.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator

import numpy as np
from pydantic import ValidationError

from personal_kb.core.errors import PersistenceFailed
from personal_kb.core.protocols import CatalogBackend
from personal_kb.retrieval.document import Document
from personal_kb.schemas.catalog import LOG_ENTRY, AddRecord, DocumentRecord, RemoveRecord

logger = logging.getLogger(__name__)


def _fsync_dir(path: Path) -> None:
    """Make a rename or file creation inside `path` durable."""
    if os.name != "posix":
        return
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


# ---------------------------------------------------------------------------
# JSONL LOG (Production default)
# ---------------------------------------------------------------------------


class JsonlCatalog:
    """
    Append-only log of add/remove records, replayed on load.

    One JSON object per line:
        {"op": "add", "document": {...}, "embedding": [...]}
        {"op": "remove", "id": "..."}

    Appends are fsync'ed before returning. A crash mid-append can only
    leave a torn LAST line (no trailing newline); load() drops it and
    truncates the file. Anything else that fails to replay is corruption.
    """

    def __init__(self, path: Path | str):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[tuple[Document, np.ndarray]]:
        if not self._path.exists():
            return []

        try:
            data = self._path.read_bytes()
        except OSError as e:
            raise PersistenceFailed(f"Could not read catalog {self._path}: {e}") from e

        lines = data.split(b"\n")
        tail = lines.pop()  # b"" when the file ends with a newline
        if tail:
            logger.warning(
                "Discarding torn record at end of %s (%d bytes)", self._path, len(tail)
            )
            self._truncate(len(data) - len(tail))

        live: dict[str, tuple[Document, np.ndarray]] = {}
        for lineno, raw in enumerate(lines, start=1):
            if not raw.strip():
                continue
            try:
                entry = LOG_ENTRY.validate_json(raw)
            except ValidationError as e:
                raise PersistenceFailed(
                    f"Corrupt record at {self._path}:{lineno}: {e}"
                ) from e

            if isinstance(entry, AddRecord):
                doc_id = entry.document.id
                if doc_id in live:
                    raise PersistenceFailed(
                        f"Duplicate add of {doc_id} at {self._path}:{lineno}"
                    )
                live[doc_id] = (entry.document.to_document(), entry.vector())
            else:
                if entry.id not in live:
                    raise PersistenceFailed(
                        f"Remove of unknown document {entry.id} at {self._path}:{lineno}"
                    )
                del live[entry.id]

        return list(live.values())

    def append(self, document: Document, embedding: np.ndarray) -> None:
        self._write(AddRecord.build(document, embedding))

    def delete(self, document_id: str) -> None:
        self._write(RemoveRecord(id=document_id))

    def rewrite(self, entries: Iterable[tuple[Document, np.ndarray]]) -> None:
        """Write a compacted log to a temp file and atomically swap it in."""
        tmp = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "wb") as f:
                for document, embedding in entries:
                    f.write(self._encode(AddRecord.build(document, embedding)))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self._path)
            _fsync_dir(self._path.parent)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise PersistenceFailed(f"Could not rewrite catalog {self._path}: {e}") from e

    @staticmethod
    def _encode(record: AddRecord | RemoveRecord) -> bytes:
        return (record.model_dump_json() + "\n").encode("utf-8")

    def _write(self, record: AddRecord | RemoveRecord) -> None:
        line = self._encode(record)
        created = not self._path.exists()
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "ab") as f:
                offset = f.tell()
                try:
                    f.write(line)
                    f.flush()
                    os.fsync(f.fileno())
                except OSError:
                    # Never leave a partial line for the next append to extend
                    f.truncate(offset)
                    raise
            if created:
                _fsync_dir(self._path.parent)
        except OSError as e:
            raise PersistenceFailed(f"Could not write catalog {self._path}: {e}") from e

    def _truncate(self, size: int) -> None:
        try:
            with open(self._path, "r+b") as f:
                f.truncate(size)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise PersistenceFailed(f"Could not repair catalog {self._path}: {e}") from e


# ---------------------------------------------------------------------------
# SQLITE (Production alternative)
# ---------------------------------------------------------------------------


class SqliteCatalog:
    """
    SQLite-backed catalog.

    Table schema:
      documents(
        seq INTEGER PRIMARY KEY AUTOINCREMENT,   -- insertion order
        id TEXT NOT NULL UNIQUE,
        record_json TEXT NOT NULL,               -- DocumentRecord
        embedding BLOB NOT NULL                  -- float32, native order
      )

    Each mutation is its own transaction.
    """

    def __init__(self, db_path: Path | str):
        self._path = Path(db_path)

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._path))
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=FULL;")
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS documents (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                record_json TEXT NOT NULL,
                embedding BLOB NOT NULL
            )
            """
        )
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
            try:
                with conn:
                    yield conn
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise PersistenceFailed(f"SQLite catalog {self._path} failed: {e}") from e

    @staticmethod
    def _row(document: Document, embedding: np.ndarray) -> tuple[str, str, bytes]:
        record = DocumentRecord.from_document(document)
        blob = np.asarray(embedding, dtype=np.float32).tobytes()
        return (document.id, record.model_dump_json(), blob)

    def load(self) -> list[tuple[Document, np.ndarray]]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT id, record_json, embedding FROM documents ORDER BY seq"
            ).fetchall()

        out: list[tuple[Document, np.ndarray]] = []
        for doc_id, record_json, blob in rows:
            try:
                record = DocumentRecord.model_validate_json(record_json)
            except ValidationError as e:
                raise PersistenceFailed(f"Corrupt document row {doc_id}: {e}") from e
            if record.id != doc_id or not blob or len(blob) % 4:
                raise PersistenceFailed(f"Corrupt document row {doc_id}")
            vector = np.frombuffer(blob, dtype=np.float32).copy()
            out.append((record.to_document(), vector))
        return out

    def append(self, document: Document, embedding: np.ndarray) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO documents(id, record_json, embedding) VALUES (?, ?, ?)",
                self._row(document, embedding),
            )

    def delete(self, document_id: str) -> None:
        with self._transaction() as conn:
            cur = conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            if cur.rowcount != 1:
                raise PersistenceFailed(
                    f"Catalog {self._path} has no row for document {document_id}"
                )

    def rewrite(self, entries: Iterable[tuple[Document, np.ndarray]]) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM documents")
            conn.executemany(
                "INSERT INTO documents(id, record_json, embedding) VALUES (?, ?, ?)",
                [self._row(doc, emb) for doc, emb in entries],
            )


# ---------------------------------------------------------------------------
# IN-MEMORY (Testing)
# ---------------------------------------------------------------------------


class InMemoryCatalog:
    """Test catalog - no file I/O.

    Survives DocumentStore re-creation as long as the same instance is
    passed in, which is enough to simulate a process restart in unit tests.
    Set `fail_writes` to make every mutation raise PersistenceFailed.
    """

    def __init__(self, entries: Iterable[tuple[Document, np.ndarray]] | None = None):
        self._entries: dict[str, tuple[Document, np.ndarray]] = {}
        for document, embedding in entries or ():
            self._entries[document.id] = (document, np.array(embedding, dtype=np.float32))
        self.fail_writes = False
        self.write_count = 0

    @property
    def ids(self) -> list[str]:
        """Persisted ids in insertion order (for test assertions)."""
        return list(self._entries)

    def _check_writable(self) -> None:
        if self.fail_writes:
            raise PersistenceFailed("In-memory catalog is configured to fail writes")

    def load(self) -> list[tuple[Document, np.ndarray]]:
        return [(doc, emb.copy()) for doc, emb in self._entries.values()]

    def append(self, document: Document, embedding: np.ndarray) -> None:
        self._check_writable()
        self._entries[document.id] = (document, np.array(embedding, dtype=np.float32))
        self.write_count += 1

    def delete(self, document_id: str) -> None:
        self._check_writable()
        if document_id not in self._entries:
            raise PersistenceFailed(f"In-memory catalog has no document {document_id}")
        del self._entries[document_id]
        self.write_count += 1

    def rewrite(self, entries: Iterable[tuple[Document, np.ndarray]]) -> None:
        self._check_writable()
        self._entries = {
            doc.id: (doc, np.array(emb, dtype=np.float32)) for doc, emb in entries
        }
        self.write_count += 1


# ---------------------------------------------------------------------------
# FACTORY FUNCTION
# ---------------------------------------------------------------------------

BACKENDS = ("jsonl", "sqlite", "memory")


def get_catalog(backend: str = "jsonl", path: Path | str | None = None) -> CatalogBackend:
    """
    Factory function for catalog backends.

    Args:
        backend: "jsonl", "sqlite" or "memory"
        path: Location of the catalog file (ignored for "memory")

    Returns:
        CatalogBackend implementation.
    """
    backend = backend.strip().lower()
    if backend == "memory":
        return InMemoryCatalog()
    if backend not in BACKENDS:
        raise ValueError(f"Unknown catalog backend {backend!r}, expected one of {BACKENDS}")
    if path is None:
        raise ValueError(f"The {backend} catalog needs a path")
    if backend == "sqlite":
        return SqliteCatalog(path)
    return JsonlCatalog(path)
