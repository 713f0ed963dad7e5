"""
Unit Tests for the KnowledgeBase facade

These tests verify:
1. add/search/remove sequencing against a real DocumentStore
2. Embedding failures never leave a partial document behind
3. Restart idempotence on a JSONL catalog
4. Factory wiring from KnowledgeStoreConfig

PATTERNS:
---------
1. HashingEmbeddings for realistic end-to-end ranking, no network
2. MagicMock embedders to force failures
3. NoOpTracer injected so no global tracing state is touched
"""

from unittest.mock import MagicMock

import numpy as np
import pytest

from personal_kb.config import KnowledgeStoreConfig
from personal_kb.core.errors import (
    EmbeddingFailed,
    InvalidArgument,
    NotFound,
    NotInitialized,
    PersistenceFailed,
)
from personal_kb.embeddings.providers import HashingEmbeddings
from personal_kb.ingestion.text_source import ProcessedDocument
from personal_kb.knowledge.base import KnowledgeBase, get_knowledge_base
from personal_kb.observability import NoOpTracer, reset_config
from personal_kb.retrieval.catalog import InMemoryCatalog, JsonlCatalog
from personal_kb.retrieval.document import DocumentType
from personal_kb.retrieval.query import RELEVANCE_THRESHOLD
from personal_kb.retrieval.store import DocumentStore


# ---------------------------------------------------------------------------
# FIXTURES
# ---------------------------------------------------------------------------


@pytest.fixture
def catalog():
    return InMemoryCatalog()


@pytest.fixture
def kb(catalog):
    kb = KnowledgeBase(DocumentStore(catalog), HashingEmbeddings(), tracer=NoOpTracer())
    kb.initialize()
    return kb


@pytest.fixture
def mock_embeddings():
    """Embedder returning a fixed 3-d vector; tests override as needed."""
    embedder = MagicMock()
    embedder.dimensions = 3
    embedder.embed.return_value = np.array([1.0, 0.0, 0.0], dtype=np.float32)
    return embedder


@pytest.fixture
def mock_kb(catalog, mock_embeddings):
    kb = KnowledgeBase(DocumentStore(catalog, dimension=3), mock_embeddings, tracer=NoOpTracer())
    kb.initialize()
    return kb


SWIFT = "Swift is a powerful programming language"
IOS = "iOS development with Swift"


# ---------------------------------------------------------------------------
# INGESTION AND SEARCH
# ---------------------------------------------------------------------------


class TestSwiftScenario:
    """Two overlapping documents, then a removal."""

    def test_note_and_text_then_removal(self, kb):
        a = kb.add_document("Swift Notes", SWIFT, "note", tags=["swift"])
        b = kb.add_document("iOS Dev", IOS, "text", tags=["ios", "swift"])

        results = kb.search("Swift", limit=10)

        assert {r.document.id for r in results} == {a, b}
        assert all(r.score > RELEVANCE_THRESHOLD for r in results)
        again = kb.search("Swift", limit=10)
        assert [(r.document.id, r.score) for r in again] == [
            (r.document.id, r.score) for r in results
        ]
        assert kb.get_document(a).document_type is DocumentType.NOTE
        assert kb.get_document(b).tags == frozenset({"ios", "swift"})

        kb.remove_document(a)

        assert [r.document.id for r in kb.search("Swift", limit=10)] == [b]
        assert kb.count() == 1

    def test_both_documents_match(self, kb):
        a = kb.add_document("Swift Notes", SWIFT)
        b = kb.add_document("iOS", IOS)

        results = kb.search("Swift", limit=5)

        assert {r.document.id for r in results} == {a, b}
        assert all(r.score > RELEVANCE_THRESHOLD for r in results)
        assert all("swift" in r.matched_terms for r in results)
        assert kb.count() == 2

    def test_results_sorted_by_score(self, kb):
        kb.add_document("Swift Notes", SWIFT)
        kb.add_document("iOS", IOS)

        scores = [r.score for r in kb.search("Swift", limit=5)]

        assert scores == sorted(scores, reverse=True)

    def test_removed_document_disappears(self, kb):
        a = kb.add_document("Swift Notes", SWIFT)
        b = kb.add_document("iOS", IOS)

        kb.remove_document(a)

        assert [r.document.id for r in kb.search("Swift", limit=5)] == [b]
        assert kb.count() == 1
        with pytest.raises(NotFound):
            kb.get_document(a)


class TestAddDocument:

    def test_returns_fresh_unique_ids(self, kb):
        ids = {kb.add_document(f"Doc {i}", f"content number {i}") for i in range(5)}

        assert len(ids) == 5
        assert [d.id for d in kb.list_documents()] == [
            d.id for d in kb.store.all()
        ]

    def test_fields_are_stored(self, kb):
        doc_id = kb.add_document(
            "Design",
            "markdown body",
            "markdown",
            tags=["design", "design"],
            metadata={"author": "me"},
        )

        doc = kb.get_document(doc_id)
        assert doc.title == "Design"
        assert doc.document_type is DocumentType.MARKDOWN
        assert doc.tags == frozenset({"design"})
        assert doc.metadata == {"author": "me"}
        assert doc.created_at.tzinfo is not None

    def test_unknown_document_type_rejected(self, kb):
        with pytest.raises(InvalidArgument):
            kb.add_document("x", "y", "spreadsheet")
        assert kb.count() == 0

    def test_add_note(self, kb):
        doc = kb.get_document(kb.add_note("Idea", "try feature hashing", tags=["ideas"]))

        assert doc.document_type is DocumentType.NOTE
        assert doc.tags == frozenset({"ideas"})

    def test_add_code_snippet_records_language(self, kb):
        doc = kb.get_document(kb.add_code_snippet("Hello", 'print("hi")', "python"))

        assert doc.document_type is DocumentType.CODE
        assert doc.metadata["language"] == "python"
        assert doc.content == 'print("hi")'

    def test_add_processed_document_keeps_source(self, kb):
        processed = ProcessedDocument(
            title="Readme",
            content="project readme text",
            document_type=DocumentType.MARKDOWN,
            source="/tmp/README.md",
            metadata={"file_name": "README.md"},
        )

        doc = kb.get_document(kb.add_processed_document(processed, tags=["docs"]))

        assert doc.metadata == {"file_name": "README.md", "source": "/tmp/README.md"}
        assert doc.tags == frozenset({"docs"})

    def test_single_string_tag(self, kb):
        doc_id = kb.add_note("Swift Notes", SWIFT, tags="swift")

        assert kb.get_document(doc_id).tags == frozenset({"swift"})
        assert [d.id for d in kb.find_by_tag("swift")] == [doc_id]

    def test_listed_documents_cannot_change_the_store(self, kb):
        doc_id = kb.add_code_snippet("Hello", 'print("hi")', "python")

        with pytest.raises(TypeError):
            kb.list_documents()[0].metadata["language"] = "ruby"

        assert kb.get_document(doc_id).metadata["language"] == "python"

    def test_listed_documents_are_hashable(self, kb):
        kb.add_note("One", "first note")
        kb.add_code_snippet("Two", "x = 1", "python")

        assert len(set(kb.list_documents())) == 2

    def test_add_text_file(self, kb, tmp_path):
        path = tmp_path / "guide.md"
        path.write_text("# Swift Guide\n\nClosures capture values.\n")

        doc = kb.get_document(kb.add_text_file(path, tags=["swift"]))

        assert doc.title == "Swift Guide"
        assert doc.document_type is DocumentType.MARKDOWN
        assert doc.metadata["source"] == str(path)
        assert kb.search("closures")[0].document.id == doc.id


class TestSearch:

    def test_every_document_finds_itself_first(self, kb):
        contents = [
            "rust ownership and borrowing rules",
            "python generators yield values lazily",
            "swift optionals unwrap safely",
            "go channels coordinate goroutines",
        ]
        ids = [kb.add_document(c.split()[0], c) for c in contents]

        for doc_id, content in zip(ids, contents):
            results = kb.search(content, limit=10)
            top = max(r.score for r in results)
            assert results[0].document.id == doc_id
            assert results[0].score == pytest.approx(1.0, abs=1e-5)
            assert top == results[0].score

    @pytest.mark.parametrize("limit", [1, 2, 3, 5, 7])
    def test_limit_is_an_upper_bound(self, kb, limit):
        for part in ["one", "two", "three", "four", "five"]:
            kb.add_document(part, f"python tutorial part {part}")

        results = kb.search("python", limit=limit)

        assert len(results) <= limit
        assert len(results) == min(limit, 5)

    @pytest.mark.parametrize("limit", [0, -3])
    def test_non_positive_limit_rejected_before_embedding(self, mock_kb, mock_embeddings, limit):
        with pytest.raises(InvalidArgument):
            mock_kb.search("anything", limit=limit)
        mock_embeddings.embed.assert_not_called()

    def test_unrelated_query_returns_nothing(self, kb):
        kb.add_document("Swift Notes", SWIFT)

        assert kb.search("haskell monads") == []

    def test_repeated_search_is_identical(self, kb):
        kb.add_document("Swift Notes", SWIFT)
        kb.add_document("iOS", IOS)

        first = [(r.document.id, r.score, r.snippet) for r in kb.search("swift language")]
        second = [(r.document.id, r.score, r.snippet) for r in kb.search("swift language")]

        assert first == second

    def test_find_by_tag_ignores_similarity(self, kb):
        tagged = kb.add_document("Unrelated", "completely different words", tags=["swift"])
        kb.add_document("Swift Notes", SWIFT)

        assert [d.id for d in kb.find_by_tag("swift")] == [tagged]


# ---------------------------------------------------------------------------
# UPDATES AND LISTING
# ---------------------------------------------------------------------------


RUST = "rust ownership and borrowing rules"


class TestUpdateDocument:

    def test_replaces_content_under_same_id(self, kb):
        doc_id = kb.add_note("Swift Notes", SWIFT, tags=["swift"])
        original = kb.get_document(doc_id)

        updated = kb.update_document(doc_id, content=RUST)

        assert updated.id == doc_id
        assert updated.created_at == original.created_at
        assert updated.title == "Swift Notes"
        assert updated.document_type is DocumentType.NOTE
        assert updated.tags == frozenset({"swift"})
        assert kb.get_document(doc_id) == updated
        assert kb.count() == 1
        np.testing.assert_allclose(
            kb.store.snapshot().embeddings[0], HashingEmbeddings().embed(RUST)
        )

    def test_only_given_fields_change(self, kb):
        doc_id = kb.add_code_snippet("Hello", 'print("hi")', "python", tags=["demo"])

        updated = kb.update_document(doc_id, title="Greeting", tags=["demo", "greeting"])

        assert updated.title == "Greeting"
        assert updated.content == 'print("hi")'
        assert updated.metadata == {"language": "python"}
        assert updated.tags == frozenset({"demo", "greeting"})

    def test_replacement_moves_to_end(self, kb):
        a = kb.add_note("A", "first note")
        b = kb.add_note("B", "second note")

        kb.update_document(a, title="A2")

        assert [d.id for d in kb.list_documents()] == [b, a]

    def test_survives_restart(self, tmp_path):
        path = tmp_path / "catalog.jsonl"
        kb = KnowledgeBase(DocumentStore(JsonlCatalog(path)), HashingEmbeddings(), tracer=NoOpTracer())
        kb.initialize()
        doc_id = kb.add_note("Swift Notes", SWIFT)
        kb.update_document(doc_id, content=RUST)

        reopened = KnowledgeBase(
            DocumentStore(JsonlCatalog(path)), HashingEmbeddings(), tracer=NoOpTracer()
        )
        reopened.initialize()

        assert reopened.count() == 1
        assert reopened.get_document(doc_id).content == RUST

    def test_embedding_failure_leaves_document(self, mock_kb, mock_embeddings, catalog):
        doc_id = mock_kb.add_document("t", "c", tags=["keep"])
        before = mock_kb.get_document(doc_id)
        mock_embeddings.embed.side_effect = RuntimeError("model offline")

        with pytest.raises(EmbeddingFailed):
            mock_kb.update_document(doc_id, content="new content")

        assert mock_kb.get_document(doc_id) == before
        assert catalog.ids == [doc_id]

    def test_unknown_id(self, mock_kb, mock_embeddings):
        with pytest.raises(NotFound):
            mock_kb.update_document("ghost", content="anything")
        mock_embeddings.embed.assert_not_called()

    def test_unknown_type_rejected_before_embedding(self, mock_kb, mock_embeddings):
        doc_id = mock_kb.add_document("t", "c")
        mock_embeddings.embed.reset_mock()

        with pytest.raises(InvalidArgument):
            mock_kb.update_document(doc_id, document_type="spreadsheet")
        mock_embeddings.embed.assert_not_called()
        assert mock_kb.get_document(doc_id).document_type is DocumentType.TEXT


class TestListingAndStats:

    def test_list_documents_by_type(self, kb):
        note = kb.add_note("Idea", "feature hashing")
        kb.add_code_snippet("Hello", 'print("hi")', "python")

        assert [d.id for d in kb.list_documents(document_type="note")] == [note]
        assert kb.list_documents(DocumentType.PDF) == []
        assert len(kb.list_documents()) == 2

    def test_unknown_type_filter_rejected(self, kb):
        with pytest.raises(InvalidArgument):
            kb.list_documents(document_type="spreadsheet")

    def test_stats(self, kb):
        kb.add_note("One", "first", tags=["swift", "ios"])
        kb.add_note("Two", "second", tags=["swift"])
        kb.add_code_snippet("Three", "x = 1", "python")

        stats = kb.stats()

        assert stats.total == 3
        assert stats.by_type == {"note": 2, "code": 1}
        assert stats.by_tag == {"swift": 2, "ios": 1}

    def test_stats_of_empty_store(self, kb):
        assert kb.stats().to_dict() == {"total": 0, "by_type": {}, "by_tag": {}}


# ---------------------------------------------------------------------------
# FAILURES
# ---------------------------------------------------------------------------


class TestNotInitialized:

    @pytest.fixture
    def cold_kb(self, mock_embeddings):
        return KnowledgeBase(
            DocumentStore(InMemoryCatalog(), dimension=3), mock_embeddings, tracer=NoOpTracer()
        )

    def test_add_fails_without_embedding(self, cold_kb, mock_embeddings):
        with pytest.raises(NotInitialized):
            cold_kb.add_document("t", "c")
        mock_embeddings.embed.assert_not_called()

    def test_search_fails_without_embedding(self, cold_kb, mock_embeddings):
        with pytest.raises(NotInitialized):
            cold_kb.search("query")
        mock_embeddings.embed.assert_not_called()

    def test_reads_fail(self, cold_kb):
        with pytest.raises(NotInitialized):
            cold_kb.list_documents()
        with pytest.raises(NotInitialized):
            cold_kb.count()
        with pytest.raises(NotInitialized):
            cold_kb.remove_document("x")


class TestEmbeddingFailures:

    def test_provider_exception_becomes_embedding_failed(self, mock_kb, mock_embeddings, catalog):
        mock_embeddings.embed.side_effect = RuntimeError("model offline")

        with pytest.raises(EmbeddingFailed, match="model offline"):
            mock_kb.add_document("t", "c")

        assert mock_kb.count() == 0
        assert catalog.ids == []

    def test_wrong_dimension_becomes_embedding_failed(self, mock_kb, mock_embeddings, catalog):
        mock_embeddings.embed.return_value = np.ones(5, dtype=np.float32)

        with pytest.raises(EmbeddingFailed):
            mock_kb.add_document("t", "c")
        assert catalog.ids == []

    def test_nan_vector_becomes_embedding_failed(self, mock_kb, mock_embeddings):
        mock_embeddings.embed.return_value = np.array([np.nan, 0.0, 0.0])

        with pytest.raises(EmbeddingFailed):
            mock_kb.add_document("t", "c")
        assert mock_kb.count() == 0

    def test_search_embedding_failure(self, mock_kb, mock_embeddings):
        mock_kb.add_document("t", "c")
        mock_embeddings.embed.side_effect = TimeoutError("slow")

        with pytest.raises(EmbeddingFailed):
            mock_kb.search("q")
        assert mock_kb.count() == 1

    def test_text_without_tokens_is_embedding_failure(self, kb):
        with pytest.raises(EmbeddingFailed, match="without any tokens"):
            kb.add_note("Blank", "  ...  ")
        assert kb.count() == 0

    def test_persistence_failure_propagates(self, mock_kb, catalog):
        catalog.fail_writes = True

        with pytest.raises(PersistenceFailed):
            mock_kb.add_document("t", "c")
        assert mock_kb.count() == 0


class TestTracing:

    def test_failed_add_is_recorded_on_span(self, catalog, mock_embeddings):
        tracer = MagicMock()
        span = tracer.start_span.return_value.__enter__.return_value
        kb = KnowledgeBase(DocumentStore(catalog, dimension=3), mock_embeddings, tracer=tracer)
        kb.initialize()
        mock_embeddings.embed.side_effect = RuntimeError("boom")

        with pytest.raises(EmbeddingFailed):
            kb.add_document("t", "c", "note")

        name = tracer.start_span.call_args_list[-1].args[0]
        attrs = tracer.start_span.call_args_list[-1].kwargs["attributes"]
        assert name == "kb.add_document"
        assert attrs["kb.document.type"] == "note"
        assert attrs["kb.embedding.dimensions"] == 3
        span.record_exception.assert_called_once()
        error = span.record_exception.call_args.args[0]
        assert isinstance(error, EmbeddingFailed)
        span.set_status.assert_called_with("error", str(error))

    def test_search_span_omits_query_by_default(self, catalog, mock_embeddings, monkeypatch):
        monkeypatch.delenv("KB_TRACE_CONTENT", raising=False)
        reset_config()
        tracer = MagicMock()
        kb = KnowledgeBase(DocumentStore(catalog, dimension=3), mock_embeddings, tracer=tracer)
        kb.initialize()

        kb.search("private thoughts", limit=3)
        reset_config()

        attrs = tracer.start_span.call_args.kwargs["attributes"]
        assert attrs["kb.search.limit"] == 3
        assert attrs["kb.embedding.dimensions"] == 3
        assert "kb.search.query" not in attrs


# ---------------------------------------------------------------------------
# PERSISTENCE
# ---------------------------------------------------------------------------


class TestRestart:

    def test_state_survives_restart(self, tmp_path):
        path = tmp_path / "catalog.jsonl"

        kb = KnowledgeBase(DocumentStore(JsonlCatalog(path)), HashingEmbeddings(), tracer=NoOpTracer())
        kb.initialize()
        a = kb.add_document("Swift Notes", SWIFT)
        b = kb.add_document("iOS", IOS)
        c = kb.add_note("Groceries", "milk eggs bread")
        kb.remove_document(c)
        before = [(r.document.id, r.score) for r in kb.search("Swift")]

        reopened = KnowledgeBase(
            DocumentStore(JsonlCatalog(path)), HashingEmbeddings(), tracer=NoOpTracer()
        )
        reopened.initialize()

        assert [d.id for d in reopened.list_documents()] == [a, b]
        assert [(r.document.id, r.score) for r in reopened.search("Swift")] == before

    def test_compact_keeps_live_documents(self, tmp_path):
        path = tmp_path / "catalog.jsonl"
        kb = KnowledgeBase(DocumentStore(JsonlCatalog(path)), HashingEmbeddings(), tracer=NoOpTracer())
        kb.initialize()
        keep = kb.add_note("Keep", "keep this")
        kb.remove_document(kb.add_note("Drop", "drop this"))

        kb.compact()

        assert len(path.read_text().splitlines()) == 1
        reopened = KnowledgeBase(
            DocumentStore(JsonlCatalog(path)), HashingEmbeddings(), tracer=NoOpTracer()
        )
        reopened.initialize()
        assert [d.id for d in reopened.list_documents()] == [keep]


# ---------------------------------------------------------------------------
# FACTORY
# ---------------------------------------------------------------------------


class TestGetKnowledgeBase:

    def test_wires_configured_backend(self, tmp_path):
        config = KnowledgeStoreConfig(store_path=tmp_path / "kb.db", backend="sqlite", embedding_dim=64)

        kb = get_knowledge_base(config)
        kb.initialize()
        kb.add_note("n", "hello world")

        assert kb.store.dimension == 64
        assert (tmp_path / "kb.db").exists()

    def test_returns_uninitialized_instance(self, tmp_path):
        kb = get_knowledge_base(KnowledgeStoreConfig(store_path=tmp_path / "c.jsonl"))

        assert not kb.store.is_ready

    def test_dimension_mismatch_rejected(self, tmp_path):
        config = KnowledgeStoreConfig(store_path=tmp_path / "c.jsonl", embedding_dim=128)

        with pytest.raises(InvalidArgument):
            get_knowledge_base(config, embeddings=HashingEmbeddings(dimensions=64))
