"""Tests for ingestion, re-ingestion and deletion."""
import threading
import time

import pytest

from hybrid_retrieval.core.cancellation import CancellationToken
from hybrid_retrieval.core.errors import CollaboratorError, RequestCancelledError, ValidationError
from hybrid_retrieval.core.models.document import Document
from hybrid_retrieval.core.services.ingest_service import IngestService, KeyedLock
from hybrid_retrieval.core.services.keyword_service import KeywordSearchService
from hybrid_retrieval.infrastructure.database.sql_store import SqlLexicalStore
from hybrid_retrieval.infrastructure.vector_stores.memory_store import InMemoryVectorStore

from conftest import DIMENSIONS, FailingEmbedder, SlowEmbedder

LONG_DOC = "\n\n".join(
    f"Section {i} explains eviction strategy number {i}. " + "Detail sentence. " * 20
    for i in range(4)
)


class FailingUpsertStore(InMemoryVectorStore):
    def upsert(self, records):
        raise ConnectionError("vector index rejected batch")


def _store_ids(store, document_id):
    return set(store.find_chunk_ids(document_id))


class TestIngest:
    def test_creates_rows_postings_and_vectors(self, ingest_service, store, vector_store):
        response = ingest_service.ingest(
            Document(id="doc-1", content=LONG_DOC, title="Eviction", category="cache")
        )

        assert response.chunk_count > 1
        assert response.chunk_ids == [f"doc-1-chunk-{i}" for i in range(response.chunk_count)]
        assert not response.replaced
        assert _store_ids(store, "doc-1") == set(response.chunk_ids)
        assert vector_store.ids() == set(response.chunk_ids)
        assert store.corpus_stats().total_chunks == response.chunk_count

        row = store.get_chunk("doc-1-chunk-0")
        assert row["category"] == "cache"
        assert row["word_count"] == len(row["content"].split())
        assert store.count_postings("doc-1-chunk-0") > 0

    def test_vector_metadata(self, ingest_service, vector_store, embedder):
        ingest_service.ingest(Document(id="d", content="short text body", category="misc"))
        [match] = vector_store.query(embedder.embed("short text body"), top_k=1)
        assert match.id == "d-chunk-0"
        assert match.metadata["content"] == "short text body"
        assert match.metadata["category"] == "misc"
        assert match.metadata["parent_id"] == "d"
        assert "title" not in match.metadata

    def test_single_batched_upsert(self, embedder, keyword_service):
        calls = []

        class CountingStore(InMemoryVectorStore):
            def upsert(self, records):
                calls.append(len(records))
                super().upsert(records)

        service = IngestService(embedder, CountingStore(DIMENSIONS), keyword_service)
        response = service.ingest(Document(id="d", content=LONG_DOC))
        assert calls == [response.chunk_count]

    def test_timings(self, ingest_service):
        timings = ingest_service.ingest(Document(id="d", content=LONG_DOC)).timings
        assert timings.total_ms >= timings.upsert_ms >= 0

    @pytest.mark.parametrize("document", [
        None,
        Document(id="", content="text"),
        Document(id="   ", content="text"),
        Document(id="d", content=""),
        Document(id="d", content="  \n "),
    ])
    def test_validation(self, ingest_service, embedder, document):
        with pytest.raises(ValidationError):
            ingest_service.ingest(document)
        assert embedder.calls == 0


class TestReingest:
    def test_replaces_previous_chunks(self, ingest_service, search_service, store, vector_store):
        first = ingest_service.ingest(Document(id="doc-1", content=LONG_DOC))
        assert first.chunk_count > 1

        second = ingest_service.ingest(
            Document(id="doc-1", content="Zebra migration patterns across the savanna.")
        )

        assert second.replaced
        assert second.chunk_ids == ["doc-1-chunk-0"]
        assert _store_ids(store, "doc-1") == {"doc-1-chunk-0"}
        assert vector_store.ids() == {"doc-1-chunk-0"}

        results = search_service.search("eviction strategy", top_k=10).results
        assert all("eviction" not in r.content.lower() for r in results)
        assert all(r.keyword_score is None for r in results)

    def test_idempotent(self, ingest_service, store, vector_store):
        doc = Document(id="d", content=LONG_DOC)
        a = ingest_service.ingest(doc)
        b = ingest_service.ingest(doc)
        assert a.chunk_ids == b.chunk_ids
        assert store.count() == (1, a.chunk_count)
        assert vector_store.describe().vector_count == a.chunk_count

    def test_concurrent_same_id(self, ingest_service, store, vector_store):
        docs = [Document(id="same", content=f"version {i} " + LONG_DOC) for i in range(4)]
        threads = [threading.Thread(target=ingest_service.ingest, args=(d,)) for d in docs]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        ids = _store_ids(store, "same")
        assert ids == vector_store.ids()
        assert len({store.get_chunk(i)["content"].split()[1] for i in ids if i.endswith("-0")}) == 1

    @pytest.mark.parametrize("database", ["memory", "file"])
    def test_concurrent_documents_share_vocabulary(self, tmp_path, embedder, database):
        url = (
            "sqlite:///:memory:"
            if database == "memory"
            else f"sqlite:///{tmp_path / 'kb.db'}"
        )
        lexical = SqlLexicalStore(database_url=url)
        vectors = InMemoryVectorStore(DIMENSIONS)
        service = IngestService(embedder, vectors, KeywordSearchService(lexical))
        docs = [
            Document(id=f"doc-{i}", content="shared cache eviction vocabulary")
            for i in range(8)
        ]
        errors = []

        def run(doc):
            try:
                service.ingest(doc)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=run, args=(d,)) for d in docs]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert lexical.document_frequency("eviction") == len(docs)
        assert lexical.document_frequency("vocabulary") == len(docs)
        assert lexical.corpus_stats().total_chunks == len(docs)
        assert len(vectors.ids()) == len(docs)
        service.close()
        lexical.close()

class TestDelete:
    def test_removes_everywhere(self, ingest_service, search_service, store, vector_store, corpus):
        ingest_service.ingest_many(corpus)
        removed = ingest_service.delete("eviction")

        assert removed == 1
        assert _store_ids(store, "eviction") == set()
        assert not any(i.startswith("eviction") for i in vector_store.ids())
        results = search_service.search("eviction LRU", top_k=10).results
        assert all(r.parent_id != "eviction" for r in results)

    def test_delete_missing_is_noop(self, ingest_service):
        assert ingest_service.delete("ghost") == 0
        assert ingest_service.delete("ghost") == 0

    def test_delete_by_chunk_id(self, ingest_service, store, vector_store):
        ingest_service.ingest(Document(id="d", content=LONG_DOC))
        assert ingest_service.delete("d-chunk-0") == 1
        assert "d-chunk-0" not in vector_store.ids()
        assert store.get_chunk("d-chunk-0") is None

    def test_delete_by_chunk_id_waits_for_parent_lock(self, ingest_service, store):
        ingest_service.ingest(Document(id="d", content=LONG_DOC))
        removed = []
        worker = threading.Thread(
            target=lambda: removed.append(ingest_service.delete("d-chunk-0"))
        )

        with ingest_service._locks.hold("d"):
            worker.start()
            worker.join(0.1)
            assert worker.is_alive()
            assert store.get_chunk("d-chunk-0") is not None

        worker.join(2)
        assert removed == [1]
        assert store.get_chunk("d-chunk-0") is None

    def test_validation(self, ingest_service):
        with pytest.raises(ValidationError):
            ingest_service.delete("")


class TestRollback:
    def test_embedding_failure_leaves_document_absent(self, vector_store, keyword_service, store):
        service = IngestService(FailingEmbedder(), vector_store, keyword_service)
        with pytest.raises(CollaboratorError) as exc:
            service.ingest(Document(id="d", content=LONG_DOC))

        assert exc.value.collaborator == "embedder"
        assert _store_ids(store, "d") == set()
        assert vector_store.ids() == set()

    def test_upsert_failure_leaves_document_absent(self, embedder, keyword_service, store):
        service = IngestService(embedder, FailingUpsertStore(DIMENSIONS), keyword_service)
        with pytest.raises(CollaboratorError) as exc:
            service.ingest(Document(id="d", content=LONG_DOC))

        assert exc.value.collaborator == "vector_store"
        assert isinstance(exc.value.__cause__, ConnectionError)
        assert _store_ids(store, "d") == set()

    def test_cancellation_rolls_back(self, ingest_service, store, vector_store):
        token = CancellationToken()

        original = ingest_service._keyword.index_chunk

        def cancel_after_first(chunk_id, content):
            token.cancel()
            return original(chunk_id, content)

        ingest_service._keyword.index_chunk = cancel_after_first
        with pytest.raises(RequestCancelledError):
            ingest_service.ingest(Document(id="d", content=LONG_DOC), cancel_token=token)

        assert _store_ids(store, "d") == set()
        assert vector_store.ids() == set()

    def test_failure_restores_corpus_statistics(self, ingest_service, vector_store,
                                                keyword_service, store):
        ingest_service.ingest(Document(id="kept", content="cache eviction basics"))
        before = store.corpus_stats()

        service = IngestService(FailingEmbedder(), vector_store, keyword_service)
        with pytest.raises(CollaboratorError):
            service.ingest(Document(id="d", content=LONG_DOC))

        after = store.corpus_stats()
        assert after.total_chunks == before.total_chunks == 1
        assert after.avg_chunk_length == pytest.approx(before.avg_chunk_length)
        assert store.document_frequency("eviction") == 1
        assert store.document_frequency("section") == 0

    def test_deadline_bounds_slow_embedder(self, vector_store, keyword_service, store):
        service = IngestService(SlowEmbedder(), vector_store, keyword_service)
        started = time.perf_counter()
        with pytest.raises(RequestCancelledError) as exc:
            service.ingest(Document(id="d", content=LONG_DOC), timeout=0.2)

        assert time.perf_counter() - started < 1.0
        assert exc.value.stage == "embedding"
        assert _store_ids(store, "d") == set()
        assert store.corpus_stats().total_chunks == 0
        service.close()


class TestDirectoryAndStats:
    def test_ingest_directory(self, ingest_service, tmp_path):
        docs = tmp_path / "docs"
        docs.mkdir()
        (docs / "caching.md").write_text("Caching notes about hot keys.", encoding="utf-8")
        (docs / "eviction_policy.txt").write_text(LONG_DOC, encoding="utf-8")
        (docs / "image.bin").write_bytes(b"\x00\x01")
        (docs / "empty.txt").write_text("   ", encoding="utf-8")

        responses = ingest_service.ingest_directory(str(docs))

        assert [r.document_id for r in responses] == ["caching", "eviction_policy"]

    def test_missing_directory(self, ingest_service, tmp_path):
        assert ingest_service.ingest_directory(str(tmp_path / "nope")) == []

    def test_stats(self, ingest_service, corpus):
        ingest_service.ingest_many(corpus)
        ingest_service.ingest(Document(id="long", content=LONG_DOC))
        stats = ingest_service.stats()

        assert stats.document_count == 4
        assert stats.chunk_count == stats.vector_count
        assert stats.dimensions == DIMENSIONS
        assert stats.avg_chunk_length > 0


class TestKeyedLock:
    def test_entries_released(self):
        lock = KeyedLock()
        with lock.hold("a"):
            with lock.hold("b"):
                pass
        assert lock._locks == {}


class TestLifecycle:
    def test_close_shuts_down_own_pool(self, embedder, vector_store, keyword_service):
        service = IngestService(embedder, vector_store, keyword_service)
        service.close()
        with pytest.raises(RuntimeError):
            service.ingest(Document(id="d", content="short text body"))
