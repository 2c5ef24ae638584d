"""Ingest service - idempotent document indexing and cascading deletion."""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional, TypeVar

from ..cancellation import CancellationToken
from ..errors import (
    CollaboratorError,
    RequestCancelledError,
    RetrievalError,
    ValidationError,
)
from ..models.document import (
    Chunk,
    Document,
    IndexStats,
    IngestResponse,
    IngestTimings,
    VectorRecord,
)
from ..protocols.embedder import EmbedderProtocol
from ..protocols.vector_store import VectorStoreProtocol
from ..strategies.chunking import ParagraphChunker
from .keyword_service import KeywordSearchService

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)


class KeyedLock:
    """One mutex per key, released entries are dropped."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, list] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        entry[0].acquire()
        try:
            yield
        finally:
            entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]


class IngestService:
    """Service for indexing documents into the lexical store and vector index."""

    def __init__(
        self,
        embedder: EmbedderProtocol,
        vector_store: VectorStoreProtocol,
        keyword_service: KeywordSearchService,
        chunker: Optional[ParagraphChunker] = None,
        docs_path: str = "./docs",
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        """Initialize ingest service.

        Args:
            embedder: Embedding service.
            vector_store: Vector store.
            keyword_service: BM25 indexer; its store also holds the chunk rows.
            chunker: Chunking strategy.
            docs_path: Default folder for directory ingestion.
            executor: Pool that runs embedding and upsert calls so waits on them
                respect the request deadline. A pool created here is shut down
                by close().
        """
        self._embedder = embedder
        self._vector_store = vector_store
        self._keyword = keyword_service
        self._store = keyword_service.store
        self._chunker = chunker or ParagraphChunker()
        self._docs_path = Path(docs_path)
        self._locks = KeyedLock()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="ingest"
        )

        self._loader = None

    @property
    def loader(self):
        """Lazy load document loader."""
        if self._loader is None:
            from hybrid_retrieval.infrastructure.document_loaders import CompositeLoader

            self._loader = CompositeLoader()
        return self._loader

    @staticmethod
    def validate(document: Optional[Document]) -> None:
        if document is None:
            raise ValidationError("Document is required")
        if not isinstance(document.id, str) or not document.id.strip():
            raise ValidationError("Document id is required")
        if not isinstance(document.content, str) or not document.content.strip():
            raise ValidationError(f"Document content is required (id={document.id})")

    def ingest(
        self,
        document: Document,
        cancel_token: Optional[CancellationToken] = None,
        timeout: Optional[float] = None,
    ) -> IngestResponse:
        """Index one document, replacing any earlier version with the same id.

        Chunk rows, postings and embeddings are all produced before the single
        vector upsert. Any failure removes what was written for this document.

        Args:
            document: Document to index.
            cancel_token: Cooperative cancellation from the request boundary.
            timeout: Deadline in seconds, used when no token is given.

        Returns:
            Created chunk ids and stage timings.

        Raises:
            ValidationError: Missing id or content.
            CollaboratorError: A store, the embedder or the vector index failed.
            RequestCancelledError: Cancelled or deadline exceeded.
        """
        self.validate(document)
        token = cancel_token or CancellationToken(timeout)

        with self._locks.hold(document.id):
            timings = IngestTimings()
            started = time.perf_counter()

            token.check("dedup")
            existing = self._call(
                "lexical_store", lambda: self._store.find_chunk_ids(document.id)
            )
            if existing:
                logger.info(f"Replacing {document.id}: {len(existing)} existing chunks")
                self._delete_ids(existing)

            stage = time.perf_counter()
            chunks = self._chunker.chunk(document.content, document.id)
            timings.chunking_ms = _elapsed_ms(stage)

            written: list[str] = []
            indexed: list[Chunk] = []
            try:
                stage = time.perf_counter()
                for chunk in chunks:
                    token.check("indexing")
                    self._call(
                        "lexical_store", lambda: self._store.insert_chunk(chunk, document)
                    )
                    written.append(chunk.id)
                    self._call(
                        "lexical_store",
                        lambda: self._keyword.index_chunk(chunk.id, chunk.content),
                    )
                    indexed.append(chunk)
                timings.indexing_ms = _elapsed_ms(stage)

                token.check("embedding")
                stage = time.perf_counter()
                vectors = self._bounded(
                    "embedder",
                    lambda: self._embedder.embed_many([c.content for c in chunks]),
                    token,
                    "embedding",
                )
                timings.embedding_ms = _elapsed_ms(stage)

                token.check("upsert")
                stage = time.perf_counter()
                records = [
                    self._to_record(chunk, vector, document)
                    for chunk, vector in zip(chunks, vectors)
                ]
                self._bounded(
                    "vector_store",
                    lambda: self._vector_store.upsert(records),
                    token,
                    "upsert",
                )
                timings.upsert_ms = _elapsed_ms(stage)
            except RetrievalError:
                self._rollback(document.id, written, indexed)
                raise

            timings.total_ms = _elapsed_ms(started)

        logger.info(
            f"Ingested {document.id}: {len(chunks)} chunks ({timings.total_ms:.1f}ms)"
        )
        return IngestResponse(
            document_id=document.id,
            chunk_ids=[c.id for c in chunks],
            timings=timings,
            replaced=bool(existing),
        )

    def ingest_many(self, documents: list[Document]) -> list[IngestResponse]:
        """Ingest documents one after another; stops at the first failure."""
        responses = [self.ingest(doc) for doc in documents]
        logger.info(
            f"Bulk ingest complete: {len(responses)} documents, "
            f"{sum(r.chunk_count for r in responses)} chunks"
        )
        return responses

    def ingest_directory(self, path: Optional[str] = None) -> list[IngestResponse]:
        """Ingest every supported file in a folder.

        Args:
            path: Folder to scan. Defaults to the configured docs path.

        Returns:
            One response per ingested file.
        """
        docs_path = Path(path) if path else self._docs_path
        if not docs_path.exists():
            logger.error(f"Docs path not found: {docs_path}")
            return []

        responses = []
        for file_path in sorted(docs_path.iterdir()):
            if not self.loader.supports(file_path):
                continue

            document = self.loader.load_document(file_path)
            if document is None or not document.content.strip():
                logger.debug(f"Skip empty: {file_path.name}")
                continue

            responses.append(self.ingest(document))

        logger.info(f"Indexed {len(responses)} files from {docs_path}")
        return responses

    def delete(self, document_id: str) -> int:
        """Delete a document and all of its chunks.

        Args:
            document_id: Document or chunk id.

        Returns:
            Number of removed chunk rows. Zero when nothing matched.
        """
        if not isinstance(document_id, str) or not document_id.strip():
            raise ValidationError("Document id is required")

        with self._locks.hold(self._lock_key(document_id)):
            ids = self._call(
                "lexical_store", lambda: self._store.find_chunk_ids(document_id)
            )
            if not ids:
                logger.debug(f"Delete {document_id}: nothing to remove")
                return 0
            removed = self._delete_ids(ids)

        logger.info(f"Deleted {document_id}: {removed} chunks")
        return removed

    def stats(self) -> IndexStats:
        """Snapshot of store and vector index sizes."""
        documents, chunks = self._call("lexical_store", self._store.count)
        corpus = self._call("lexical_store", self._store.corpus_stats)
        description = self._call("vector_store", self._vector_store.describe)
        return IndexStats(
            document_count=documents,
            chunk_count=chunks,
            vector_count=description.vector_count,
            dimensions=description.dimensions,
            avg_chunk_length=corpus.avg_chunk_length,
        )

    def close(self) -> None:
        """Shut down the call pool if this service created it."""
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def _lock_key(self, document_id: str) -> str:
        # Chunk ids lock on their parent so they serialize with its ingest
        row = self._call("lexical_store", lambda: self._store.get_chunk(document_id))
        if row is not None and row.get("parent_id"):
            return row["parent_id"]
        return document_id

    def _delete_ids(self, ids: list[str]) -> int:
        self._call("vector_store", lambda: self._vector_store.delete_by_ids(ids))
        return self._call("lexical_store", lambda: self._store.delete_chunks(ids))

    def _rollback(
        self, document_id: str, written: list[str], indexed: list[Chunk]
    ) -> None:
        if not written:
            return
        logger.error(f"Ingest of {document_id} failed, rolling back {len(written)} chunks")
        for chunk in indexed:
            try:
                self._keyword.unindex_chunk(chunk.id, chunk.content)
            except Exception as e:
                logger.error(f"Rollback of statistics for {chunk.id} failed: {e}")
        try:
            self._vector_store.delete_by_ids(written)
        except Exception as e:
            logger.error(f"Rollback of vectors for {document_id} failed: {e}")
        try:
            self._store.delete_chunks(written)
        except Exception as e:
            logger.error(f"Rollback of rows for {document_id} failed: {e}")

    @staticmethod
    def _to_record(chunk: Chunk, vector: list[float], document: Document) -> VectorRecord:
        metadata = {
            "content": chunk.content,
            "parent_id": chunk.parent_id,
            "chunk_index": chunk.chunk_index,
        }
        for key in ("title", "source", "category"):
            value = getattr(document, key)
            if value is not None:
                metadata[key] = value
        return VectorRecord(id=chunk.id, values=list(vector), metadata=metadata)

    def _bounded(
        self,
        collaborator: str,
        fn: Callable[[], T],
        token: CancellationToken,
        stage: str,
    ) -> T:
        """Run a collaborator call on the pool, waiting no longer than the deadline."""
        future: Future = self._executor.submit(self._call, collaborator, fn)
        try:
            return future.result(timeout=token.remaining())
        except FutureTimeoutError:
            raise RequestCancelledError("Deadline exceeded", stage=stage) from None
        finally:
            future.cancel()

    @staticmethod
    def _call(collaborator: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except RetrievalError:
            raise
        except Exception as e:
            logger.error(f"{collaborator} call failed: {e}")
            raise CollaboratorError(collaborator, str(e)) from e
