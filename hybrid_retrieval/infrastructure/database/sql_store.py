"""
SQLAlchemy-backed lexical store.

Holds chunk rows, term postings and BM25 statistics. Each chunk's postings
and statistics are written in a single transaction.
"""

import logging
import threading
from contextlib import nullcontext
from typing import Optional

from sqlalchemy import create_engine, delete, distinct, event, func, insert, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from hybrid_retrieval.core.models.document import Chunk, CorpusStats, Document, Posting
from .schema import CORPUS_ROW_ID, doc_stats, documents, keywords, metadata, term_stats

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_store_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine suited to the lexical store.

    In-memory SQLite shares one connection across threads so concurrent
    searches see the same database. SQLite connections get foreign keys
    enabled so postings cascade with their chunk rows.
    """
    if database_url.startswith("sqlite") and (
        ":memory:" in database_url or database_url.rstrip("/") == "sqlite:"
    ):
        engine = create_engine(
            database_url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_engine(database_url, echo=echo, pool_pre_ping=True)

    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


class SqlLexicalStore:
    """Document rows, postings and corpus statistics in a relational database."""

    def __init__(
        self,
        database_url: str = "sqlite:///./hybrid_retrieval.db",
        echo: bool = False,
        engine: Optional[Engine] = None,
        create_schema: bool = True,
    ):
        """Initialize store.

        Args:
            database_url: SQLAlchemy database URL.
            echo: Log emitted SQL.
            engine: Prebuilt engine, overrides database_url.
            create_schema: Create missing tables on startup.
        """
        self._engine = engine or create_store_engine(database_url, echo=echo)
        # A StaticPool hands every thread the same DBAPI connection, so
        # transactions on it must not interleave.
        if isinstance(self._engine.pool, StaticPool):
            self._lock = threading.RLock()
        else:
            self._lock = nullcontext()
        if create_schema:
            self.init_schema()

    @property
    def engine(self) -> Engine:
        return self._engine

    def init_schema(self) -> None:
        """Create tables and seed the corpus statistics row."""
        with self._lock:
            metadata.create_all(self._engine)
            with self._engine.begin() as conn:
                exists = conn.execute(
                    select(doc_stats.c.id).where(doc_stats.c.id == CORPUS_ROW_ID)
                ).first()
                if exists is None:
                    conn.execute(
                        insert(doc_stats).values(
                            id=CORPUS_ROW_ID, total_documents=0, avg_doc_length=0.0
                        )
                    )
                    logger.info("Initialized lexical store schema")

    def _upsert(self, table):
        if self._engine.dialect.name == "postgresql":
            return postgresql.insert(table)
        return sqlite.insert(table)

    def insert_chunk(self, chunk: Chunk, document: Document) -> None:
        with self._lock, self._engine.begin() as conn:
            conn.execute(
                insert(documents).values(
                    id=chunk.id,
                    content=chunk.content,
                    title=document.title,
                    source=document.source,
                    category=document.category,
                    chunk_index=chunk.chunk_index,
                    parent_id=chunk.parent_id,
                    word_count=chunk.word_count,
                    token_count=0,
                )
            )

    def index_terms(
        self, chunk_id: str, term_frequencies: dict[str, int], length: int
    ) -> None:
        with self._lock, self._engine.begin() as conn:
            if term_frequencies:
                conn.execute(
                    insert(keywords),
                    [
                        {"document_id": chunk_id, "term": term, "term_frequency": tf}
                        for term, tf in term_frequencies.items()
                    ],
                )
                stmt = self._upsert(term_stats)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[term_stats.c.term],
                    set_={"document_frequency": term_stats.c.document_frequency + 1},
                )
                conn.execute(
                    stmt,
                    [{"term": t, "document_frequency": 1} for t in term_frequencies],
                )

            conn.execute(
                update(documents)
                .where(documents.c.id == chunk_id)
                .values(token_count=length)
            )
            # SET expressions read the pre-update row values
            conn.execute(
                update(doc_stats)
                .where(doc_stats.c.id == CORPUS_ROW_ID)
                .values(
                    avg_doc_length=(
                        doc_stats.c.avg_doc_length * doc_stats.c.total_documents + length
                    )
                    / (doc_stats.c.total_documents + 1),
                    total_documents=doc_stats.c.total_documents + 1,
                )
            )

    def unindex_terms(
        self, chunk_id: str, term_frequencies: dict[str, int], length: int
    ) -> None:
        """Reverse one index_terms call for a chunk that is being rolled back."""
        with self._lock, self._engine.begin() as conn:
            conn.execute(delete(keywords).where(keywords.c.document_id == chunk_id))
            if term_frequencies:
                terms = list(term_frequencies)
                conn.execute(
                    update(term_stats)
                    .where(term_stats.c.term.in_(terms))
                    .values(document_frequency=term_stats.c.document_frequency - 1)
                )
                conn.execute(
                    delete(term_stats).where(
                        term_stats.c.term.in_(terms),
                        term_stats.c.document_frequency <= 0,
                    )
                )

            row = conn.execute(
                select(doc_stats.c.total_documents, doc_stats.c.avg_doc_length).where(
                    doc_stats.c.id == CORPUS_ROW_ID
                )
            ).first()
            total = row[0] if row is not None else 0
            if total > 1:
                avg = (float(row[1]) * total - length) / (total - 1)
                values = {"total_documents": total - 1, "avg_doc_length": max(avg, 0.0)}
            else:
                values = {"total_documents": 0, "avg_doc_length": 0.0}
            conn.execute(
                update(doc_stats).where(doc_stats.c.id == CORPUS_ROW_ID).values(**values)
            )

    def corpus_stats(self) -> CorpusStats:
        with self._lock, self._engine.connect() as conn:
            row = conn.execute(
                select(doc_stats.c.total_documents, doc_stats.c.avg_doc_length).where(
                    doc_stats.c.id == CORPUS_ROW_ID
                )
            ).first()
        if row is None:
            return CorpusStats(total_chunks=0, avg_chunk_length=0.0)
        return CorpusStats(total_chunks=row[0] or 0, avg_chunk_length=float(row[1] or 0.0))

    def document_frequency(self, term: str) -> int:
        stmt = select(term_stats.c.document_frequency).where(term_stats.c.term == term)
        with self._lock, self._engine.connect() as conn:
            return conn.execute(stmt).scalar() or 0

    def postings_for_terms(self, terms: list[str]) -> list[Posting]:
        if not terms:
            return []
        stmt = (
            select(
                keywords.c.document_id,
                keywords.c.term,
                keywords.c.term_frequency,
                documents.c.token_count,
                term_stats.c.document_frequency,
                documents.c.content,
                documents.c.category,
                documents.c.parent_id,
            )
            .select_from(
                keywords.join(term_stats, keywords.c.term == term_stats.c.term).join(
                    documents, documents.c.id == keywords.c.document_id
                )
            )
            .where(keywords.c.term.in_(terms))
        )
        with self._lock, self._engine.connect() as conn:
            rows = conn.execute(stmt).all()
        return [
            Posting(
                chunk_id=row.document_id,
                term=row.term,
                term_frequency=row.term_frequency,
                chunk_length=row.token_count,
                document_frequency=row.document_frequency,
                content=row.content,
                category=row.category,
                parent_id=row.parent_id,
            )
            for row in rows
        ]

    def find_chunk_ids(self, document_id: str) -> list[str]:
        stmt = (
            select(documents.c.id)
            .where(or_(documents.c.id == document_id, documents.c.parent_id == document_id))
            .order_by(documents.c.chunk_index, documents.c.id)
        )
        with self._lock, self._engine.connect() as conn:
            return list(conn.execute(stmt).scalars())

    def delete_chunks(self, ids: list[str]) -> int:
        if not ids:
            return 0
        with self._lock, self._engine.begin() as conn:
            result = conn.execute(delete(documents).where(documents.c.id.in_(ids)))
        return result.rowcount

    def get_chunk(self, chunk_id: str) -> Optional[dict]:
        with self._lock, self._engine.connect() as conn:
            row = conn.execute(select(documents).where(documents.c.id == chunk_id)).first()
        return dict(row._mapping) if row is not None else None

    def count_postings(self, chunk_id: str) -> int:
        stmt = select(func.count()).select_from(keywords).where(
            keywords.c.document_id == chunk_id
        )
        with self._lock, self._engine.connect() as conn:
            return conn.execute(stmt).scalar_one()

    def count(self) -> tuple[int, int]:
        stmt = select(
            func.count(distinct(func.coalesce(documents.c.parent_id, documents.c.id))),
            func.count(),
        ).select_from(documents)
        with self._lock, self._engine.connect() as conn:
            row = conn.execute(stmt).one()
        return int(row[0]), int(row[1])

    def close(self) -> None:
        self._engine.dispose()
