"""
SQLAlchemy table definitions for the lexical store.

documents   one row per chunk (or unchunked item), parent_id links chunks
keywords    term postings, cascade-deleted with their chunk row
term_stats  document frequency per distinct term
doc_stats   single row of corpus statistics for length normalization
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    func,
)

metadata = MetaData()

CORPUS_ROW_ID = 1

documents = Table(
    "documents",
    metadata,
    Column("id", String, primary_key=True),
    Column("content", Text, nullable=False),
    Column("title", String),
    Column("source", String),
    Column("category", String),
    Column("chunk_index", Integer, default=0),
    Column("parent_id", String),
    Column("word_count", Integer),
    Column("token_count", Integer, nullable=False, default=0),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

keywords = Table(
    "keywords",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "document_id",
        String,
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("term", String, nullable=False),
    Column("term_frequency", Integer, nullable=False, default=1),
)

term_stats = Table(
    "term_stats",
    metadata,
    Column("term", String, primary_key=True),
    Column("document_frequency", Integer, nullable=False, default=1),
)

doc_stats = Table(
    "doc_stats",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("total_documents", Integer, nullable=False, default=0),
    Column("avg_doc_length", Float, nullable=False, default=0.0),
    CheckConstraint(f"id = {CORPUS_ROW_ID}", name="ck_doc_stats_single_row"),
)

Index("idx_keywords_term", keywords.c.term)
Index("idx_keywords_doc", keywords.c.document_id)
Index("idx_documents_parent", documents.c.parent_id)
