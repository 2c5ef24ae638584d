"""Relational store for chunk rows and the BM25 term index."""
from .schema import doc_stats, documents, keywords, metadata, term_stats
from .sql_store import SqlLexicalStore, create_store_engine

__all__ = [
    "SqlLexicalStore",
    "create_store_engine",
    "doc_stats",
    "documents",
    "keywords",
    "metadata",
    "term_stats",
]
