"""Relational store protocol for chunk rows and the BM25 term index."""
from typing import Optional, Protocol, runtime_checkable

from ..models.document import Chunk, CorpusStats, Document, Posting


@runtime_checkable
class LexicalStoreProtocol(Protocol):
    """Protocol for the document table and term statistics."""

    def insert_chunk(self, chunk: Chunk, document: Document) -> None:
        """Persist the chunk's document row."""
        ...

    def index_terms(
        self, chunk_id: str, term_frequencies: dict[str, int], length: int
    ) -> None:
        """Write postings, term stats and corpus stats as one atomic batch.

        Args:
            chunk_id: Indexed chunk.
            term_frequencies: Term -> frequency within the chunk.
            length: Chunk length in tokens.
        """
        ...

    def unindex_terms(
        self, chunk_id: str, term_frequencies: dict[str, int], length: int
    ) -> None:
        """Undo one index_terms call: drop postings, decrement term and corpus stats."""
        ...

    def corpus_stats(self) -> CorpusStats:
        ...

    def postings_for_terms(self, terms: list[str]) -> list[Posting]:
        """Postings for the given terms joined with term and chunk stats."""
        ...

    def find_chunk_ids(self, document_id: str) -> list[str]:
        """Ids of rows whose id or parent id equals ``document_id``."""
        ...

    def delete_chunks(self, ids: list[str]) -> int:
        """Delete rows and their postings. Returns deleted row count."""
        ...

    def get_chunk(self, chunk_id: str) -> Optional[dict]:
        ...

    def count(self) -> tuple[int, int]:
        """Return (logical document count, chunk row count)."""
        ...
