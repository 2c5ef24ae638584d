"""Keyword service - BM25 indexing and scoring over the relational store."""

import logging

from ..models.document import ResultSource, SearchResult
from ..protocols.lexical_store import LexicalStoreProtocol
from ..strategies.bm25 import DEFAULT_B, DEFAULT_K1, term_frequencies, term_score, tokenize

logger = logging.getLogger(__name__)


class KeywordSearchService:
    """Okapi BM25 over postings stored in a relational term index."""

    def __init__(
        self,
        store: LexicalStoreProtocol,
        k1: float = DEFAULT_K1,
        b: float = DEFAULT_B,
    ):
        """Initialize keyword service.

        Args:
            store: Relational store holding postings and statistics.
            k1: Term frequency saturation.
            b: Length normalization strength.
        """
        self._store = store
        self._k1 = k1
        self._b = b

    @property
    def store(self) -> LexicalStoreProtocol:
        return self._store

    def index_chunk(self, chunk_id: str, content: str) -> int:
        """Record postings and statistics for one chunk.

        Args:
            chunk_id: Chunk id, must already have a document row.
            content: Chunk text.

        Returns:
            Chunk length in tokens.
        """
        tokens = tokenize(content)
        self._store.index_terms(chunk_id, term_frequencies(tokens), len(tokens))
        logger.debug(f"Indexed {chunk_id}: {len(tokens)} tokens")
        return len(tokens)

    def unindex_chunk(self, chunk_id: str, content: str) -> None:
        """Reverse index_chunk for a chunk whose ingest is being rolled back."""
        tokens = tokenize(content)
        self._store.unindex_terms(chunk_id, term_frequencies(tokens), len(tokens))
        logger.debug(f"Unindexed {chunk_id}")

    def search(self, query: str, top_k: int) -> list[SearchResult]:
        """Rank chunks by BM25.

        Args:
            query: Search query.
            top_k: Number of results to return.

        Returns:
            Keyword results, best first. Empty when the query has no usable
            tokens or nothing is indexed.
        """
        terms = sorted(set(tokenize(query)))
        if not terms:
            logger.debug(f"No searchable tokens in query '{query[:50]}'")
            return []

        stats = self._store.corpus_stats()
        if stats.total_chunks == 0:
            return []

        scores: dict[str, float] = {}
        hits: dict[str, SearchResult] = {}

        for posting in self._store.postings_for_terms(terms):
            scores[posting.chunk_id] = scores.get(posting.chunk_id, 0.0) + term_score(
                tf=posting.term_frequency,
                df=posting.document_frequency,
                chunk_length=posting.chunk_length,
                avg_length=stats.avg_chunk_length,
                total_chunks=stats.total_chunks,
                k1=self._k1,
                b=self._b,
            )
            if posting.chunk_id not in hits:
                hits[posting.chunk_id] = SearchResult(
                    id=posting.chunk_id,
                    content=posting.content,
                    category=posting.category,
                    source=ResultSource.KEYWORD,
                    score=0.0,
                    parent_id=posting.parent_id,
                )

        ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))[:top_k]

        results = []
        for chunk_id, score in ranked:
            result = hits[chunk_id]
            result.score = score
            result.keyword_score = score
            results.append(result)
        return results
