"""Search service - hybrid retrieval orchestration."""

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Optional, TypeVar

from ..cancellation import CancellationToken
from ..errors import CollaboratorError, RequestCancelledError, ValidationError
from ..models.document import (
    ResultSource,
    SearchResponse,
    SearchResult,
    SearchTimings,
    VectorMatch,
)
from ..protocols.embedder import EmbedderProtocol
from ..protocols.vector_store import VectorStoreProtocol
from ..strategies.fusion import DEFAULT_RRF_K, reciprocal_rank_fusion
from .keyword_service import KeywordSearchService
from .rerank_service import RerankService

logger = logging.getLogger(__name__)

T = TypeVar("T")

MIN_TOP_K = 1
MAX_TOP_K = 20


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)


class SearchService:
    """Vector + BM25 retrieval fused with RRF, optionally reranked."""

    def __init__(
        self,
        embedder: EmbedderProtocol,
        vector_store: VectorStoreProtocol,
        keyword_service: Optional[KeywordSearchService] = None,
        rerank_service: Optional[RerankService] = None,
        rrf_k: int = DEFAULT_RRF_K,
        default_top_k: int = 5,
        max_top_k: int = MAX_TOP_K,
        fetch_multiplier: int = 2,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        """Initialize search service.

        Args:
            embedder: Embedding service.
            vector_store: Vector store.
            keyword_service: BM25 scorer. None means pure vector search.
            rerank_service: Cross-encoder reranking. None disables reranking.
            rrf_k: RRF smoothing constant.
            default_top_k: top_k used when the caller passes None.
            max_top_k: Largest accepted top_k.
            fetch_multiplier: Candidates fetched per modality, as a multiple of top_k.
            executor: Pool for the embedding call and the concurrent vector and
                keyword queries. A pool created here is shut down by close().
        """
        self._embedder = embedder
        self._vector_store = vector_store
        self._keyword = keyword_service
        self._rerank = rerank_service
        self._rrf_k = rrf_k
        self._default_top_k = default_top_k
        self._max_top_k = max_top_k
        self._fetch_multiplier = fetch_multiplier
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=4, thread_name_prefix="search"
        )

    def close(self) -> None:
        """Shut down the query pool if this service created it."""
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    @property
    def keyword_enabled(self) -> bool:
        return self._keyword is not None

    def validate(self, query: Optional[str], top_k: Optional[int]) -> int:
        """Check caller input.

        Returns:
            Effective top_k.

        Raises:
            ValidationError: Query missing or blank, or top_k out of range.
        """
        if query is None or not isinstance(query, str) or not query.strip():
            raise ValidationError("Query is required")

        if top_k is None:
            top_k = self._default_top_k
        if isinstance(top_k, bool) or not isinstance(top_k, int):
            raise ValidationError(f"topK must be an integer, got {top_k!r}")
        if not MIN_TOP_K <= top_k <= self._max_top_k:
            raise ValidationError(
                f"topK must be between {MIN_TOP_K} and {self._max_top_k}, got {top_k}"
            )
        return top_k

    def search(
        self,
        query: Optional[str],
        top_k: Optional[int] = None,
        use_reranker: bool = True,
        cancel_token: Optional[CancellationToken] = None,
        timeout: Optional[float] = None,
    ) -> SearchResponse:
        """Search indexed chunks.

        Args:
            query: Search query.
            top_k: Number of results, 1..max_top_k.
            use_reranker: Rerank fused candidates when a reranker is configured.
            cancel_token: Cooperative cancellation from the request boundary.
            timeout: Deadline in seconds, used when no token is given.

        Returns:
            Ranked results with per-stage timings.

        Raises:
            ValidationError: Invalid input. Raised before any external call.
            CollaboratorError: Embedder, vector store or relational store failed.
            RequestCancelledError: Cancelled or deadline exceeded.
        """
        top_k = self.validate(query, top_k)
        token = cancel_token or CancellationToken(timeout)
        timings = SearchTimings()
        started = time.perf_counter()
        fetch_k = top_k * self._fetch_multiplier

        token.check("embedding")
        stage = time.perf_counter()
        embed_future = self._executor.submit(
            self._call, "embedder", lambda: self._embedder.embed(query)
        )
        try:
            query_vector = self._await(embed_future, token, "embedding")
        finally:
            embed_future.cancel()
        timings.embedding_ms = _elapsed_ms(stage)

        token.check("retrieval")
        vector_future = self._executor.submit(
            self._timed, lambda: self._vector_search(query_vector, fetch_k)
        )
        keyword_future: Optional[Future] = None
        if self._keyword is not None:
            keyword_future = self._executor.submit(
                self._timed, lambda: self._keyword_search(query, fetch_k)
            )

        try:
            vector_results, timings.vector_search_ms = self._await(
                vector_future, token, "retrieval"
            )
            keyword_results: list[SearchResult] = []
            if keyword_future is not None:
                keyword_results, timings.keyword_search_ms = self._await(
                    keyword_future, token, "retrieval"
                )
        finally:
            vector_future.cancel()
            if keyword_future is not None:
                keyword_future.cancel()

        results = reciprocal_rank_fusion(vector_results, keyword_results, k=self._rrf_k)

        reranked = False
        degraded = False
        if use_reranker and self._rerank is not None and results:
            token.check("rerank")
            stage = time.perf_counter()
            outcome = self._rerank.rerank(query, results, timeout=token.remaining())
            timings.rerank_ms = _elapsed_ms(stage)
            results = outcome.results
            reranked = outcome.applied
            degraded = not outcome.applied

        results = results[:top_k]
        timings.total_ms = _elapsed_ms(started)

        logger.info(
            f"Search: returned {len(results)}/{top_k} chunks for '{query[:50]}' "
            f"(vector={len(vector_results)}, keyword={len(keyword_results)}, "
            f"reranked={reranked}, {timings.total_ms:.1f}ms)"
        )

        return SearchResponse(
            query=query,
            top_k=top_k,
            results=results,
            timings=timings,
            reranked=reranked,
            degraded=degraded,
        )

    def _vector_search(self, vector: list[float], fetch_k: int) -> list[SearchResult]:
        matches = self._call(
            "vector_store",
            lambda: self._vector_store.query(vector, top_k=fetch_k, return_metadata=True),
        )
        return [self._from_match(m) for m in matches]

    def _keyword_search(self, query: str, fetch_k: int) -> list[SearchResult]:
        return self._call("lexical_store", lambda: self._keyword.search(query, fetch_k))

    @staticmethod
    def _from_match(match: VectorMatch) -> SearchResult:
        meta = match.metadata or {}
        return SearchResult(
            id=match.id,
            content=meta.get("content", ""),
            category=meta.get("category"),
            source=ResultSource.VECTOR,
            score=match.score,
            vector_score=match.score,
            parent_id=meta.get("parent_id"),
        )

    @staticmethod
    def _timed(fn: Callable[[], T]) -> tuple[T, float]:
        started = time.perf_counter()
        result = fn()
        return result, _elapsed_ms(started)

    @staticmethod
    def _await(future: Future, token: CancellationToken, stage: str):
        try:
            return future.result(timeout=token.remaining())
        except FutureTimeoutError:
            raise RequestCancelledError("Deadline exceeded", stage=stage) from None

    @staticmethod
    def _call(collaborator: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except Exception as e:
            logger.error(f"{collaborator} call failed: {e}")
            raise CollaboratorError(collaborator, str(e)) from e
