"""Rerank service - blends cross-encoder scores into the fused ranking."""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, replace
from typing import Optional

from ..models.document import SearchResult
from ..protocols.reranker import RerankerProtocol

logger = logging.getLogger(__name__)


@dataclass
class RerankOutcome:
    """Reranked results, or the untouched fused ranking on failure."""
    results: list[SearchResult]
    applied: bool
    error: Optional[str] = None


class RerankService:
    """Rescore the top fused candidates with a cross-encoder."""

    def __init__(
        self,
        reranker: RerankerProtocol,
        top_n: int = 10,
        rrf_weight: float = 0.4,
        timeout: Optional[float] = None,
    ):
        """Initialize rerank service.

        Args:
            reranker: Cross-encoder provider.
            top_n: Number of fused candidates sent to the reranker.
            rrf_weight: Weight of the fused score; the reranker gets the rest.
            timeout: Seconds to wait for the provider. None waits indefinitely.
        """
        self._reranker = reranker
        self._top_n = top_n
        self._rrf_weight = rrf_weight
        self._rerank_weight = 1.0 - rrf_weight
        self._timeout = timeout

    def rerank(
        self,
        query: str,
        fused: list[SearchResult],
        timeout: Optional[float] = None,
    ) -> RerankOutcome:
        """Blend reranker scores into the top candidates.

        Never raises: provider failures and timeouts return ``fused`` as is.

        Candidates past ``top_n`` keep their fused order and are blended with
        the lowest reranker score of the head, so scores stay non-increasing
        down the whole list.

        Args:
            query: User query.
            fused: Fused ranking, best first.
            timeout: Per-call override of the provider timeout.

        Returns:
            Rerank outcome.
        """
        if not fused:
            return RerankOutcome(results=fused, applied=False)

        head = fused[: self._top_n]
        tail = fused[self._top_n :]
        wait = timeout if timeout is not None else self._timeout

        try:
            scores = self._score(query, [r.content for r in head], wait)
            if len(scores) != len(head):
                raise ValueError(
                    f"reranker returned {len(scores)} scores for {len(head)} candidates"
                )
        except FutureTimeoutError:
            logger.warning(f"Reranker timed out after {wait}s, using fused ranking")
            return RerankOutcome(results=fused, applied=False, error="timeout")
        except Exception as e:
            logger.warning(f"Reranker failed, using fused ranking: {e}")
            return RerankOutcome(results=fused, applied=False, error=str(e))

        rescored = [
            replace(
                result,
                rerank_score=float(score),
                score=self._rrf_weight * result.score + self._rerank_weight * float(score),
            )
            for result, score in zip(head, scores)
        ]
        rescored.sort(key=lambda r: (-r.score, r.id))

        floor = min(float(s) for s in scores)
        tail = [
            replace(
                result,
                score=self._rrf_weight * result.score + self._rerank_weight * floor,
            )
            for result in tail
        ]

        if logger.isEnabledFor(logging.DEBUG):
            top_scores = ", ".join(f"{r.score:.3f}" for r in rescored[:3])
            logger.debug(f"Reranker top-3 blended scores: [{top_scores}]")

        return RerankOutcome(results=rescored + tail, applied=True)

    def _score(self, query: str, texts: list[str], timeout: Optional[float]) -> list[float]:
        if timeout is None:
            return list(self._reranker.score(query, texts))

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="rerank")
        try:
            future = executor.submit(self._reranker.score, query, texts)
            return list(future.result(timeout=timeout))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
