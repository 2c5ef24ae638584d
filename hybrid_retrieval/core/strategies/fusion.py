"""Reciprocal Rank Fusion of vector and keyword rankings."""
from ..models.document import ResultSource, SearchResult

DEFAULT_RRF_K = 60


def rrf_contribution(rank: int, k: int = DEFAULT_RRF_K) -> float:
    return 1.0 / (k + rank + 1)


def reciprocal_rank_fusion(
    vector_results: list[SearchResult],
    keyword_results: list[SearchResult],
    k: int = DEFAULT_RRF_K,
) -> list[SearchResult]:
    """Merge two pre-sorted rankings into one hybrid ranking.

    Each list contributes ``1 / (k + rank + 1)`` per chunk id, ranks counted
    from 0 in the given order. Source scores are kept on the fused result but
    do not influence ordering.

    Args:
        vector_results: Ranking from the vector index.
        keyword_results: Ranking from the BM25 scorer.
        k: Smoothing constant.

    Returns:
        Hybrid results sorted by fused score descending, ties by id.
    """
    fused: dict[str, SearchResult] = {}

    for rank, result in enumerate(vector_results):
        item = fused.setdefault(result.id, _seed(result))
        item.vector_score = result.score
        item.score += rrf_contribution(rank, k)

    for rank, result in enumerate(keyword_results):
        item = fused.setdefault(result.id, _seed(result))
        item.keyword_score = result.score
        item.score += rrf_contribution(rank, k)
        if not item.content:
            item.content = result.content

    return sorted(fused.values(), key=lambda r: (-r.score, r.id))


def _seed(result: SearchResult) -> SearchResult:
    return SearchResult(
        id=result.id,
        content=result.content,
        category=result.category,
        source=ResultSource.HYBRID,
        score=0.0,
        parent_id=result.parent_id,
    )
