"""Tests for reranker blending and degradation."""
import time

import pytest

from hybrid_retrieval.core.models.document import ResultSource, SearchResult
from hybrid_retrieval.core.services.rerank_service import RerankService

from conftest import BrokenReranker, ScriptedReranker


def _fused(n):
    return [
        SearchResult(
            id=f"c{i}",
            content=f"passage {i}",
            category=None,
            source=ResultSource.HYBRID,
            score=1 / (61 + i),
        )
        for i in range(n)
    ]


class FixedReranker:
    def __init__(self, scores):
        self.scores = scores

    def score(self, query, texts):
        return self.scores[: len(texts)]


class SlowReranker:
    def score(self, query, texts):
        time.sleep(0.5)
        return [1.0] * len(texts)


class TestBlending:
    def test_weighted_average_and_resort(self):
        fused = _fused(3)
        outcome = RerankService(FixedReranker([0.1, 0.2, 0.9])).rerank("q", fused)

        assert outcome.applied
        assert [r.id for r in outcome.results] == ["c2", "c1", "c0"]
        top = outcome.results[0]
        assert top.rerank_score == 0.9
        assert top.score == pytest.approx(0.4 * (1 / 63) + 0.6 * 0.9)

    def test_only_top_n_sent(self):
        reranker = ScriptedReranker()
        fused = _fused(15)
        outcome = RerankService(reranker, top_n=10).rerank("passage", fused)

        assert len(reranker.requests[0]) == 10
        assert len(outcome.results) == 15
        assert [r.id for r in outcome.results[10:]] == [f"c{i}" for i in range(10, 15)]
        assert all(r.rerank_score is None for r in outcome.results[10:])

    def test_scores_non_increasing_past_top_n(self):
        reranker = FixedReranker([0.9, 0.8, 0.7])
        outcome = RerankService(reranker, top_n=3).rerank("q", _fused(6))

        scores = [r.score for r in outcome.results]
        assert scores == sorted(scores, reverse=True)
        tail = outcome.results[3:]
        assert tail[0].score == pytest.approx(0.4 * (1 / 64) + 0.6 * 0.7)
        assert all(r.rerank_score is None for r in tail)

    def test_custom_weight(self):
        outcome = RerankService(FixedReranker([1.0]), rrf_weight=1.0).rerank("q", _fused(1))
        assert outcome.results[0].score == pytest.approx(1 / 61)

    def test_input_not_mutated(self):
        fused = _fused(2)
        RerankService(FixedReranker([5.0, 6.0])).rerank("q", fused)
        assert fused[0].rerank_score is None
        assert fused[0].score == pytest.approx(1 / 61)

    def test_empty(self):
        outcome = RerankService(ScriptedReranker()).rerank("q", [])
        assert outcome.results == []
        assert not outcome.applied


class TestDegradation:
    def test_provider_error_returns_fused(self):
        fused = _fused(4)
        outcome = RerankService(BrokenReranker()).rerank("q", fused)
        assert not outcome.applied
        assert outcome.results is fused
        assert "unavailable" in outcome.error

    def test_timeout_returns_fused(self):
        fused = _fused(2)
        outcome = RerankService(SlowReranker(), timeout=0.05).rerank("q", fused)
        assert not outcome.applied
        assert outcome.error == "timeout"
        assert outcome.results is fused

    def test_score_count_mismatch(self):
        fused = _fused(3)
        outcome = RerankService(FixedReranker([1.0])).rerank("q", fused)
        assert not outcome.applied
        assert outcome.results is fused
