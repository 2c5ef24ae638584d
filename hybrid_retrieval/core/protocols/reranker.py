"""Reranker protocol for dependency injection."""
from typing import Protocol, runtime_checkable


@runtime_checkable
class RerankerProtocol(Protocol):
    """Protocol for cross-encoder scoring."""

    def score(self, query: str, texts: list[str]) -> list[float]:
        """Score each (query, text) pair.

        Args:
            query: User query.
            texts: Candidate passages.

        Returns:
            One relevance score per text, in input order.
        """
        ...
