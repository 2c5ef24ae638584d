import logging
from functools import cached_property

from sentence_transformers import CrossEncoder

logger = logging.getLogger(__name__)


class CrossEncoderReranker:
    """Reranker using CrossEncoder models."""

    def __init__(self, model_name: str = "BAAI/bge-reranker-base"):
        """Initialize reranker.

        Args:
            model_name: HuggingFace model name.
        """
        self._model_name = model_name

    @cached_property
    def model(self) -> CrossEncoder:
        logger.info(f"Loading reranker: {self._model_name}")
        model = CrossEncoder(self._model_name)
        logger.info("Reranker loaded")
        return model

    def score(self, query: str, texts: list[str]) -> list[float]:
        """Score (query, text) pairs.

        Args:
            query: User query.
            texts: Candidate passages.

        Returns:
            Relevance scores in input order.
        """
        if not texts:
            return []

        pairs = [[query, text] for text in texts]
        scores = self.model.predict(pairs)

        if logger.isEnabledFor(logging.DEBUG):
            top = ", ".join(f"{float(s):.2f}" for s in sorted(scores, reverse=True)[:3])
            logger.debug(f"Reranker top-3 raw scores: [{top}]")

        return [float(s) for s in scores]
