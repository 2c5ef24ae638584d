"""Embedder protocol for dependency injection."""
from typing import Protocol, runtime_checkable


@runtime_checkable
class EmbedderProtocol(Protocol):
    """Protocol for embedding service."""

    @property
    def dimensions(self) -> int:
        """Vector size produced by the model."""
        ...

    def embed(self, text: str) -> list[float]:
        """Encode a single text.

        Args:
            text: Text to encode.

        Returns:
            Fixed-dimension embedding.
        """
        ...

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Encode texts in one batch, preserving order."""
        ...
