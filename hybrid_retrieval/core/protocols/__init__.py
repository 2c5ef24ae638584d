"""Protocol interfaces for dependency injection."""
from .embedder import EmbedderProtocol
from .lexical_store import LexicalStoreProtocol
from .vector_store import VectorStoreProtocol
from .reranker import RerankerProtocol

__all__ = [
    "EmbedderProtocol",
    "LexicalStoreProtocol",
    "VectorStoreProtocol",
    "RerankerProtocol",
]
