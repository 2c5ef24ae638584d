"""Hybrid retrieval: BM25 + dense vectors fused with RRF, optional reranking."""
from .core.errors import (
    CollaboratorError,
    RequestCancelledError,
    RetrievalError,
    ValidationError,
)
from .core.models.document import Document, SearchResponse, SearchResult

__version__ = "1.0.0"

__all__ = [
    "CollaboratorError",
    "Document",
    "RequestCancelledError",
    "RetrievalError",
    "SearchResponse",
    "SearchResult",
    "ValidationError",
]
