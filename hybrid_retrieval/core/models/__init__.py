"""Domain models."""
from .document import (
    Chunk,
    CorpusStats,
    Document,
    IndexDescription,
    IndexStats,
    IngestResponse,
    IngestTimings,
    Posting,
    ResultSource,
    SearchResponse,
    SearchResult,
    SearchTimings,
    VectorMatch,
    VectorRecord,
)

__all__ = [
    "Chunk",
    "CorpusStats",
    "Document",
    "IndexDescription",
    "IndexStats",
    "IngestResponse",
    "IngestTimings",
    "Posting",
    "ResultSource",
    "SearchResponse",
    "SearchResult",
    "SearchTimings",
    "VectorMatch",
    "VectorRecord",
]
