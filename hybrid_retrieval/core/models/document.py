"""Document domain models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


@dataclass
class Document:
    """Logical document submitted for ingestion."""
    id: str
    content: str
    title: Optional[str] = None
    source: Optional[str] = None
    category: Optional[str] = None


@dataclass
class Chunk:
    """Contiguous span of a document, the retrievable unit."""
    id: str
    content: str
    parent_id: str
    chunk_index: int

    @property
    def word_count(self) -> int:
        return len(self.content.split())


class ResultSource(Enum):
    """Which ranking produced a result."""
    VECTOR = "vector"
    KEYWORD = "keyword"
    HYBRID = "hybrid"


@dataclass
class SearchResult:
    """Single ranked chunk."""
    id: str
    content: str
    category: Optional[str]
    source: ResultSource
    score: float
    vector_score: Optional[float] = None
    keyword_score: Optional[float] = None
    rerank_score: Optional[float] = None
    parent_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "category": self.category,
            "source": self.source.value,
            "score": self.score,
            "vectorScore": self.vector_score,
            "keywordScore": self.keyword_score,
            "rerankScore": self.rerank_score,
            "parentId": self.parent_id,
        }


@dataclass
class SearchTimings:
    """Per-stage wall clock timings in milliseconds."""
    embedding_ms: float = 0.0
    vector_search_ms: float = 0.0
    keyword_search_ms: float = 0.0
    rerank_ms: float = 0.0
    total_ms: float = 0.0


@dataclass
class SearchResponse:
    """Search response for presentation layer."""
    query: str
    top_k: int
    results: list[SearchResult]
    timings: SearchTimings
    reranked: bool = False
    degraded: bool = False

    @property
    def results_count(self) -> int:
        return len(self.results)

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "topK": self.top_k,
            "resultsCount": self.results_count,
            "results": [r.to_dict() for r in self.results],
            "reranked": self.reranked,
            "degraded": self.degraded,
            "timings": {
                "embeddingMs": self.timings.embedding_ms,
                "vectorSearchMs": self.timings.vector_search_ms,
                "keywordSearchMs": self.timings.keyword_search_ms,
                "rerankMs": self.timings.rerank_ms,
                "totalMs": self.timings.total_ms,
            },
        }


@dataclass
class IngestTimings:
    """Per-stage ingestion timings in milliseconds."""
    chunking_ms: float = 0.0
    indexing_ms: float = 0.0
    embedding_ms: float = 0.0
    upsert_ms: float = 0.0
    total_ms: float = 0.0


@dataclass
class IngestResponse:
    """Outcome of ingesting one document."""
    document_id: str
    chunk_ids: list[str]
    timings: IngestTimings
    replaced: bool = False

    @property
    def chunk_count(self) -> int:
        return len(self.chunk_ids)


@dataclass
class VectorRecord:
    """Vector index upsert payload."""
    id: str
    values: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class VectorMatch:
    """Vector index query hit."""
    id: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class IndexDescription:
    """Vector index shape."""
    dimensions: int
    vector_count: int


@dataclass
class CorpusStats:
    """Global BM25 normalization statistics."""
    total_chunks: int
    avg_chunk_length: float


@dataclass
class Posting:
    """Term posting joined with its term and chunk statistics."""
    chunk_id: str
    term: str
    term_frequency: int
    chunk_length: int
    document_frequency: int
    content: str
    category: Optional[str] = None
    parent_id: Optional[str] = None


@dataclass
class IndexStats:
    """Index health snapshot."""
    document_count: int
    chunk_count: int
    vector_count: int
    dimensions: int
    avg_chunk_length: float
