"""Core business services."""
from .ingest_service import IngestService
from .keyword_service import KeywordSearchService
from .rerank_service import RerankOutcome, RerankService
from .search_service import SearchService

__all__ = [
    "IngestService",
    "KeywordSearchService",
    "RerankOutcome",
    "RerankService",
    "SearchService",
]
