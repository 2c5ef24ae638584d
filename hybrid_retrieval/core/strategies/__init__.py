"""Chunking, scoring and fusion strategies."""
from .bm25 import STOP_WORDS, term_score, tokenize
from .chunking import ParagraphChunker, make_chunk_id
from .fusion import reciprocal_rank_fusion, rrf_contribution

__all__ = [
    "STOP_WORDS",
    "ParagraphChunker",
    "make_chunk_id",
    "reciprocal_rank_fusion",
    "rrf_contribution",
    "term_score",
    "tokenize",
]
