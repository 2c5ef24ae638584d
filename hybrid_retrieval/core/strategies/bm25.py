"""BM25 tokenizer and scoring formula."""
import math
import re
from collections import Counter

STOP_WORDS = frozenset({
    "the", "and", "for", "are", "but", "not", "you", "all", "any", "can",
    "had", "her", "was", "one", "our", "out", "has", "have", "been", "were",
    "with", "this", "that", "from", "they", "will", "would", "there", "their",
    "what", "about", "which", "when", "into", "than", "then", "them", "these",
    "those", "does", "did", "its", "his", "she", "him", "who", "how", "also",
    "should", "could", "may", "might", "must", "shall", "being", "over",
    "under", "onto", "upon", "per", "via",
})

_NON_WORD = re.compile(r"[^\w\s]")

DEFAULT_K1 = 1.2
DEFAULT_B = 0.75


def tokenize(text: str) -> list[str]:
    """Lowercase, strip punctuation, drop short tokens and stop words."""
    if not text:
        return []
    cleaned = _NON_WORD.sub(" ", text.lower())
    return [t for t in cleaned.split() if len(t) > 2 and t not in STOP_WORDS]


def term_frequencies(tokens: list[str]) -> dict[str, int]:
    return dict(Counter(tokens))


def idf(total_chunks: int, document_frequency: int) -> float:
    return math.log(
        (total_chunks - document_frequency + 0.5) / (document_frequency + 0.5) + 1
    )


def term_score(
    tf: int,
    df: int,
    chunk_length: int,
    avg_length: float,
    total_chunks: int,
    k1: float = DEFAULT_K1,
    b: float = DEFAULT_B,
) -> float:
    """Okapi BM25 contribution of one term to one chunk."""
    # avg_length is 0 only when every indexed chunk had zero tokens
    length_ratio = chunk_length / avg_length if avg_length > 0 else 1.0
    tf_part = (tf * (k1 + 1)) / (tf + k1 * (1 - b + b * length_ratio))
    return idf(total_chunks, df) * tf_part
