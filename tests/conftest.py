import hashlib
import re
import time

import pytest

from hybrid_retrieval.core.models.document import Document
from hybrid_retrieval.core.services.ingest_service import IngestService
from hybrid_retrieval.core.services.keyword_service import KeywordSearchService
from hybrid_retrieval.core.services.rerank_service import RerankService
from hybrid_retrieval.core.services.search_service import SearchService
from hybrid_retrieval.core.strategies.chunking import ParagraphChunker
from hybrid_retrieval.infrastructure.database.sql_store import SqlLexicalStore
from hybrid_retrieval.infrastructure.vector_stores.memory_store import InMemoryVectorStore

DIMENSIONS = 384


class HashingEmbedder:
    """Deterministic bag-of-words embedder."""

    dimensions = DIMENSIONS

    def __init__(self):
        self.calls = 0

    def embed(self, text):
        self.calls += 1
        return self._vector(text)

    def embed_many(self, texts):
        self.calls += 1
        return [self._vector(t) for t in texts]

    @staticmethod
    def _vector(text):
        vec = [0.0] * DIMENSIONS
        for token in re.findall(r"\w+", text.lower()):
            vec[int(hashlib.md5(token.encode()).hexdigest(), 16) % DIMENSIONS] += 1.0
        return vec


class FailingEmbedder(HashingEmbedder):
    def embed(self, text):
        self.calls += 1
        raise RuntimeError("embedding backend down")

    def embed_many(self, texts):
        self.calls += 1
        raise RuntimeError("embedding backend down")


class SlowEmbedder(HashingEmbedder):
    """Stalls longer than any test deadline."""

    delay = 1.5

    def embed(self, text):
        time.sleep(self.delay)
        return super().embed(text)

    def embed_many(self, texts):
        time.sleep(self.delay)
        return super().embed_many(texts)


class ScriptedReranker:
    """Scores by word overlap with the query, records its inputs."""

    def __init__(self):
        self.requests = []

    def score(self, query, texts):
        self.requests.append(list(texts))
        words = set(query.lower().split())
        return [float(len(words & set(t.lower().split()))) for t in texts]


class BrokenReranker:
    def score(self, query, texts):
        raise ConnectionError("reranker unavailable")


@pytest.fixture
def store(tmp_path):
    s = SqlLexicalStore(database_url=f"sqlite:///{tmp_path / 'kb.db'}")
    yield s
    s.close()


@pytest.fixture
def vector_store():
    return InMemoryVectorStore(dimensions=DIMENSIONS)


@pytest.fixture
def embedder():
    return HashingEmbedder()


@pytest.fixture
def keyword_service(store):
    return KeywordSearchService(store)


@pytest.fixture
def ingest_service(embedder, vector_store, keyword_service):
    return IngestService(
        embedder=embedder,
        vector_store=vector_store,
        keyword_service=keyword_service,
        chunker=ParagraphChunker(),
    )


@pytest.fixture
def search_service(embedder, vector_store, keyword_service):
    return SearchService(
        embedder=embedder,
        vector_store=vector_store,
        keyword_service=keyword_service,
    )


@pytest.fixture
def reranker():
    return ScriptedReranker()


@pytest.fixture
def reranking_search_service(embedder, vector_store, keyword_service, reranker):
    return SearchService(
        embedder=embedder,
        vector_store=vector_store,
        keyword_service=keyword_service,
        rerank_service=RerankService(reranker, top_n=10),
    )


@pytest.fixture
def corpus():
    return [
        Document(
            id="caching",
            content=(
                "Caching keeps hot data close to the application.\n\n"
                "A cache hit avoids a slow database round trip."
            ),
            category="performance",
        ),
        Document(
            id="eviction",
            content=(
                "Eviction policies decide which cache entries are dropped.\n\n"
                "LRU eviction removes the least recently used entry first."
            ),
            category="performance",
        ),
        Document(
            id="vectors",
            content="Vector indexes use HNSW graphs for approximate nearest neighbour search.",
            category="search",
        ),
    ]
