import logging
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from .config.settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Container:
    _factories: dict[type, Callable[[], Any]] = field(default_factory=dict)
    _singletons: dict[type, Any] = field(default_factory=dict)
    _singleton_flags: set[type] = field(default_factory=set)

    def register(
        self, interface: type[T], factory: Callable[[], T], singleton: bool = False
    ) -> None:
        """Register factory for interface.

        Args:
            interface: Interface type.
            factory: Factory function.
            singleton: Whether to cache instance.
        """
        self._factories[interface] = factory
        if singleton:
            self._singleton_flags.add(interface)

    def resolve(self, interface: type[T]) -> T:
        if interface in self._singletons:
            return self._singletons[interface]

        if interface not in self._factories:
            raise KeyError(f"No factory registered for {interface}")

        instance = self._factories[interface]()

        if interface in self._singleton_flags:
            self._singletons[interface] = instance

        return instance

    def reset(self) -> None:
        """Reset singletons (for testing)."""
        self._singletons.clear()

    def close(self) -> None:
        """Close resolved singletons that hold pools or connections, then reset."""
        for interface, instance in reversed(list(self._singletons.items())):
            close = getattr(instance, "close", None)
            if callable(close):
                logger.debug(f"Closing {interface.__name__}")
                close()
        self.reset()


container = Container()


def _vector_store_factory(settings: Settings) -> Callable[[], Any]:
    if settings.vector_store == "chroma":
        from .infrastructure.vector_stores.chroma_store import ChromaVectorStore

        return lambda: ChromaVectorStore(
            host=settings.chroma_host,
            port=settings.chroma_port,
            collection_name=settings.chroma_collection,
            dimensions=settings.vector_dimensions,
        )

    from .infrastructure.vector_stores.memory_store import InMemoryVectorStore

    return lambda: InMemoryVectorStore(dimensions=settings.vector_dimensions)


def configure_container(settings: Settings, target: Container | None = None) -> Container:
    """Configure container with all dependencies.

    Args:
        settings: Application settings.
        target: Container to populate. Defaults to the module-level container.

    Returns:
        Configured container.
    """
    from .core.protocols.embedder import EmbedderProtocol
    from .core.protocols.lexical_store import LexicalStoreProtocol
    from .core.protocols.reranker import RerankerProtocol
    from .core.protocols.vector_store import VectorStoreProtocol
    from .core.services.ingest_service import IngestService
    from .core.services.keyword_service import KeywordSearchService
    from .core.services.rerank_service import RerankService
    from .core.services.search_service import SearchService
    from .core.strategies.chunking import ParagraphChunker
    from .infrastructure.database.sql_store import SqlLexicalStore
    from .infrastructure.embeddings.sentence_transformer import (
        SentenceTransformerEmbedder,
    )
    from .infrastructure.rerankers.cross_encoder import CrossEncoderReranker

    c = target or container

    c.register(
        EmbedderProtocol,
        lambda: SentenceTransformerEmbedder(settings.embedding_model),
        singleton=True,
    )

    c.register(VectorStoreProtocol, _vector_store_factory(settings), singleton=True)

    c.register(
        LexicalStoreProtocol,
        lambda: SqlLexicalStore(
            database_url=settings.database_url, echo=settings.database_echo
        ),
        singleton=True,
    )

    c.register(
        RerankerProtocol,
        lambda: CrossEncoderReranker(settings.reranker_model),
        singleton=True,
    )

    c.register(
        KeywordSearchService,
        lambda: KeywordSearchService(
            store=c.resolve(LexicalStoreProtocol),
            k1=settings.bm25_k1,
            b=settings.bm25_b,
        ),
        singleton=True,
    )

    c.register(
        RerankService,
        lambda: RerankService(
            reranker=c.resolve(RerankerProtocol),
            top_n=settings.rerank_top_n,
            rrf_weight=settings.rerank_rrf_weight,
            timeout=settings.reranker_timeout,
        ),
        singleton=True,
    )

    c.register(
        SearchService,
        lambda: SearchService(
            embedder=c.resolve(EmbedderProtocol),
            vector_store=c.resolve(VectorStoreProtocol),
            keyword_service=(
                c.resolve(KeywordSearchService)
                if settings.keyword_search_enabled
                else None
            ),
            rerank_service=(
                c.resolve(RerankService) if settings.reranker_enabled else None
            ),
            rrf_k=settings.rrf_k,
            default_top_k=settings.search_default_top_k,
            max_top_k=settings.search_max_top_k,
        ),
        singleton=True,
    )

    c.register(
        IngestService,
        lambda: IngestService(
            embedder=c.resolve(EmbedderProtocol),
            vector_store=c.resolve(VectorStoreProtocol),
            keyword_service=c.resolve(KeywordSearchService),
            chunker=ParagraphChunker(
                max_size=settings.chunk_max_size,
                min_size=settings.chunk_min_size,
                overlap_percent=settings.chunk_overlap_percent,
            ),
            docs_path=settings.docs_path,
        ),
        singleton=True,
    )

    logger.info("Container configured")
    return c
