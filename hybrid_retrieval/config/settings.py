from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):

    model_config = SettingsConfigDict(env_file=".env", env_prefix="HYBRID_", extra="ignore")

    database_url: str = "sqlite:///./hybrid_retrieval.db"
    database_echo: bool = False

    vector_store: Literal["memory", "chroma"] = "memory"
    chroma_host: str = "localhost"
    chroma_port: int = 8001
    chroma_collection: str = "chunks"
    vector_dimensions: int = 384

    embedding_model: str = "BAAI/bge-small-en-v1.5"

    reranker_enabled: bool = True
    reranker_model: str = "BAAI/bge-reranker-base"
    reranker_timeout: Optional[float] = None

    keyword_search_enabled: bool = True

    docs_path: str = "./docs"

    chunk_max_size: int = 512
    chunk_min_size: int = 100
    chunk_overlap_percent: float = 0.15

    bm25_k1: float = 1.2
    bm25_b: float = 0.75

    rrf_k: int = 60
    rerank_top_n: int = 10
    rerank_rrf_weight: float = 0.4

    search_default_top_k: int = 5
    search_max_top_k: int = 20
    search_timeout: Optional[float] = None

    log_level: str = "INFO"


settings = Settings()
