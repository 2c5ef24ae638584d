import logging
import threading

import numpy as np

from hybrid_retrieval.core.models.document import IndexDescription, VectorMatch, VectorRecord

logger = logging.getLogger(__name__)


class InMemoryVectorStore:
    """Cosine-similarity vector store held in process memory."""

    def __init__(self, dimensions: int = 384):
        """Initialize store.

        Args:
            dimensions: Vector size accepted by the store.
        """
        self._dimensions = dimensions
        self._vectors: dict[str, np.ndarray] = {}
        self._metadata: dict[str, dict] = {}
        self._lock = threading.Lock()

    def upsert(self, records: list[VectorRecord]) -> None:
        """Insert or replace vectors."""
        for record in records:
            if len(record.values) != self._dimensions:
                raise ValueError(
                    f"Vector {record.id} has {len(record.values)} dimensions, "
                    f"expected {self._dimensions}"
                )
        with self._lock:
            for record in records:
                self._vectors[record.id] = np.asarray(record.values, dtype=np.float32)
                self._metadata[record.id] = dict(record.metadata)

    def query(
        self, vector: list[float], top_k: int = 5, return_metadata: bool = True
    ) -> list[VectorMatch]:
        """Search by cosine similarity."""
        with self._lock:
            ids = list(self._vectors)
            if not ids:
                return []
            matrix = np.stack([self._vectors[i] for i in ids])
            metadata = [self._metadata[i] for i in ids]

        query = np.asarray(vector, dtype=np.float32)
        query_norm = np.linalg.norm(query)
        norms = np.linalg.norm(matrix, axis=1)
        denom = np.where(norms * query_norm == 0, 1.0, norms * query_norm)
        scores = matrix @ query / denom

        order = sorted(range(len(ids)), key=lambda i: (-float(scores[i]), ids[i]))[:top_k]
        return [
            VectorMatch(
                id=ids[i],
                score=float(scores[i]),
                metadata=dict(metadata[i]) if return_metadata else {},
            )
            for i in order
        ]

    def delete_by_ids(self, ids: list[str]) -> None:
        """Delete vectors, ignoring unknown ids."""
        with self._lock:
            for chunk_id in ids:
                self._vectors.pop(chunk_id, None)
                self._metadata.pop(chunk_id, None)

    def describe(self) -> IndexDescription:
        with self._lock:
            return IndexDescription(dimensions=self._dimensions, vector_count=len(self._vectors))

    def ids(self) -> set[str]:
        with self._lock:
            return set(self._vectors)
