"""Vector store protocol for dependency injection."""
from typing import Protocol, runtime_checkable

from ..models.document import IndexDescription, VectorMatch, VectorRecord


@runtime_checkable
class VectorStoreProtocol(Protocol):
    """Protocol for vector storage."""

    def upsert(self, records: list[VectorRecord]) -> None:
        """Insert or replace vectors by id.

        Args:
            records: Vectors with ids and metadata.
        """
        ...

    def query(
        self,
        vector: list[float],
        top_k: int = 5,
        return_metadata: bool = True,
    ) -> list[VectorMatch]:
        """Nearest neighbours by similarity.

        Args:
            vector: Query vector.
            top_k: Number of matches to return.
            return_metadata: Include stored metadata.

        Returns:
            Matches sorted by descending similarity.
        """
        ...

    def delete_by_ids(self, ids: list[str]) -> None:
        """Delete vectors. Unknown ids are ignored."""
        ...

    def describe(self) -> IndexDescription:
        """Get index dimensions and vector count."""
        ...
