import logging
from typing import Optional

import requests

from hybrid_retrieval.core.models.document import IndexDescription, VectorMatch, VectorRecord

logger = logging.getLogger(__name__)


class ChromaVectorStore:
    """Vector store using ChromaDB HTTP API."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 8001,
        collection_name: str = "chunks",
        tenant: str = "default_tenant",
        database: str = "default_database",
        dimensions: int = 384,
        timeout: float = 30.0,
    ):
        """Initialize ChromaDB client.

        Args:
            host: ChromaDB host.
            port: ChromaDB port.
            collection_name: Collection name.
            tenant: Tenant name.
            database: Database name.
            dimensions: Expected vector size, reported until the collection has data.
            timeout: HTTP timeout in seconds.
        """
        self._base_url = f"http://{host}:{port}/api/v2"
        self._tenant = tenant
        self._database = database
        self._collection_name = collection_name
        self._collection_id: Optional[str] = None
        self._dimensions = dimensions
        self._timeout = timeout
        self._session = requests.Session()

    @property
    def _collections_url(self) -> str:
        return f"{self._base_url}/tenants/{self._tenant}/databases/{self._database}/collections"

    def _ensure_collection(self) -> str:
        """Get or create collection, return ID."""
        if self._collection_id:
            return self._collection_id

        resp = self._session.get(self._collections_url, timeout=self._timeout)
        if resp.status_code == 200:
            for col in resp.json():
                if col["name"] == self._collection_name:
                    self._collection_id = col["id"]
                    return self._collection_id

        resp = self._session.post(
            self._collections_url,
            json={"name": self._collection_name, "metadata": {"hnsw:space": "cosine"}},
            timeout=self._timeout,
        )
        resp.raise_for_status()
        self._collection_id = resp.json()["id"]
        logger.info(f"Created collection: {self._collection_name}")
        return self._collection_id

    def _post(self, action: str, payload: dict) -> requests.Response:
        col_id = self._ensure_collection()
        resp = self._session.post(
            f"{self._collections_url}/{col_id}/{action}", json=payload, timeout=self._timeout
        )
        resp.raise_for_status()
        return resp

    def upsert(self, records: list[VectorRecord]) -> None:
        """Insert or replace vectors."""
        if not records:
            return
        self._post(
            "upsert",
            {
                "ids": [r.id for r in records],
                "embeddings": [r.values for r in records],
                "documents": [r.metadata.get("content", "") for r in records],
                "metadatas": [r.metadata for r in records],
            },
        )
        logger.debug(f"Upserted {len(records)} vectors")

    def query(
        self, vector: list[float], top_k: int = 5, return_metadata: bool = True
    ) -> list[VectorMatch]:
        """Search by embedding."""
        include = ["distances", "metadatas"] if return_metadata else ["distances"]
        data = self._post(
            "query",
            {"query_embeddings": [vector], "n_results": top_k, "include": include},
        ).json()

        matches = []
        if data.get("ids") and data["ids"][0]:
            metadatas = (data.get("metadatas") or [[]])[0] or []
            for i, chunk_id in enumerate(data["ids"][0]):
                distance = data["distances"][0][i]
                matches.append(
                    VectorMatch(
                        id=chunk_id,
                        score=1.0 - distance,
                        metadata=(metadatas[i] or {}) if i < len(metadatas) else {},
                    )
                )
        return matches

    def delete_by_ids(self, ids: list[str]) -> None:
        """Delete vectors by id."""
        if not ids:
            return
        self._post("delete", {"ids": ids})

    def describe(self) -> IndexDescription:
        """Get collection dimension and vector count."""
        col_id = self._ensure_collection()
        resp = self._session.get(f"{self._collections_url}/{col_id}/count", timeout=self._timeout)
        resp.raise_for_status()
        count = int(resp.json())

        info = self._session.get(f"{self._collections_url}/{col_id}", timeout=self._timeout)
        dimensions = self._dimensions
        if info.status_code == 200 and info.json().get("dimension"):
            dimensions = int(info.json()["dimension"])

        return IndexDescription(dimensions=dimensions, vector_count=count)
