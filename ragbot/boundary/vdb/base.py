"""
Vector index store protocol.

Any backend with named indices, keyed upsert and top-k similarity query
can serve the ingestion and retrieval pipeline.

Dependencies: typing (stdlib)
System role: Seam between core retrieval logic and concrete vector stores
"""

from typing import Protocol, runtime_checkable

from ragbot.boundary.vdb.vector_schemas import StoreHit, VectorRecord


@runtime_checkable
class VectorIndexStore(Protocol):
    """Async interface over a vector database with named indices."""

    async def create_index(self, name: str, dimension: int, metric: str = "cosine") -> bool:
        """Create ``name``; an index that already exists counts as success."""
        ...

    async def upsert(self, index_name: str, records: list[VectorRecord]) -> int:
        """Insert or replace records by key; returns the number upserted."""
        ...

    async def query(self, index_name: str, vector: list[float], top_k: int) -> list[StoreHit]:
        """Return up to ``top_k`` hits ordered best first."""
        ...

    async def list_indices(self) -> list[str]:
        """Return all index names."""
        ...

    async def delete_vectors(self, index_name: str, keys: list[str]) -> int:
        """Delete vectors by key; returns the number of keys submitted."""
        ...

    async def get_vectors(self, index_name: str, keys: list[str]) -> list[StoreHit]:
        """Fetch vectors with metadata by key; unknown keys are omitted."""
        ...
