"""
In-memory vector store for local development and tests.

Same async interface as S3VectorsStore, backed by plain dicts. Query
results carry the stored vectors and no score, so similarity is computed
by the retrieval aggregator.

Dependencies: ragbot.core.similarity
System role: Local vector store for development RAG
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from ragbot.boundary.vdb.vector_schemas import StoreHit, VectorRecord
from ragbot.core.exceptions import VectorStoreError
from ragbot.core.similarity import cosine_similarity

logger = logging.getLogger(__name__)


@dataclass
class _Index:
    dimension: int
    metric: str
    vectors: dict[str, tuple[list[float], dict[str, Any]]] = field(default_factory=dict)


class InMemoryVectorStore:
    """Dict-backed vector store with named indices."""

    def __init__(self) -> None:
        self._indices: dict[str, _Index] = {}

    async def create_index(self, name: str, dimension: int, metric: str = "cosine") -> bool:
        if name not in self._indices:
            self._indices[name] = _Index(dimension=dimension, metric=metric)
            logger.info(f"{__name__}:create_index - Created index {name} (dimension={dimension})")
        return True

    async def upsert(self, index_name: str, records: list[VectorRecord]) -> int:
        """
        Insert or replace records by key.

        Raises:
            VectorStoreError: Unknown index or dimension mismatch
        """
        index = self._indices.get(index_name)
        if index is None:
            raise VectorStoreError(
                f"Index not found: {index_name}",
                operation="upsert",
                details={"index_name": index_name},
            )
        for record in records:
            if len(record.embedding) != index.dimension:
                raise VectorStoreError(
                    f"Dimension mismatch for {record.key}: "
                    f"expected {index.dimension}, got {len(record.embedding)}",
                    operation="upsert",
                    details={"index_name": index_name},
                )
        for record in records:
            index.vectors[record.key] = (list(record.embedding), dict(record.metadata))
        return len(records)

    async def query(self, index_name: str, vector: list[float], top_k: int) -> list[StoreHit]:
        index = self._indices.get(index_name)
        if index is None:
            return []
        ordered = sorted(
            index.vectors.items(),
            key=lambda item: cosine_similarity(vector, item[1][0]),
            reverse=True,
        )[:top_k]
        return [
            StoreHit(key=key, index_name=index_name, rank=rank, vector=stored, metadata=metadata)
            for rank, (key, (stored, metadata)) in enumerate(ordered)
        ]

    async def get_vectors(self, index_name: str, keys: list[str]) -> list[StoreHit]:
        index = self._indices.get(index_name)
        if index is None:
            return []
        hits = []
        for key in keys:
            if key not in index.vectors:
                continue
            stored, metadata = index.vectors[key]
            hits.append(StoreHit(key=key, index_name=index_name, vector=list(stored), metadata=dict(metadata)))
        return hits

    async def list_indices(self) -> list[str]:
        return list(self._indices)

    async def delete_vectors(self, index_name: str, keys: list[str]) -> int:
        index = self._indices.get(index_name)
        if index is None:
            return 0
        removed = 0
        for key in keys:
            if index.vectors.pop(key, None) is not None:
                removed += 1
        return removed

    def count(self, index_name: str) -> int:
        """Number of vectors stored in ``index_name`` (0 if absent)."""
        index = self._indices.get(index_name)
        return len(index.vectors) if index else 0
