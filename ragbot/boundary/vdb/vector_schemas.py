"""
Vector database schemas.

Pydantic models for records sent to and hits returned from a vector index.

Dependencies: pydantic
System role: Type definitions for vector store operations
"""

from typing import Any

from pydantic import BaseModel, Field


class VectorRecord(BaseModel):
    """One vector to upsert, keyed for idempotent re-uploads."""

    key: str = Field(description="Stable vector key, e.g. '<doc>-chunk-<i>'")
    embedding: list[float] = Field(description="Embedding vector")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Denormalised chunk metadata")


class StoreHit(BaseModel):
    """
    Raw hit as returned by one index.

    Stores differ in what they report: an explicit score, a distance, the
    raw vector, or nothing beyond rank order. Normalisation happens in the
    retrieval aggregator.
    """

    key: str = Field(description="Vector key")
    index_name: str = Field(description="Index the hit came from")
    rank: int = Field(default=0, description="Position in the index's result list", ge=0)
    score: float | None = Field(default=None, description="Similarity score, when provided")
    distance: float | None = Field(default=None, description="Distance, when provided")
    vector: list[float] | None = Field(default=None, description="Stored vector, when returned")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Stored metadata")
