"""
Vector store configuration settings.

Manages S3 Vectors configuration for per-document indices and
cross-index retrieval (fan-out size, thresholds, upload batching).

Dependencies: pydantic, pydantic_settings
System role: Vector database configuration for RAG retrieval
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class VectorStoreSettings(BaseSettings):
    """Vector store configuration (in-memory for dev, S3 Vectors for prod)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="VECTOR_STORE_",
        case_sensitive=False,
        extra="ignore",
    )

    store_type: str = Field(
        default="s3",
        description="Vector store type: 'memory' for local dev, 's3' for production",
    )
    vectors_bucket: str = Field(
        default="ragbot-dev-vectors",
        description="S3 Vectors bucket name",
    )
    aws_region: str = Field(default="us-east-2", description="AWS region for S3 Vectors")
    distance_metric: Literal["cosine", "euclidean"] = Field(
        default="cosine",
        description="Index distance metric; query distances are mapped to similarity per metric",
    )

    default_index: str = Field(
        default="queries",
        description="Shared index searched when listing returns nothing",
    )
    query_index_prefix: str = Field(
        default="query-",
        description="Prefix of ad-hoc query indices excluded from document search",
    )

    top_k_per_index: int = Field(default=10, description="Hits requested from each index", ge=1)
    global_top_k: int = Field(default=10, description="Hits kept after cross-index merge", ge=1)
    similarity_threshold: float = Field(
        default=0.7,
        description="Hits at or below this similarity are dropped",
        ge=-1.0,
        le=1.0,
    )
    max_concurrent_queries: int = Field(
        default=5,
        description="Maximum in-flight index queries during fan-out",
        ge=1,
    )
    upload_batch_size: int = Field(
        default=25,
        description="Vectors per put_vectors call",
        ge=1,
        le=500,
    )
    max_metadata_content: int = Field(
        default=1000,
        description="Characters of chunk text stored in vector metadata",
    )
    hybrid_search: bool = Field(
        default=True,
        description="Blend keyword matches into the ranking of cross-index answers",
    )
    hybrid_vector_weight: float = Field(
        default=0.7,
        description="Weight of vector similarity in the hybrid score",
        ge=0.0,
        le=1.0,
    )
    section_vector_weight: float = Field(
        default=0.3,
        description="Vector weight used when the question names a section",
        ge=0.0,
        le=1.0,
    )
