"""
Vector store factory for selecting between in-memory (dev) and S3 Vectors (prod).

Depends on VECTOR_STORE_STORE_TYPE environment variable.
Provides consistent interface regardless of underlying implementation.

Dependencies: ragbot.boundary.vdb, ragbot.configs
System role: Vector store instantiation and selection
"""

import logging

from ragbot.boundary.vdb.base import VectorIndexStore
from ragbot.boundary.vdb.memory_store import InMemoryVectorStore
from ragbot.configs import Settings, get_settings
from ragbot.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def get_vector_store(settings: Settings | None = None) -> VectorIndexStore:
    """
    Factory function to get vector store based on environment configuration.

    Returns:
        VectorIndexStore: InMemoryVectorStore or S3VectorsStore

    Raises:
        ConfigurationError: If the store type is unknown
    """
    settings = settings or get_settings()
    store_type = settings.vector_store.store_type.lower()

    if store_type == "memory":
        logger.info(f"{__name__}:get_vector_store - Creating in-memory vector store (local dev mode)")
        return InMemoryVectorStore()

    if store_type == "s3":
        from ragbot.boundary.vdb.s3_vectors_store import S3VectorsStore

        logger.info(f"{__name__}:get_vector_store - Creating S3 Vectors store (production mode)")
        return S3VectorsStore(
            vectors_bucket=settings.vector_store.vectors_bucket,
            region=settings.vector_store.aws_region,
        )

    raise ConfigurationError(
        f"Invalid VECTOR_STORE_STORE_TYPE: {store_type}. Must be 'memory' (dev) or 's3' (production).",
        details={"store_type": store_type},
    )
