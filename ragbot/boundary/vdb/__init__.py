"""
Vector database boundary layer.

Provides vector store adapters for storage and retrieval operations.
- S3VectorsStore: Production S3 Vectors client (boto3)
- InMemoryVectorStore: Local development and test store

Dependencies: boto3
System role: Vector store adapter for RAG retrieval
"""

from ragbot.boundary.vdb.base import VectorIndexStore
from ragbot.boundary.vdb.memory_store import InMemoryVectorStore
from ragbot.boundary.vdb.vector_schemas import StoreHit, VectorRecord
from ragbot.boundary.vdb.vector_store_factory import get_vector_store


def get_s3_vectors_store():
    """Lazy import for S3VectorsStore so boto3 is only loaded when needed."""
    from ragbot.boundary.vdb.s3_vectors_store import S3VectorsStore
    return S3VectorsStore


__all__ = [
    "InMemoryVectorStore",
    "StoreHit",
    "VectorIndexStore",
    "VectorRecord",
    "get_s3_vectors_store",
    "get_vector_store",
]
