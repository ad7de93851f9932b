"""
Embedding provider adapters.

All embedders implement langchain-core's ``Embeddings`` interface.
"""

from ragbot.boundary.embeddings.embeddings_factory import get_embedder
from ragbot.boundary.embeddings.fallback import DeterministicFallbackEmbeddings, fallback_vector
from ragbot.boundary.embeddings.truncating import TruncatingEmbeddings

__all__ = [
    "DeterministicFallbackEmbeddings",
    "TruncatingEmbeddings",
    "fallback_vector",
    "get_embedder",
]
