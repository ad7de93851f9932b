"""
Deterministic fallback embeddings.

Produces a pseudo-embedding that is a pure function of the input text.
Used when the provider is unavailable or an item exhausts its retries,
so ingestion and retrieval keep working with degraded quality.

Dependencies: langchain_core
System role: Graceful degradation for the embedding stage
"""

import math

from langchain_core.embeddings import Embeddings


def fallback_vector(text: str, dimension: int) -> list[float]:
    """``v[i] = sin(seed + i) * 0.5 + 0.5`` with seed = sum of code points."""
    seed = sum(ord(char) for char in text)
    return [math.sin(seed + i) * 0.5 + 0.5 for i in range(dimension)]


class DeterministicFallbackEmbeddings(Embeddings):
    """Embeddings implementation that never calls a provider."""

    def __init__(self, dimension: int = 1536) -> None:
        self.dimension = dimension

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [fallback_vector(text, self.dimension) for text in texts]

    def embed_query(self, text: str) -> list[float]:
        return fallback_vector(text, self.dimension)

    async def aembed_documents(self, texts: list[str]) -> list[list[float]]:
        return self.embed_documents(texts)

    async def aembed_query(self, text: str) -> list[float]:
        return self.embed_query(text)
