"""
Shared test fixtures and configuration for entire test suite.

Provides: in-memory vector store, deterministic embedder and batcher,
test settings, sample document text
Dependencies: pytest
System role: Test infrastructure and fixture management
"""

import pytest

from ragbot.boundary.embeddings.fallback import DeterministicFallbackEmbeddings
from ragbot.boundary.vdb.memory_store import InMemoryVectorStore
from ragbot.configs.chunking import ChunkingSettings
from ragbot.configs.embedding import EmbeddingSettings
from ragbot.configs.graph import GraphSettings
from ragbot.configs.settings import Settings
from ragbot.configs.vector_store import VectorStoreSettings
from ragbot.core.embedding_batcher import EmbeddingBatcher

TEST_DIMENSION = 32


def make_paragraph(number: int, sentences: int = 13) -> str:
    """Paragraph of fixed-length sentences (60 chars each, space separated)."""
    return " ".join(
        f"Paragraph {number} sentence {i:02d} discusses topic {number} in careful detail."
        for i in range(sentences)
    )


@pytest.fixture
def three_paragraph_text() -> str:
    """About 2400 characters in three paragraphs."""
    return "\n\n".join(make_paragraph(n) for n in (1, 2, 3))


@pytest.fixture
def memory_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def fallback_embedder() -> DeterministicFallbackEmbeddings:
    return DeterministicFallbackEmbeddings(dimension=TEST_DIMENSION)


@pytest.fixture
def batcher(fallback_embedder) -> EmbeddingBatcher:
    return EmbeddingBatcher(
        fallback_embedder,
        dimension=TEST_DIMENSION,
        wave_size=5,
        wave_delay=0.0,
        backoff_initial=0.0,
        backoff_max=0.0,
    )


@pytest.fixture
def settings() -> Settings:
    """Settings for offline runs: memory store, fallback embeddings, no graph."""
    return Settings(
        vector_store=VectorStoreSettings(store_type="memory", similarity_threshold=0.7),
        embedding=EmbeddingSettings(
            provider="fallback",
            dimension=TEST_DIMENSION,
            wave_delay_seconds=0.0,
            retry_initial_seconds=0.0,
            retry_max_seconds=0.0,
        ),
        chunking=ChunkingSettings(max_size=1000, min_size=200, overlap=100, strategy="paragraph"),
        graph=GraphSettings(enabled=False),
    )


@pytest.fixture
def paragraph():
    """Factory for deterministic paragraphs: paragraph(number, sentences=13)."""
    return make_paragraph
