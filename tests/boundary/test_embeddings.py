"""
Test suite for embedding adapters and the embedder factory.

System role: Verification of embedding provider selection
"""

from unittest.mock import MagicMock, patch

import pytest
from langchain_core.embeddings import Embeddings

from ragbot.boundary.embeddings import (
    DeterministicFallbackEmbeddings,
    TruncatingEmbeddings,
    fallback_vector,
    get_embedder,
)
from ragbot.configs.embedding import EmbeddingSettings
from ragbot.configs.settings import Settings


class EchoEmbeddings(Embeddings):
    """Records the texts it receives."""

    def __init__(self) -> None:
        self.seen: list[str] = []

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.seen.extend(texts)
        return [[float(len(text))] for text in texts]

    def embed_query(self, text: str) -> list[float]:
        self.seen.append(text)
        return [float(len(text))]


def _settings(provider: str, dimension: int = 16) -> Settings:
    return Settings(embedding=EmbeddingSettings(provider=provider, dimension=dimension))


@pytest.fixture
def no_google_keys(monkeypatch):
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)


class TestFallbackEmbeddings:
    """Test deterministic pseudo-embeddings."""

    def test_is_deterministic(self) -> None:
        """Should return the same vector for the same text."""
        assert fallback_vector("hello", 8) == fallback_vector("hello", 8)

    def test_values_and_dimension(self) -> None:
        """Should produce values in [0, 1] of the requested dimension."""
        vector = fallback_vector("some chunk text", 64)

        assert len(vector) == 64
        assert all(0.0 <= value <= 1.0 for value in vector)

    def test_differs_by_text(self) -> None:
        """Should produce different vectors for different texts."""
        assert fallback_vector("alpha", 8) != fallback_vector("beta", 8)

    @pytest.mark.asyncio
    async def test_async_matches_sync(self) -> None:
        """Should return identical vectors from sync and async calls."""
        embedder = DeterministicFallbackEmbeddings(dimension=12)

        assert await embedder.aembed_query("q") == embedder.embed_query("q")
        assert await embedder.aembed_documents(["a", "b"]) == embedder.embed_documents(["a", "b"])


class TestTruncatingEmbeddings:
    """Test input truncation."""

    def test_truncates_long_inputs(self) -> None:
        """Should cut inputs to max_chars before delegating."""
        inner = EchoEmbeddings()
        embedder = TruncatingEmbeddings(inner, max_chars=5)

        assert embedder.embed_query("abcdefgh") == [5.0]
        assert embedder.embed_documents(["abc", "abcdefgh"]) == [[3.0], [5.0]]
        assert inner.seen == ["abcde", "abc", "abcde"]

    @pytest.mark.asyncio
    async def test_async_truncates(self) -> None:
        """Should truncate in async calls too."""
        embedder = TruncatingEmbeddings(EchoEmbeddings(), max_chars=3)

        assert await embedder.aembed_query("abcdef") == [3.0]


class TestGetEmbedder:
    """Test provider selection and graceful fallback."""

    def test_fallback_provider(self) -> None:
        """Should return deterministic embeddings when configured."""
        embedder = get_embedder(_settings("fallback", dimension=24))

        assert isinstance(embedder, DeterministicFallbackEmbeddings)
        assert embedder.dimension == 24

    def test_unknown_provider(self) -> None:
        """Should fall back for unknown providers."""
        assert isinstance(get_embedder(_settings("cohere")), DeterministicFallbackEmbeddings)

    def test_google_without_key(self, no_google_keys) -> None:
        """Should fall back when no Google API key is set."""
        assert isinstance(get_embedder(_settings("google")), DeterministicFallbackEmbeddings)

    def test_google_with_key(self, monkeypatch, no_google_keys) -> None:
        """Should wrap the Google embeddings with truncation."""
        monkeypatch.setenv("GEMINI_API_KEY", "test-key")

        with patch(
            "ragbot.boundary.embeddings.embeddings_wrapper.FixedDimensionEmbeddings"
        ) as google:
            embedder = get_embedder(_settings("google", dimension=768))

        assert isinstance(embedder, TruncatingEmbeddings)
        assert embedder.inner is google.return_value
        kwargs = google.call_args.kwargs
        assert kwargs["output_dimensionality"] == 768
        assert kwargs["google_api_key"] == "test-key"

    def test_google_construction_error(self, monkeypatch, no_google_keys) -> None:
        """Should fall back when the provider rejects its configuration."""
        monkeypatch.setenv("GOOGLE_API_KEY", "test-key")

        with patch(
            "ragbot.boundary.embeddings.embeddings_wrapper.FixedDimensionEmbeddings",
            side_effect=ValueError("invalid model"),
        ):
            embedder = get_embedder(_settings("google"))

        assert isinstance(embedder, DeterministicFallbackEmbeddings)

    def test_bedrock_without_credentials(self) -> None:
        """Should fall back when boto3 finds no credentials."""
        with patch("ragbot.boundary.embeddings.embeddings_factory.boto3") as boto3:
            boto3.Session.return_value.get_credentials.return_value = None
            embedder = get_embedder(_settings("bedrock"))

        assert isinstance(embedder, DeterministicFallbackEmbeddings)

    def test_bedrock_with_credentials(self) -> None:
        """Should build Bedrock embeddings with the configured model."""
        with (
            patch("ragbot.boundary.embeddings.embeddings_factory.boto3") as boto3,
            patch("langchain_aws.BedrockEmbeddings") as bedrock,
        ):
            boto3.Session.return_value.get_credentials.return_value = MagicMock()
            embedder = get_embedder(_settings("bedrock"))

        assert isinstance(embedder, TruncatingEmbeddings)
        assert bedrock.call_args.kwargs["model_id"] == "amazon.titan-embed-text-v1"
