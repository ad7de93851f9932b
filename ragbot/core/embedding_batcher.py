"""
Rate-limit-aware embedding batcher.

Embeds many texts against a quota-limited provider: small concurrent
waves, a pause between waves, per-item retry with exponential backoff on
rate limiting, and a deterministic fallback vector when an item cannot
be embedded. Output order always matches input order.

Dependencies: langchain_core, tenacity
System role: Second stage of ingestion; query embedding for retrieval
"""

import asyncio
import logging
from dataclasses import dataclass

from botocore.exceptions import ClientError
from langchain_core.embeddings import Embeddings
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from ragbot.boundary.embeddings.fallback import DeterministicFallbackEmbeddings
from ragbot.configs import Settings
from ragbot.models.chunk import Chunk

logger = logging.getLogger(__name__)

MAX_WAVE_SIZE = 15
TRANSIENT_MARKERS = (
    "429",
    "too many requests",
    "rate limit",
    "ratelimit",
    "throttl",
    "resource exhausted",
    "resource_exhausted",
    "quota",
    "timed out",
    "timeout",
    "temporarily unavailable",
)


def is_transient_error(exc: BaseException) -> bool:
    """True for rate limiting, throttling and timeouts."""
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return True
    if isinstance(exc, ClientError):
        code = exc.response.get("Error", {}).get("Code", "")
        if "Throttl" in code or code in {"TooManyRequestsException", "ServiceUnavailableException"}:
            return True
    for attr in ("status_code", "code", "status"):
        if getattr(exc, attr, None) == 429:
            return True
    message = str(exc).lower()
    return any(marker in message for marker in TRANSIENT_MARKERS)


@dataclass
class BatchStats:
    """Counters for the most recent ``embed_many`` run."""

    total: int = 0
    fallback_count: int = 0
    waves: int = 0


class EmbeddingBatcher:
    """
    Embeds text lists in throttled waves.

    Cancellation is honoured between waves: the inter-wave sleep is the
    checkpoint, so an in-flight wave completes before cancellation lands.
    """

    def __init__(
        self,
        embedder: Embeddings,
        fallback: Embeddings | None = None,
        dimension: int | None = 1536,
        wave_size: int = 5,
        wave_delay: float = 0.1,
        max_attempts: int = 3,
        backoff_initial: float = 1.0,
        backoff_max: float = 10.0,
    ) -> None:
        """
        Initialize batcher.

        Args:
            embedder: Provider embeddings
            fallback: Embeddings used when an item fails (deterministic by default)
            dimension: Expected vector dimension; provider vectors of another size are replaced
            wave_size: Concurrent calls per wave, clamped to 1..15
            wave_delay: Seconds to sleep between waves
            max_attempts: Attempts per item on transient errors
            backoff_initial: First backoff delay in seconds
            backoff_max: Backoff ceiling in seconds
        """
        self.embedder = embedder
        self.fallback = fallback or DeterministicFallbackEmbeddings(dimension or 1536)
        self.dimension = dimension
        self.wave_size = max(1, min(wave_size, MAX_WAVE_SIZE))
        self.wave_delay = wave_delay
        self.max_attempts = max(1, max_attempts)
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max
        self.stats = BatchStats()

    @classmethod
    def from_settings(cls, embedder: Embeddings, settings: Settings) -> "EmbeddingBatcher":
        config = settings.embedding
        return cls(
            embedder,
            fallback=DeterministicFallbackEmbeddings(config.dimension),
            dimension=config.dimension,
            wave_size=config.wave_size,
            wave_delay=config.wave_delay_seconds,
            max_attempts=config.retry_attempts,
            backoff_initial=config.retry_initial_seconds,
            backoff_max=config.retry_max_seconds,
        )

    async def _embed_item(self, text: str) -> tuple[list[float], bool]:
        """Embed one text; returns (vector, used_fallback)."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential_jitter(
                    initial=self.backoff_initial,
                    max=self.backoff_max,
                    jitter=self.backoff_initial,
                ),
                retry=retry_if_exception(is_transient_error),
                before_sleep=lambda state: logger.warning(
                    f"{__name__}:_embed_item - Rate limited, retry "
                    f"{state.attempt_number}/{self.max_attempts}"
                ),
                reraise=True,
            ):
                with attempt:
                    vector = await self.embedder.aembed_query(text)
        except Exception as e:
            logger.warning(
                f"{__name__}:_embed_item - Using fallback embedding after "
                f"{type(e).__name__}: {e}"
            )
            return await self.fallback.aembed_query(text), True

        if self.dimension and len(vector) != self.dimension:
            logger.warning(
                f"{__name__}:_embed_item - Provider returned dimension {len(vector)}, "
                f"expected {self.dimension}; using fallback embedding"
            )
            return await self.fallback.aembed_query(text), True
        return list(vector), False

    async def embed_one(self, text: str) -> list[float]:
        """Embed a single text (e.g. a query) with the same retry and fallback policy."""
        vector, _ = await self._embed_item(text)
        return vector

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        """
        Embed texts in waves; never raises for provider failures.

        Args:
            texts: Texts to embed

        Returns:
            list[list[float]]: One vector per text, same order
        """
        stats = BatchStats(total=len(texts))
        vectors: list[list[float]] = []

        for start in range(0, len(texts), self.wave_size):
            if start:
                await asyncio.sleep(self.wave_delay)
            wave = texts[start : start + self.wave_size]
            results = await asyncio.gather(*(self._embed_item(text) for text in wave))
            stats.waves += 1
            for vector, used_fallback in results:
                vectors.append(vector)
                stats.fallback_count += int(used_fallback)

        self.stats = stats
        log = logger.warning if stats.fallback_count else logger.info
        log(
            f"{__name__}:embed_many - Embedded {stats.total} texts in {stats.waves} waves "
            f"({stats.fallback_count} fallback)"
        )
        return vectors

    async def embed_chunks(self, chunks: list[Chunk]) -> list[Chunk]:
        """Return copies of ``chunks`` with embeddings attached, in order."""
        vectors = await self.embed_many([chunk.content for chunk in chunks])
        return [chunk.with_embedding(vector) for chunk, vector in zip(chunks, vectors)]
