"""
Input-length guard for embedding providers.

Dependencies: langchain_core
System role: Keeps provider calls under their input limits
"""

import logging

from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)


class TruncatingEmbeddings(Embeddings):
    """
    Delegating Embeddings that truncates every input to ``max_chars``.

    Args:
        inner: Concrete provider embeddings
        max_chars: Character limit applied before each call
    """

    def __init__(self, inner: Embeddings, max_chars: int = 8000) -> None:
        self.inner = inner
        self.max_chars = max_chars

    def _truncate(self, text: str) -> str:
        if len(text) > self.max_chars:
            logger.debug(
                f"{__name__}:_truncate - Truncating input from {len(text)} to {self.max_chars} chars"
            )
            return text[: self.max_chars]
        return text

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return self.inner.embed_documents([self._truncate(t) for t in texts])

    def embed_query(self, text: str) -> list[float]:
        return self.inner.embed_query(self._truncate(text))

    async def aembed_documents(self, texts: list[str]) -> list[list[float]]:
        return await self.inner.aembed_documents([self._truncate(t) for t in texts])

    async def aembed_query(self, text: str) -> list[float]:
        return await self.inner.aembed_query(self._truncate(text))
