"""
Short-lived document cache.

Holds the chunks (with embeddings) of a document between a process and
a follow-up query or summarize call. Entries are single-use: ``lease``
serialises access per key and always tears the entry down, including its
temporary file and any working vectors.

Dependencies: asyncio (stdlib), ragbot.boundary.vdb
System role: Working state for the document tool's follow-up actions
"""

import asyncio
import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from ragbot.boundary.vdb.base import VectorIndexStore
from ragbot.core.index_manager import vector_key
from ragbot.models.cache import DocumentCacheEntry
from ragbot.models.chunk import Chunk

logger = logging.getLogger(__name__)


class DocumentCache:
    """
    Per-process cache keyed by document path.

    Owned by whoever constructs it; there is no module-level instance.

    Args:
        store: Vector store holding working vectors to delete on removal
        working_index: Index those working vectors live in
    """

    def __init__(
        self,
        store: VectorIndexStore | None = None,
        working_index: str | None = None,
    ) -> None:
        self._entries: dict[str, DocumentCacheEntry] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}
        self._store = store
        self._working_index = working_index

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def lock_count(self) -> int:
        """Number of keys that currently have a lock."""
        return len(self._locks)

    def put(
        self,
        key: str,
        chunks: list[Chunk],
        metadata: dict[str, Any] | None = None,
        source_path: str | None = None,
    ) -> DocumentCacheEntry:
        """
        Store (or replace) the entry for ``key``.

        A replacement without ``source_path`` inherits the one of the entry it
        replaces, so a temporary file is still deleted on release.
        """
        previous = self._entries.get(key)
        if source_path is None and previous is not None:
            source_path = previous.source_path
        entry = DocumentCacheEntry(chunks=chunks, metadata=metadata or {}, source_path=source_path)
        self._entries[key] = entry
        logger.debug(f"{__name__}:put - Cached {len(chunks)} chunks for {key}")
        return entry

    def get(self, key: str) -> DocumentCacheEntry | None:
        return self._entries.get(key)

    def lock_for(self, key: str) -> asyncio.Lock:
        """The lock serialising operations on ``key``."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """
        Hold the per-key lock.

        The lock is dropped once its last holder or waiter leaves, so the
        lock table only contains keys that are in use.
        """
        lock = self.lock_for(key)
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                if self._locks.get(key) is lock:
                    del self._locks[key]

    async def remove(self, key: str) -> None:
        """
        Drop the entry, its temporary file and its working vectors.

        Teardown is best effort: failures are logged, never raised.
        """
        entry = self._entries.pop(key, None)
        if entry is None:
            return

        if entry.source_path:
            try:
                os.remove(entry.source_path)
                logger.debug(f"{__name__}:remove - Deleted temp file {entry.source_path}")
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"{__name__}:remove - Could not delete {entry.source_path}: {e}")

        if self._store is not None and self._working_index and entry.chunks:
            document_id = str(entry.metadata.get("document_id") or key)
            keys = [vector_key(document_id, chunk.index) for chunk in entry.chunks]
            try:
                await self._store.delete_vectors(self._working_index, keys)
            except Exception as e:
                logger.warning(
                    f"{__name__}:remove - Could not delete working vectors for {key}: {e}"
                )

        logger.info(f"{__name__}:remove - Released cache entry {key}")

    @asynccontextmanager
    async def lease(self, key: str) -> AsyncIterator[DocumentCacheEntry | None]:
        """
        Single-shot access to an entry.

        Holds the per-key lock for the duration and removes the entry on
        exit, whether the body succeeded or raised.
        """
        async with self.hold(key):
            try:
                yield self._entries.get(key)
            finally:
                await self.remove(key)
