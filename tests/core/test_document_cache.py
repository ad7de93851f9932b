"""
Test suite for the single-use document cache.

System role: Verification of cache leasing and teardown
"""

import asyncio

import pytest

from ragbot.boundary.vdb.memory_store import InMemoryVectorStore
from ragbot.boundary.vdb.vector_schemas import VectorRecord
from ragbot.core.document_cache import DocumentCache
from ragbot.models.chunk import Chunk


def _chunks(count: int = 2) -> list[Chunk]:
    return [Chunk(index=i, content=f"chunk {i}", embedding=[1.0, 0.0]) for i in range(count)]


class TestDocumentCache:
    """Test put/get and leasing."""

    def test_put_and_get(self) -> None:
        """Should store entries by key."""
        cache = DocumentCache()

        entry = cache.put("a.pdf", _chunks(), metadata={"pages": 2})

        assert "a.pdf" in cache
        assert len(cache) == 1
        assert cache.get("a.pdf") is entry
        assert entry.metadata == {"pages": 2}
        assert cache.get("missing.pdf") is None

    @pytest.mark.asyncio
    async def test_lease_releases_entry(self) -> None:
        """Should yield the entry once and remove it afterwards."""
        cache = DocumentCache()
        cache.put("a.pdf", _chunks())

        async with cache.lease("a.pdf") as entry:
            assert entry is not None
            assert len(entry.chunks) == 2

        assert "a.pdf" not in cache

    @pytest.mark.asyncio
    async def test_lease_miss_yields_none(self) -> None:
        """Should yield None for unknown keys."""
        cache = DocumentCache()

        async with cache.lease("missing.pdf") as entry:
            assert entry is None

    @pytest.mark.asyncio
    async def test_lease_releases_on_error(self) -> None:
        """Should tear the entry down even when the body raises."""
        cache = DocumentCache()
        cache.put("a.pdf", _chunks())

        with pytest.raises(RuntimeError):
            async with cache.lease("a.pdf"):
                raise RuntimeError("query failed")

        assert "a.pdf" not in cache

    @pytest.mark.asyncio
    async def test_lease_deletes_temporary_file(self, tmp_path) -> None:
        """Should delete the backing temporary file on release."""
        source = tmp_path / "upload.pdf"
        source.write_bytes(b"%PDF")
        cache = DocumentCache()
        cache.put(str(source), _chunks(), source_path=str(source))

        async with cache.lease(str(source)):
            assert source.exists()

        assert not source.exists()

    @pytest.mark.asyncio
    async def test_missing_temporary_file_is_ignored(self, tmp_path) -> None:
        """Should not fail when the temporary file is already gone."""
        cache = DocumentCache()
        cache.put("a.pdf", _chunks(), source_path=str(tmp_path / "gone.pdf"))

        await cache.remove("a.pdf")

        assert "a.pdf" not in cache

    @pytest.mark.asyncio
    async def test_remove_deletes_working_vectors(self) -> None:
        """Should delete the entry's vectors from the working index."""
        store = InMemoryVectorStore()
        await store.create_index("working", 2)
        await store.upsert(
            "working",
            [
                VectorRecord(key="a-chunk-0", embedding=[1.0, 0.0]),
                VectorRecord(key="a-chunk-1", embedding=[1.0, 0.0]),
                VectorRecord(key="other-chunk-0", embedding=[1.0, 0.0]),
            ],
        )
        cache = DocumentCache(store=store, working_index="working")
        cache.put("a.pdf", _chunks(), metadata={"document_id": "a.pdf"})

        await cache.remove("a.pdf")

        assert store.count("working") == 1

    @pytest.mark.asyncio
    async def test_concurrent_leases_are_serialised(self) -> None:
        """Should let only the first concurrent lease see the entry."""
        cache = DocumentCache()
        cache.put("a.pdf", _chunks())
        seen = []

        async def use() -> None:
            async with cache.lease("a.pdf") as entry:
                await asyncio.sleep(0)
                seen.append(entry is not None)

        await asyncio.gather(use(), use())

        assert sorted(seen) == [False, True]

    @pytest.mark.asyncio
    async def test_locks_are_dropped_after_use(self) -> None:
        """Should not keep a lock per key once every lease has finished."""
        cache = DocumentCache()
        for i in range(5):
            cache.put(f"doc-{i}.pdf", _chunks())
            async with cache.lease(f"doc-{i}.pdf"):
                assert cache.lock_count == 1

        async def use(key: str) -> None:
            async with cache.lease(key):
                await asyncio.sleep(0)

        await asyncio.gather(use("a.pdf"), use("a.pdf"), use("b.pdf"))

        assert cache.lock_count == 0

    @pytest.mark.asyncio
    async def test_lock_dropped_after_error(self) -> None:
        """Should release and drop the lock when the body raises."""
        cache = DocumentCache()

        with pytest.raises(RuntimeError):
            async with cache.hold("a.pdf"):
                raise RuntimeError("failed")

        assert cache.lock_count == 0

    @pytest.mark.asyncio
    async def test_lease_waits_for_hold(self) -> None:
        """Should see the entry a concurrent holder caches before releasing."""
        cache = DocumentCache()
        seen = []

        async def produce() -> None:
            async with cache.hold("a.pdf"):
                await asyncio.sleep(0.01)
                cache.put("a.pdf", _chunks(3))

        async def consume() -> None:
            await asyncio.sleep(0)
            async with cache.lease("a.pdf") as entry:
                seen.append(None if entry is None else len(entry.chunks))

        await asyncio.gather(produce(), consume())

        assert seen == [3]
        assert "a.pdf" not in cache
        assert cache.lock_count == 0

    def test_replacement_keeps_temporary_path(self, tmp_path) -> None:
        """Should carry the temporary file over when an entry is replaced without one."""
        cache = DocumentCache()
        cache.put("a.pdf", _chunks(), source_path=str(tmp_path / "a.pdf"))

        entry = cache.put("a.pdf", _chunks(3))

        assert entry.source_path == str(tmp_path / "a.pdf")
        assert len(entry.chunks) == 3
