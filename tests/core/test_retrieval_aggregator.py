"""
Test suite for the cross-index retrieval aggregator.

Covers score normalisation, thresholding, partial index failure,
index discovery, de-duplication and global ranking.

System role: Verification of the retrieval stage
"""

from unittest.mock import AsyncMock

import pytest

from ragbot.boundary.vdb.memory_store import InMemoryVectorStore
from ragbot.boundary.vdb.vector_schemas import StoreHit, VectorRecord
from ragbot.core.exceptions import RetrievalError, VectorStoreError
from ragbot.core.index_manager import vector_key
from ragbot.core.metadata_filter import MetadataFilter
from ragbot.core.retrieval_aggregator import RetrievalAggregator, distance_to_similarity, normalise_hit
from ragbot.models.search import SearchHit

QUERY = [1.0, 0.0]


def _hit(key: str, index: str = "file-a", rank: int = 0, **fields) -> StoreHit:
    metadata = fields.pop("metadata", None) or {
        "content": f"Content for {key} with enough text",
        "documentId": index,
        "chunkIndex": rank,
    }
    return StoreHit(key=key, index_name=index, rank=rank, metadata=metadata, **fields)


def _store(results: dict[str, list[StoreHit] | Exception]) -> AsyncMock:
    """Store stub answering per index name; exceptions are raised."""

    async def query(index_name: str, vector: list[float], top_k: int) -> list[StoreHit]:
        result = results[index_name]
        if isinstance(result, Exception):
            raise result
        return result[:top_k]

    store = AsyncMock()
    store.query.side_effect = query
    store.list_indices.return_value = list(results)
    return store


class TestNormaliseHit:
    """Test score precedence."""

    def test_explicit_score(self) -> None:
        """Should take an explicit score as similarity."""
        hit = normalise_hit(_hit("k", score=0.9, distance=0.5), QUERY)

        assert hit.similarity == 0.9
        assert hit.score_kind == "similarity"

    def test_distance(self) -> None:
        """Should convert a cosine distance with 1 - d."""
        hit = normalise_hit(_hit("k", distance=0.25), QUERY)

        assert hit.similarity == pytest.approx(0.75)
        assert hit.score_kind == "distance"
        assert hit.distance == 0.25

    def test_computed_from_vector(self) -> None:
        """Should compute cosine against a returned vector."""
        hit = normalise_hit(_hit("k", vector=[0.0, 1.0]), QUERY)

        assert hit.similarity == pytest.approx(0.0)
        assert hit.score_kind == "computed"

    def test_rank_derived(self) -> None:
        """Should synthesise 1 - rank * 0.1 and tag it."""
        hit = normalise_hit(_hit("k", rank=3), QUERY)

        assert hit.similarity == pytest.approx(0.7)
        assert hit.is_synthetic

    def test_content_falls_back_to_text(self) -> None:
        """Should read content from the 'text' field when 'content' is absent."""
        hit = normalise_hit(_hit("k", metadata={"text": "stored under text"}), QUERY)

        assert hit.content == "stored under text"


class TestDiscoverIndices:
    """Test index discovery."""

    @pytest.mark.asyncio
    async def test_excludes_query_indices(self) -> None:
        """Should skip ad-hoc query indices."""
        store = _store({"file-a": [], "query-123": [], "file-b": []})

        assert await RetrievalAggregator(store).discover_indices() == ["file-a", "file-b"]

    @pytest.mark.asyncio
    async def test_patterns(self) -> None:
        """Should filter by glob patterns."""
        store = _store({"file-report-2024-01-01": [], "file-notes-2024-01-01": []})

        names = await RetrievalAggregator(store).discover_indices(["file-report-*"])

        assert names == ["file-report-2024-01-01"]

    @pytest.mark.asyncio
    async def test_falls_back_to_default(self) -> None:
        """Should use the shared default index when nothing matches."""
        store = _store({"query-1": []})

        assert await RetrievalAggregator(store, default_index="queries").discover_indices() == [
            "queries"
        ]

    @pytest.mark.asyncio
    async def test_listing_failure_uses_default(self) -> None:
        """Should not raise when listing fails."""
        store = AsyncMock()
        store.list_indices.side_effect = VectorStoreError("denied", operation="list")

        assert await RetrievalAggregator(store).discover_indices() == ["queries"]


class TestSearch:
    """Test multi-index search."""

    @pytest.mark.asyncio
    async def test_merges_and_ranks_across_indices(self) -> None:
        """Should sort globally by similarity and renumber ranks."""
        store = _store(
            {
                "file-a": [_hit("a0", "file-a", 0, distance=0.2), _hit("a1", "file-a", 1, distance=0.25)],
                "file-b": [_hit("b0", "file-b", 0, distance=0.1)],
            }
        )

        result = await RetrievalAggregator(store, min_similarity=0.5).search(QUERY)

        assert [hit.key for hit in result.hits] == ["b0", "a0", "a1"]
        assert [hit.rank for hit in result.hits] == [0, 1, 2]
        assert result.searched_indices == ["file-a", "file-b"]

    @pytest.mark.asyncio
    async def test_threshold_is_strict(self) -> None:
        """Should drop hits at or below the threshold."""
        store = _store(
            {"file-a": [_hit("at", "file-a", 0, score=0.7), _hit("above", "file-a", 1, score=0.71)]}
        )

        result = await RetrievalAggregator(store, min_similarity=0.7).search(QUERY)

        assert [hit.key for hit in result.hits] == ["above"]

    @pytest.mark.asyncio
    async def test_failing_index_is_skipped(self) -> None:
        """Should return hits from healthy indices and list the failed one."""
        store = _store(
            {
                "file-a": [_hit("a0", "file-a", 0, score=0.9)],
                "file-b": VectorStoreError("boom", operation="query"),
            }
        )

        result = await RetrievalAggregator(store).search(QUERY)

        assert [hit.key for hit in result.hits] == ["a0"]
        assert result.failed_indices == ["file-b"]
        assert result.searched_indices == ["file-a"]

    @pytest.mark.asyncio
    async def test_short_content_is_dropped(self) -> None:
        """Should ignore hits with fewer than 10 content characters."""
        store = _store({"file-a": [_hit("tiny", metadata={"content": "  short  "}, score=0.99)]})

        result = await RetrievalAggregator(store).search(QUERY)

        assert result.hits == []

    @pytest.mark.asyncio
    async def test_rank_scores_are_not_thresholded(self) -> None:
        """Should keep rank-derived hits when no index returned real scores."""
        store = _store({"file-a": [_hit(f"r{i}", "file-a", i) for i in range(6)]})

        result = await RetrievalAggregator(store, min_similarity=0.7).search(QUERY)

        assert len(result.hits) == 6
        assert result.synthetic_only is True
        assert result.mixed_score_regimes is False

    @pytest.mark.asyncio
    async def test_mixed_regimes_prefer_genuine_scores(self) -> None:
        """Should drop rank-derived hits next to genuine ones and flag the mix."""
        store = _store(
            {
                "file-a": [_hit("genuine", "file-a", 0, score=0.8)],
                "file-b": [_hit("ranked", "file-b", 0)],
            }
        )

        result = await RetrievalAggregator(store).search(QUERY)

        assert [hit.key for hit in result.hits] == ["genuine"]
        assert result.mixed_score_regimes is True
        assert result.synthetic_only is False

    @pytest.mark.asyncio
    async def test_duplicate_keys_keep_best(self) -> None:
        """Should keep the best-scoring hit per key."""
        store = _store(
            {
                "file-a": [_hit("same", "file-a", 0, score=0.75)],
                "file-b": [_hit("same", "file-b", 0, score=0.95)],
            }
        )

        result = await RetrievalAggregator(store).search(QUERY)

        assert len(result.hits) == 1
        assert result.hits[0].source_index == "file-b"

    @pytest.mark.asyncio
    async def test_global_top_k(self) -> None:
        """Should truncate to global_top_k after merging."""
        store = _store(
            {
                "file-a": [_hit(f"a{i}", "file-a", i, score=0.9 - i * 0.01) for i in range(5)],
                "file-b": [_hit(f"b{i}", "file-b", i, score=0.95 - i * 0.01) for i in range(5)],
            }
        )

        result = await RetrievalAggregator(store).search(QUERY, global_top_k=3)

        assert [hit.key for hit in result.hits] == ["b0", "b1", "b2"]

    @pytest.mark.asyncio
    async def test_discovers_indices_when_none_given(self) -> None:
        """Should search every discovered document index."""
        store = _store({"file-a": [_hit("a0", score=0.9)], "query-x": [_hit("q0", score=0.99)]})

        result = await RetrievalAggregator(store).search(QUERY)

        assert [hit.key for hit in result.hits] == ["a0"]
        assert result.searched_indices == ["file-a"]

    @pytest.mark.asyncio
    async def test_against_memory_store(self) -> None:
        """Should rank by computed cosine with the in-memory store."""
        store = InMemoryVectorStore()
        await store.create_index("file-a", 2)
        await store.upsert(
            "file-a",
            [
                VectorRecord(key="close", embedding=[0.9, 0.1], metadata={"content": "close match text"}),
                VectorRecord(key="far", embedding=[0.0, 1.0], metadata={"content": "far away text here"}),
            ],
        )

        result = await RetrievalAggregator(store, min_similarity=0.5).search(QUERY)

        assert [hit.key for hit in result.hits] == ["close"]
        assert result.hits[0].score_kind == "computed"

    @pytest.mark.asyncio
    async def test_all_indices_failing_raises(self) -> None:
        """Should raise RetrievalError listing the failed indices when nothing answered."""
        store = _store(
            {
                "file-a": VectorStoreError("boom", operation="query"),
                "file-b": VectorStoreError("boom", operation="query"),
            }
        )

        with pytest.raises(RetrievalError, match="All 2 index queries failed") as excinfo:
            await RetrievalAggregator(store).search(QUERY)

        assert excinfo.value.details["failed_indices"] == ["file-a", "file-b"]

    @pytest.mark.asyncio
    async def test_euclidean_distances(self) -> None:
        """Should map euclidean distances onto the cosine scale."""
        store = _store({"file-a": [_hit("near", distance=0.5), _hit("far", "file-a", 1, distance=1.2)]})

        result = await RetrievalAggregator(store, min_similarity=0.5, distance_metric="euclidean").search(QUERY)

        assert [hit.key for hit in result.hits] == ["near"]
        assert result.hits[0].similarity == pytest.approx(0.875)


class TestDistanceToSimilarity:
    """Test per-metric distance conversion."""

    def test_cosine(self) -> None:
        """Should return 1 - d for cosine distance."""
        assert distance_to_similarity(0.25, "cosine") == pytest.approx(0.75)

    def test_euclidean(self) -> None:
        """Should return 1 - d^2 / 2 for euclidean distance."""
        assert distance_to_similarity(0.0, "euclidean") == pytest.approx(1.0)
        assert distance_to_similarity(2 ** 0.5, "euclidean") == pytest.approx(0.0)
        assert distance_to_similarity(2.0, "euclidean") == pytest.approx(-1.0)

    def test_unknown_metric(self) -> None:
        """Should refuse metrics it cannot convert."""
        with pytest.raises(ValueError, match="Unsupported distance metric"):
            distance_to_similarity(0.1, "dotproduct")

    def test_aggregator_rejects_unknown_metric(self) -> None:
        """Should fail at construction rather than mis-score every hit."""
        with pytest.raises(ValueError, match="Unsupported distance metric"):
            RetrievalAggregator(AsyncMock(), distance_metric="dotproduct")


class TestHybridAndFilters:
    """Test keyword blending and metadata filtering during search."""

    @pytest.mark.asyncio
    async def test_keyword_matches_reorder_hits(self) -> None:
        """Should lift a slightly weaker vector match that contains the keywords."""
        store = _store(
            {
                "file-a": [
                    _hit("vague", "file-a", 0, score=0.80, metadata={"content": "General notes about many things"}),
                    _hit(
                        "exact",
                        "file-a",
                        1,
                        score=0.75,
                        metadata={"content": "The refund policy covers refund timing and policy limits"},
                    ),
                ]
            }
        )
        aggregator = RetrievalAggregator(store, min_similarity=0.5)

        vector_only = await aggregator.search(QUERY)
        hybrid = await aggregator.search(QUERY, query_text="refund policy")

        assert [hit.key for hit in vector_only.hits] == ["vague", "exact"]
        assert [hit.key for hit in hybrid.hits] == ["exact", "vague"]
        assert hybrid.hits[0].keyword_score == 8
        assert hybrid.hits[0].hybrid_score == pytest.approx(0.7 * 0.75 + 0.3 * 0.8)
        assert hybrid.hits[0].similarity == pytest.approx(0.75)
        assert vector_only.hits[0].hybrid_score is None

    @pytest.mark.asyncio
    async def test_section_questions_weight_keywords(self) -> None:
        """Should use the section vector weight when the question names a section."""
        store = _store(
            {
                "file-a": [
                    _hit("other", "file-a", 0, score=0.9, metadata={"content": "Shipping takes five working days."}),
                    _hit(
                        "section",
                        "file-a",
                        1,
                        score=0.6,
                        metadata={
                            "content": "4.2 Refunds are issued within thirty days.",
                            "sectionNumber": "4.2",
                            "sectionTitle": "4.2 Refunds",
                        },
                    ),
                ]
            }
        )

        result = await RetrievalAggregator(store, min_similarity=0.5).search(
            QUERY, query_text="What does section 4.2 say?"
        )

        assert result.section_query == "4.2"
        assert [hit.key for hit in result.hits] == ["section", "other"]
        assert result.hits[0].hybrid_score == pytest.approx(0.3 * 0.6 + 0.7 * 1.0)
        assert result.hits[1].hybrid_score == pytest.approx(0.3 * 0.9)

    @pytest.mark.asyncio
    async def test_metadata_filter_by_page_range(self) -> None:
        """Should keep only hits whose pages overlap the requested range."""
        hits = [
            _hit(
                f"p{page}",
                "file-a",
                page,
                score=0.9 - page * 0.01,
                metadata={"content": f"Text printed on page {page}", "pageStart": page, "pageEnd": page},
            )
            for page in range(1, 6)
        ]
        store = _store({"file-a": hits})

        result = await RetrievalAggregator(store, min_similarity=0.5).search(
            QUERY, metadata_filter=MetadataFilter(page_range=(2, 3))
        )

        assert [hit.key for hit in result.hits] == ["p2", "p3"]


class TestFetchNeighbours:
    """Test adjacent chunk lookup for context expansion."""

    @staticmethod
    async def _store_with_chunks(count: int) -> InMemoryVectorStore:
        store = InMemoryVectorStore()
        await store.create_index("file-doc", 2)
        await store.upsert(
            "file-doc",
            [
                VectorRecord(
                    key=vector_key("doc", i),
                    embedding=[1.0, float(i)],
                    metadata={
                        "content": f"Chunk {i} of the document body",
                        "documentId": "doc",
                        "chunkIndex": i,
                        "totalChunks": count,
                    },
                )
                for i in range(count)
            ],
        )
        return store

    @staticmethod
    def _primary(index: int, total: int) -> SearchHit:
        return SearchHit(
            key=vector_key("doc", index),
            source_index="file-doc",
            content=f"Chunk {index} of the document body",
            metadata={"documentId": "doc", "chunkIndex": index, "totalChunks": total},
            similarity=0.9,
        )

    @pytest.mark.asyncio
    async def test_fetches_both_sides(self) -> None:
        """Should return the chunks before and after a hit, scored against the query."""
        store = await self._store_with_chunks(4)

        neighbours = await RetrievalAggregator(store).fetch_neighbours([self._primary(1, 4)], QUERY)

        assert sorted(hit.chunk_index for hit in neighbours) == [0, 2]
        assert all(hit.score_kind == "computed" for hit in neighbours)
        by_index = {hit.chunk_index: hit for hit in neighbours}
        assert by_index[0].similarity == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_respects_document_bounds(self) -> None:
        """Should not look before the first chunk or past the last."""
        store = await self._store_with_chunks(3)

        neighbours = await RetrievalAggregator(store).fetch_neighbours(
            [self._primary(0, 3), self._primary(2, 3)], QUERY
        )

        assert [hit.chunk_index for hit in neighbours] == [1]

    @pytest.mark.asyncio
    async def test_skips_chunks_already_retrieved(self) -> None:
        """Should not fetch a neighbour that is itself a hit."""
        store = await self._store_with_chunks(2)

        neighbours = await RetrievalAggregator(store).fetch_neighbours(
            [self._primary(0, 2), self._primary(1, 2)], QUERY
        )

        assert neighbours == []

    @pytest.mark.asyncio
    async def test_lookup_failure_is_skipped(self) -> None:
        """Should return no neighbours when the store lookup fails."""
        store = AsyncMock()
        store.get_vectors.side_effect = VectorStoreError("boom", operation="get_vectors")

        neighbours = await RetrievalAggregator(store).fetch_neighbours([self._primary(1, 4)], QUERY)

        assert neighbours == []
        store.get_vectors.assert_awaited_once()
