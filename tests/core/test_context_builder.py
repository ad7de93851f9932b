"""
Test suite for citation-grounded context assembly.

System role: Verification of the final retrieval stage
"""

import pytest

from ragbot.core.context_builder import (
    ContextBuilder,
    citation_for,
    format_page_ranges,
    page_reference,
)
from ragbot.models.search import SearchHit


def _hit(
    key: str,
    document_id: str,
    similarity: float,
    page_start: int | None = None,
    page_end: int | None = None,
    chunk_index: int | None = None,
    rank: int = 0,
) -> SearchHit:
    metadata = {"documentId": document_id}
    if page_start is not None:
        metadata["pageStart"] = page_start
    if page_end is not None:
        metadata["pageEnd"] = page_end
    if chunk_index is not None:
        metadata["chunkIndex"] = chunk_index
    return SearchHit(
        key=key,
        source_index=f"file-{document_id}",
        content=f"Text of {key}",
        metadata=metadata,
        similarity=similarity,
        rank=rank,
    )


@pytest.fixture
def builder() -> ContextBuilder:
    return ContextBuilder()


class TestPageLabels:
    """Test page reference formatting."""

    @pytest.mark.parametrize(
        ("pages", "expected"),
        [
            ([1, 2, 3, 5], "pages 1-3, 5"),
            ([4], "page 4"),
            ([1, 2], "pages 1-2"),
            ([3, 1, 1], "pages 1, 3"),
            ([], ""),
        ],
    )
    def test_format_page_ranges(self, pages: list[int], expected: str) -> None:
        """Should compress consecutive pages into ranges."""
        assert format_page_ranges(pages) == expected

    def test_page_reference(self) -> None:
        """Should render single pages, spans and missing pages."""
        assert page_reference(3) == "page 3"
        assert page_reference(3, 3) == "page 3"
        assert page_reference(3, 5) == "pages 3-5"
        assert page_reference(None) == ""

    def test_citation_without_pages(self) -> None:
        """Should fall back to the bare document id."""
        assert citation_for(_hit("k", "notes.txt", 0.9)) == "notes.txt"


class TestBuild:
    """Test ContextBundle assembly."""

    def test_empty(self, builder: ContextBuilder) -> None:
        """Should return an empty bundle for no hits."""
        bundle = builder.build([])

        assert bundle.is_empty
        assert bundle.context_string == ""
        assert bundle.citations == []

    def test_groups_by_document(self, builder: ContextBuilder) -> None:
        """Should summarise each document and order them by mean similarity."""
        hits = [
            _hit("a0", "a.pdf", 0.9, 1, 2, chunk_index=0, rank=0),
            _hit("b0", "b.pdf", 0.95, 5, 5, chunk_index=2, rank=1),
            _hit("a1", "a.pdf", 0.8, 3, 3, chunk_index=1, rank=2),
        ]

        bundle = builder.build(hits)

        assert [s.document_id for s in bundle.document_summary] == ["b.pdf", "a.pdf"]
        summary_a = bundle.document_summary[1]
        assert summary_a.relevant_chunks == 2
        assert summary_a.relevant_pages == [1, 2, 3]
        assert summary_a.page_ranges == "pages 1-3"
        assert summary_a.chunk_indices == [0, 1]
        assert summary_a.average_score == pytest.approx(0.85)
        assert bundle.chunks == hits

    def test_context_string(self, builder: ContextBuilder) -> None:
        """Should render document headers and page-referenced passages."""
        hits = [
            _hit("a1", "a.pdf", 0.8, 3, 3, rank=1),
            _hit("a0", "a.pdf", 0.9, 1, 2, rank=0),
        ]

        bundle = builder.build(hits)

        assert bundle.context_string == (
            "### From a.pdf (pages 1-3):\n\n"
            "Text of a0 [pages 1-2]\n\n"
            "Text of a1 [page 3]"
        )

    def test_every_hit_appears_once(self, builder: ContextBuilder) -> None:
        """Should include each hit's content exactly once."""
        hits = [_hit(f"k{i}", f"doc{i % 2}", 0.9 - i * 0.01, i + 1) for i in range(6)]

        bundle = builder.build(hits)

        for hit in hits:
            assert bundle.context_string.count(f"{hit.content} [") == 1

    def test_citations_are_distinct(self, builder: ContextBuilder) -> None:
        """Should de-duplicate citations, keeping first-seen order."""
        hits = [
            _hit("a0", "a.pdf", 0.9, 2, 2, rank=0),
            _hit("a1", "a.pdf", 0.85, 2, 2, rank=1),
            _hit("a2", "a.pdf", 0.8, 4, 4, rank=2),
        ]

        bundle = builder.build(hits)

        assert bundle.citations == ["a.pdf (page 2)", "a.pdf (page 4)"]


class TestBuildExpanded:
    """Test neighbour expansion."""

    def test_adds_adjacent_chunks(self, builder: ContextBuilder) -> None:
        """Should pull in chunk index +/- 1 at a reduced score, in document order."""
        pool = [
            _hit("a-0", "a.pdf", 0.5, 1, chunk_index=0),
            _hit("a-1", "a.pdf", 0.9, 2, chunk_index=1),
            _hit("a-2", "a.pdf", 0.6, 3, chunk_index=2),
            _hit("a-5", "a.pdf", 0.6, 6, chunk_index=5),
        ]

        bundle = builder.build_expanded([pool[1]], pool)

        assert [hit.key for hit in bundle.chunks] == ["a-0", "a-1", "a-2"]
        assert bundle.chunks[0].similarity == pytest.approx(0.4)
        assert bundle.chunks[1].similarity == pytest.approx(0.9)
        assert bundle.document_summary[0].relevant_pages == [1, 2, 3]

    def test_no_duplicates_between_primary_hits(self, builder: ContextBuilder) -> None:
        """Should not add a neighbour that is already a primary hit."""
        pool = [
            _hit("a-0", "a.pdf", 0.8, 1, chunk_index=0),
            _hit("a-1", "a.pdf", 0.9, 2, chunk_index=1),
        ]

        bundle = builder.build_expanded(pool, pool)

        assert [hit.key for hit in bundle.chunks] == ["a-0", "a-1"]
        assert bundle.chunks[0].similarity == pytest.approx(0.8)
