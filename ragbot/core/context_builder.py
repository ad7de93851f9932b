"""
Citation-grounded context assembly.

Groups ranked hits by source document, computes per-document page
coverage and mean similarity, and renders an LLM-ready context string
with inline page references plus a de-duplicated citation list.

Dependencies: ragbot.models
System role: Final retrieval stage before the agent prompt
"""

import logging
from collections import OrderedDict

from ragbot.models.context import ContextBundle, DocumentSummary
from ragbot.models.search import SearchHit

logger = logging.getLogger(__name__)

ADJACENT_SCORE_FACTOR = 0.8


def page_reference(page_start: int | None, page_end: int | None = None) -> str:
    """``"page N"`` or ``"pages N-M"``; empty when no page is known."""
    if not page_start:
        return ""
    if page_end and page_end != page_start:
        return f"pages {page_start}-{page_end}"
    return f"page {page_start}"


def citation_for(hit: SearchHit) -> str:
    """``"<documentId> (<pageReference>)"``, or the bare id without pages."""
    reference = page_reference(hit.page_start, hit.page_end)
    return f"{hit.document_id} ({reference})" if reference else hit.document_id


def format_page_ranges(pages: list[int]) -> str:
    """
    Compact label for a set of pages.

    >>> format_page_ranges([1, 2, 3, 5])
    'pages 1-3, 5'
    """
    pages = sorted(set(pages))
    if not pages:
        return ""
    if len(pages) == 1:
        return f"page {pages[0]}"

    ranges = []
    start = end = pages[0]
    for page in pages[1:] + [None]:
        if page is not None and page == end + 1:
            end = page
            continue
        ranges.append(str(start) if start == end else f"{start}-{end}")
        if page is not None:
            start = end = page
    return f"pages {', '.join(ranges)}"


class ContextBuilder:
    """Builds ContextBundle objects from ranked hits."""

    def build(self, hits: list[SearchHit]) -> ContextBundle:
        """
        Assemble summaries, citations and context text.

        Every hit appears in the context string exactly once.
        """
        if not hits:
            return ContextBundle()

        groups: OrderedDict[str, list[SearchHit]] = OrderedDict()
        for hit in hits:
            groups.setdefault(hit.document_id, []).append(hit)

        summaries = []
        for document_id, group in groups.items():
            pages = set()
            for hit in group:
                if hit.page_start:
                    pages.update(range(hit.page_start, (hit.page_end or hit.page_start) + 1))
            chunk_indices = sorted(h.chunk_index for h in group if h.chunk_index is not None)
            summaries.append(
                DocumentSummary(
                    document_id=document_id,
                    relevant_chunks=len(group),
                    relevant_pages=sorted(pages),
                    page_ranges=format_page_ranges(list(pages)),
                    chunk_indices=chunk_indices,
                    average_score=sum(h.similarity for h in group) / len(group),
                )
            )
        summaries.sort(key=lambda s: (-s.average_score, s.document_id))

        parts = []
        citations: list[str] = []
        for summary in summaries:
            label = f" ({summary.page_ranges})" if summary.page_ranges else ""
            parts.append(f"### From {summary.document_id}{label}:")
            ordered = sorted(groups[summary.document_id], key=lambda h: (h.page_start or 0, h.rank))
            for hit in ordered:
                reference = page_reference(hit.page_start, hit.page_end)
                parts.append(f"{hit.content} [{reference}]" if reference else hit.content)
                citation = citation_for(hit)
                if citation not in citations:
                    citations.append(citation)

        logger.debug(
            f"{__name__}:build - {len(hits)} hits across {len(summaries)} documents"
        )
        return ContextBundle(
            chunks=list(hits),
            document_summary=summaries,
            citations=citations,
            context_string="\n\n".join(parts).strip(),
        )

    def build_expanded(self, primary: list[SearchHit], pool: list[SearchHit]) -> ContextBundle:
        """
        Build with neighbouring chunks (chunk index +/- 1 of the same document).

        Neighbours found in ``pool`` are added at 0.8x their similarity.
        """
        by_position = {
            (hit.document_id, hit.chunk_index): hit
            for hit in pool
            if hit.chunk_index is not None
        }
        seen: set[str] = set()
        selected: list[SearchHit] = []
        for hit in primary:
            if hit.key not in seen:
                seen.add(hit.key)
                selected.append(hit)

        for hit in primary:
            if hit.chunk_index is None:
                continue
            for offset in (-1, 1):
                neighbour = by_position.get((hit.document_id, hit.chunk_index + offset))
                if neighbour is not None and neighbour.key not in seen:
                    seen.add(neighbour.key)
                    selected.append(
                        neighbour.model_copy(
                            update={"similarity": neighbour.similarity * ADJACENT_SCORE_FACTOR}
                        )
                    )

        selected.sort(key=lambda h: (h.document_id, h.chunk_index or 0))
        return self.build(selected)
