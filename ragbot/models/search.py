"""
Search hit model.

Ephemeral, per-query result after similarity normalisation.

Dependencies: pydantic
System role: Output of the retrieval aggregator, input of the context builder
"""

from typing import Any, Literal

from pydantic import BaseModel, Field

ScoreKind = Literal["similarity", "distance", "computed", "rank"]


class SearchHit(BaseModel):
    """Single ranked hit from one index."""

    key: str = Field(description="Vector key, unique within its index")
    source_index: str = Field(description="Index the hit came from")
    content: str = Field(default="", description="Chunk text recovered from metadata")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Stored chunk metadata")
    rank: int = Field(default=0, description="Rank (per-index before merge, global after)", ge=0)
    similarity: float = Field(description="Comparable similarity in [-1, 1]")
    score_kind: ScoreKind = Field(
        default="similarity",
        description="Where the similarity came from; 'rank' marks a synthetic score",
    )
    distance: float | None = Field(default=None, description="Raw store distance when provided")
    keyword_score: float | None = Field(default=None, description="Raw keyword match score (hybrid search)")
    hybrid_score: float | None = Field(
        default=None,
        description="Blend of similarity and normalised keyword score (hybrid search)",
    )

    @property
    def ranking_score(self) -> float:
        """Score used for ordering: the hybrid score when present, else similarity."""
        return self.hybrid_score if self.hybrid_score is not None else self.similarity

    @property
    def is_synthetic(self) -> bool:
        """True when the similarity was derived from rank order only."""
        return self.score_kind == "rank"

    @property
    def document_id(self) -> str:
        """Grouping key: explicit document id, else filename, else index name."""
        return str(
            self.metadata.get("documentId")
            or self.metadata.get("filename")
            or self.source_index
        )

    @property
    def page_start(self) -> int | None:
        """Start page from metadata, if present."""
        return _as_page(self.metadata.get("pageStart"))

    @property
    def page_end(self) -> int | None:
        """End page from metadata, falling back to the start page."""
        return _as_page(self.metadata.get("pageEnd")) or self.page_start

    @property
    def chunk_index(self) -> int | None:
        """Chunk position within its document, if present."""
        value = self.metadata.get("chunkIndex")
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None


def _as_page(value: Any) -> int | None:
    try:
        page = int(value)
    except (TypeError, ValueError):
        return None
    return page if page > 0 else None


class AggregatedSearch(BaseModel):
    """Merged cross-index result plus which indices answered."""

    hits: list[SearchHit] = Field(default_factory=list, description="Globally ranked hits")
    searched_indices: list[str] = Field(default_factory=list)
    failed_indices: list[str] = Field(default_factory=list)
    mixed_score_regimes: bool = Field(
        default=False,
        description="Both genuine and rank-derived scores were returned",
    )
    synthetic_only: bool = Field(
        default=False,
        description="Every surviving hit carries a rank-derived score",
    )
    section_query: str | None = Field(
        default=None,
        description="Section number the question referred to, when detected",
    )
