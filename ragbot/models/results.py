"""
Result-with-status models returned across component boundaries.

Each operation reports its outcome as data rather than raising, so the
agent layer can always render something to the user. ``status`` is the
tag; ``success`` is derived from it for JSON consumers.

Dependencies: pydantic
System role: Typed tool/pipeline outputs
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, computed_field

from ragbot.models.chunk import Chunk
from ragbot.models.context import ContextBundle

NO_RESULTS_MESSAGE = "No relevant content found"
UNREADABLE_DOCUMENT_MESSAGE = "Could not process this document"


class UploadOutcome(BaseModel):
    """Requested vs. upserted counts for one upload."""

    index_name: str
    requested: int = Field(ge=0)
    upserted: int = Field(ge=0)
    failed_keys: list[str] = Field(default_factory=list)

    @computed_field
    @property
    def status(self) -> Literal["succeeded", "partial", "failed"]:
        """Outcome tag derived from the counts."""
        if self.upserted >= self.requested:
            return "succeeded"
        if self.upserted > 0:
            return "partial"
        return "failed"

    @property
    def shortfall(self) -> int:
        """Number of vectors not confirmed by the store."""
        return max(self.requested - self.upserted, 0)


class BatchOutcome(BaseModel):
    """Outcome of one bounded-retry batch call."""

    status: Literal["succeeded", "failed"]
    attempts: int = Field(ge=0)
    value: Any = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        """True when the batch call eventually succeeded."""
        return self.status == "succeeded"


class IngestionResult(BaseModel):
    """Outcome of processing one document."""

    status: Literal["success", "failed"]
    document_id: str
    filename: str
    index_name: str | None = None
    total_chunks: int = 0
    pages: int | None = None
    upload: UploadOutcome | None = None
    chunks: list[Chunk] = Field(default_factory=list, description="Preview of the first chunks")
    processing_time_ms: float = 0.0
    message: str = ""
    error: str | None = None

    @computed_field
    @property
    def success(self) -> bool:
        """Convenience flag for JSON consumers."""
        return self.status == "success"


class QueryResult(BaseModel):
    """Outcome of a retrieval query: chunks, explicit empty, or failure."""

    status: Literal["success_with_chunks", "success_empty", "failed"]
    question: str
    total_similar_chunks: int = 0
    bundle: ContextBundle = Field(default_factory=ContextBundle)
    searched_indices: list[str] = Field(default_factory=list)
    failed_indices: list[str] = Field(default_factory=list)
    mixed_score_regimes: bool = Field(
        default=False,
        description="Genuine and rank-derived scores were both present",
    )
    synthetic_only: bool = Field(
        default=False,
        description="Ranking rests on rank-derived scores only; similarities are not comparable",
    )
    section_query: str | None = Field(
        default=None,
        description="Section number the question referred to, when detected",
    )
    embedding_dimension: int | None = None
    message: str = ""
    error: str | None = None

    @computed_field
    @property
    def success(self) -> bool:
        """True for both the with-chunks and the empty outcome."""
        return self.status != "failed"


class SummaryResult(BaseModel):
    """Outcome of summarizing one document."""

    status: Literal["success", "failed"]
    filename: str
    total_chunks: int = 0
    summary: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error: str | None = None

    @computed_field
    @property
    def success(self) -> bool:
        """Convenience flag for JSON consumers."""
        return self.status == "success"
