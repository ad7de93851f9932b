"""
Context bundle models.

Citation-grounded retrieval output handed to the calling agent.

Dependencies: pydantic
System role: Output of the context builder
"""

from pydantic import BaseModel, Field

from ragbot.models.search import SearchHit


class DocumentSummary(BaseModel):
    """Per-document aggregate over the hits of one query."""

    document_id: str = Field(description="Document identifier used for grouping")
    relevant_chunks: int = Field(description="Number of hits from this document")
    relevant_pages: list[int] = Field(default_factory=list, description="Sorted distinct pages")
    page_ranges: str = Field(default="", description="Compact page label, e.g. 'pages 1-3, 5'")
    chunk_indices: list[int] = Field(default_factory=list, description="Sorted chunk indices")
    average_score: float = Field(description="Mean similarity of the hits")


class ContextBundle(BaseModel):
    """Ranked hits plus per-document summary, citations and LLM-ready text."""

    chunks: list[SearchHit] = Field(default_factory=list, description="Ranked hits")
    document_summary: list[DocumentSummary] = Field(default_factory=list)
    citations: list[str] = Field(default_factory=list, description="Distinct citation strings")
    context_string: str = Field(default="", description="Rendered context for the prompt")

    @property
    def is_empty(self) -> bool:
        """True when no hit survived retrieval."""
        return not self.chunks
