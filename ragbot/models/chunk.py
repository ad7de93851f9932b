"""
Chunk domain model.

Represents one bounded, ordered segment of a source document.

Dependencies: pydantic
System role: Unit of work flowing from the chunker to the vector store
"""

from pydantic import BaseModel, ConfigDict, Field


class Chunk(BaseModel):
    """Document chunk produced by one chunking run."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(description="Position within the chunking run (document order)", ge=0)
    content: str = Field(description="Chunk text content")
    start_offset: int = Field(default=0, description="Start character offset in the source text")
    end_offset: int = Field(default=0, description="End character offset (exclusive)")
    page_start: int = Field(default=1, description="Estimated first page", ge=1)
    page_end: int = Field(default=1, description="Estimated last page", ge=1)
    approximate_pages: bool = Field(
        default=True,
        description="Pages are estimated from chunk position, not parsed boundaries",
    )
    is_header: bool = Field(default=False, description="Chunk opens with a detected header")
    header_level: int | None = Field(default=None, description="Header level when is_header")
    paragraph_count: int = Field(default=1, description="Paragraphs packed into the chunk")
    summary: str | None = Field(default=None, description="Short summary of the chunk")
    embedding: list[float] | None = Field(default=None, description="Embedding vector")

    def with_embedding(self, embedding: list[float]) -> "Chunk":
        """Return a copy of this chunk carrying ``embedding``."""
        return self.model_copy(update={"embedding": list(embedding)})
