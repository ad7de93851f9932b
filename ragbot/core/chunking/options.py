"""
Chunking options and strategy selection.

Dependencies: pydantic
System role: Validated input contract for the chunker
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ragbot.core.exceptions import ChunkingError


class ChunkStrategy(str, Enum):
    """Boundary policy used to cut a document into chunks."""

    FIXED = "fixed"
    SENTENCE = "sentence"
    PARAGRAPH = "paragraph"
    SECTION = "section"


class ChunkingOptions(BaseModel):
    """Chunk size bounds, overlap and strategy."""

    model_config = ConfigDict(frozen=True)

    max_size: int = Field(default=1000, description="Maximum chunk size in characters")
    min_size: int = Field(default=200, description="Minimum size of non-final chunks")
    overlap: int = Field(default=100, description="Characters carried into the next chunk")
    strategy: ChunkStrategy = Field(default=ChunkStrategy.PARAGRAPH)

    def validate_bounds(self) -> None:
        """
        Check the size invariants.

        Raises:
            ChunkingError: When max_size > min_size > 0 or 0 <= overlap < max_size fails
        """
        if self.min_size <= 0:
            raise ChunkingError("min_size must be positive", option="min_size")
        if self.max_size <= self.min_size:
            raise ChunkingError("max_size must be greater than min_size", option="max_size")
        if self.overlap < 0 or self.overlap >= self.max_size:
            raise ChunkingError("overlap must be in [0, max_size)", option="overlap")
