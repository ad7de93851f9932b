"""
Document cache entry model.

Dependencies: pydantic
System role: Short-lived working state between process and query/summarize
"""

import time
from typing import Any

from pydantic import BaseModel, Field

from ragbot.models.chunk import Chunk


class DocumentCacheEntry(BaseModel):
    """Chunks (with embeddings) and metadata for one processed document."""

    chunks: list[Chunk] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: float = Field(default_factory=time.time, description="Creation time (epoch seconds)")
    source_path: str | None = Field(default=None, description="Backing temporary document file")
