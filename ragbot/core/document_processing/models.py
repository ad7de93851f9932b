"""
Document processing models.

Dependencies: pydantic
System role: Parser output handed to the chunker
"""

from typing import Any

from pydantic import BaseModel, Field


class ParsedDocument(BaseModel):
    """Extracted text of one source document."""

    text: str = Field(description="Full extracted text, pages joined by blank lines")
    pages: int = Field(default=1, description="Page count (estimated for plain text)", ge=1)
    metadata: dict[str, Any] = Field(default_factory=dict, description="Loader metadata")
