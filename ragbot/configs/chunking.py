"""
Chunking configuration settings.

Dependencies: pydantic, pydantic_settings
System role: Default chunk boundaries for the ingestion pipeline
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ChunkingSettings(BaseSettings):
    """Default chunking options."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CHUNKING_",
        case_sensitive=False,
        extra="ignore",
    )

    max_size: int = Field(default=1000, description="Maximum chunk size in characters")
    min_size: int = Field(default=200, description="Minimum chunk size in characters")
    overlap: int = Field(default=100, description="Overlap between consecutive chunks")
    strategy: Literal["fixed", "sentence", "paragraph", "section"] = Field(
        default="paragraph",
        description="Chunking strategy: fixed, sentence, paragraph or section",
    )
