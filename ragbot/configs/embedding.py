"""
Embedding configuration settings.

Provider selection, dimensionality, and rate-limit knobs for the
embedding batcher.

Dependencies: pydantic, pydantic_settings
System role: Embedding provider and throttling configuration
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EmbeddingSettings(BaseSettings):
    """Embedding provider and batching configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="EMBEDDING_",
        case_sensitive=False,
        extra="ignore",
    )

    provider: str = Field(
        default="google",
        description="Embedding provider: 'google', 'bedrock' or 'fallback'",
    )
    model_id: str = Field(
        default="models/gemini-embedding-001",
        description="Embedding model identifier for the selected provider",
    )
    bedrock_model_id: str = Field(
        default="amazon.titan-embed-text-v1",
        description="Bedrock model used when provider is 'bedrock'",
    )
    region: str = Field(default="us-east-1", description="AWS region for Bedrock embeddings")
    dimension: int = Field(default=1536, description="Embedding vector dimension", ge=1)
    max_input_chars: int = Field(
        default=8000,
        description="Inputs longer than this are truncated before embedding",
    )

    wave_size: int = Field(default=5, description="Concurrent embedding calls per wave")
    wave_delay_seconds: float = Field(default=0.1, description="Pause between waves", ge=0.0)
    retry_attempts: int = Field(default=3, description="Attempts per item on transient errors", ge=1)
    retry_initial_seconds: float = Field(default=1.0, description="Initial backoff", ge=0.0)
    retry_max_seconds: float = Field(default=10.0, description="Backoff ceiling", ge=0.0)

    @field_validator("wave_size")
    @classmethod
    def clamp_wave_size(cls, value: int) -> int:
        """Keep concurrent calls within the 1..15 ceiling."""
        return max(1, min(value, 15))
