"""
Entity graph enrichment settings.

Settings for the optional Lambda-backed knowledge graph collaborator.

Dependencies: pydantic_settings
System role: Graph enrichment configuration
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GraphSettings(BaseSettings):
    """Graph enrichment configuration (disabled unless explicitly enabled)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GRAPH_",
        case_sensitive=False,
        extra="ignore",
    )

    enabled: bool = Field(default=False, description="Send document/chunk nodes to the graph")
    lambda_function: str = Field(default="chatbotRAG", description="Lambda function name")
    region: str = Field(default="us-east-2", description="AWS region for the Lambda function")
    batch_size: int = Field(default=10, description="Chunk nodes per invocation", ge=1)
    retry_attempts: int = Field(default=3, description="Attempts per batch", ge=1)
