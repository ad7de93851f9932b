"""
Embedder factory.

Builds the configured provider embeddings wrapped with input truncation.
Missing credentials or an unusable provider never stop the pipeline:
the deterministic fallback embedder is returned with a warning.

Dependencies: langchain_google_genai, langchain_aws, boto3, python-dotenv
System role: Embedding provider selection
"""

import logging
import os

import boto3
from dotenv import load_dotenv
from langchain_core.embeddings import Embeddings

from ragbot.boundary.embeddings.fallback import DeterministicFallbackEmbeddings
from ragbot.boundary.embeddings.truncating import TruncatingEmbeddings
from ragbot.configs import Settings, get_settings

load_dotenv()
logger = logging.getLogger(__name__)

GOOGLE_KEY_VARS = ("GOOGLE_API_KEY", "GEMINI_API_KEY")


def _google_embeddings(settings: Settings) -> Embeddings | None:
    api_key = next((os.getenv(var) for var in GOOGLE_KEY_VARS if os.getenv(var)), None)
    if not api_key:
        logger.warning(f"{__name__}:get_embedder - No Google API key found")
        return None

    from ragbot.boundary.embeddings.embeddings_wrapper import FixedDimensionEmbeddings

    return FixedDimensionEmbeddings(
        model=settings.embedding.model_id,
        output_dimensionality=settings.embedding.dimension,
        google_api_key=api_key,
    )


def _bedrock_embeddings(settings: Settings) -> Embeddings | None:
    if boto3.Session().get_credentials() is None:
        logger.warning(f"{__name__}:get_embedder - No AWS credentials found for Bedrock")
        return None

    from langchain_aws import BedrockEmbeddings

    return BedrockEmbeddings(
        model_id=settings.embedding.bedrock_model_id,
        region_name=settings.embedding.region,
    )


def get_embedder(settings: Settings | None = None) -> Embeddings:
    """
    Create the embedder for the configured provider.

    Args:
        settings: Application settings (defaults to get_settings())

    Returns:
        Embeddings: Truncating provider embeddings, or the deterministic fallback
    """
    settings = settings or get_settings()
    config = settings.embedding
    provider = config.provider.lower()
    builders = {"google": _google_embeddings, "bedrock": _bedrock_embeddings}

    inner: Embeddings | None = None
    if provider in builders:
        try:
            inner = builders[provider](settings)
        except (ImportError, ValueError) as e:
            logger.warning(f"{__name__}:get_embedder - {provider} embeddings unavailable: {e}")
    elif provider != "fallback":
        logger.warning(f"{__name__}:get_embedder - Unknown embedding provider '{provider}'")

    if inner is None:
        logger.warning(
            f"{__name__}:get_embedder - Using deterministic fallback embeddings "
            f"(dimension={config.dimension}); retrieval quality is degraded"
        )
        return DeterministicFallbackEmbeddings(config.dimension)

    logger.info(f"{__name__}:get_embedder - Using {provider} embeddings (dimension={config.dimension})")
    return TruncatingEmbeddings(inner, max_chars=config.max_input_chars)
