"""Document chunking: strategies, header detection and extractive summaries."""

from ragbot.core.chunking.chunker import Chunker, estimate_pages
from ragbot.core.chunking.headers import HeaderInfo, detect_header
from ragbot.core.chunking.options import ChunkingOptions, ChunkStrategy
from ragbot.core.chunking.summaries import (
    extractive_summary,
    fallback_chunk_summary,
    recursive_summary,
)

__all__ = [
    "Chunker",
    "ChunkingOptions",
    "ChunkStrategy",
    "HeaderInfo",
    "detect_header",
    "estimate_pages",
    "extractive_summary",
    "fallback_chunk_summary",
    "recursive_summary",
]
