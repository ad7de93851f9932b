"""
Domain models.

Exports: Chunk, SearchHit, DocumentSummary, ContextBundle, DocumentCacheEntry,
result models
"""

from ragbot.models.cache import DocumentCacheEntry
from ragbot.models.chunk import Chunk
from ragbot.models.context import ContextBundle, DocumentSummary
from ragbot.models.results import (
    NO_RESULTS_MESSAGE,
    UNREADABLE_DOCUMENT_MESSAGE,
    BatchOutcome,
    IngestionResult,
    QueryResult,
    SummaryResult,
    UploadOutcome,
)
from ragbot.models.search import AggregatedSearch, ScoreKind, SearchHit

__all__ = [
    "AggregatedSearch",
    "BatchOutcome",
    "Chunk",
    "ContextBundle",
    "DocumentCacheEntry",
    "DocumentSummary",
    "IngestionResult",
    "NO_RESULTS_MESSAGE",
    "QueryResult",
    "ScoreKind",
    "SearchHit",
    "SummaryResult",
    "UNREADABLE_DOCUMENT_MESSAGE",
    "UploadOutcome",
]
