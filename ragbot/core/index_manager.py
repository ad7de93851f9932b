"""
Per-document index management.

Derives deterministic index names and vector keys from document ids,
creates indices idempotently, builds denormalised vector records from
embedded chunks and uploads them in bounded-retry batches.

Dependencies: ragbot.boundary.vdb, ragbot.core.retry
System role: Third stage of ingestion (index + upload)
"""

import logging
import re
from datetime import date, datetime, timezone
from pathlib import PurePath

from ragbot.boundary.vdb.base import VectorIndexStore
from ragbot.boundary.vdb.vector_schemas import VectorRecord
from ragbot.configs import Settings
from ragbot.core.exceptions import EmbeddingError, IndexCreationError, VectorStoreError
from ragbot.core.retry import run_with_retry
from ragbot.models.chunk import Chunk
from ragbot.models.results import UploadOutcome

logger = logging.getLogger(__name__)

INDEX_PREFIX = "file-"
INDEX_NAME_LIMIT = 63
DEFAULT_SLUG = "document"
_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_SECTION_NUMBER = re.compile(r"^(?:(?:chapter|section|part)\s+)?(\d+(?:\.\d+)*)", re.IGNORECASE)
MAX_SECTION_TITLE = 100


def slugify(value: str) -> str:
    """Lowercase, map non-alphanumerics to '-', collapse repeats, trim dashes."""
    return _NON_ALNUM.sub("-", value.lower()).strip("-")


def document_slug(document_id: str) -> str:
    """Slug of a document id or filename with its extension removed."""
    path = PurePath(document_id)
    stem = path.stem if path.suffix else path.name
    return slugify(stem) or DEFAULT_SLUG


def index_name_for(document_id: str, when: date | None = None) -> str:
    """
    Index name ``file-<slug>-<YYYY-MM-DD>`` for a document.

    Args:
        document_id: Document id or filename
        when: Date stamp (defaults to today, UTC)

    Returns:
        str: Index name of at most 63 characters
    """
    stamp = (when or datetime.now(timezone.utc)).strftime("%Y-%m-%d")
    budget = INDEX_NAME_LIMIT - len(INDEX_PREFIX) - len(stamp) - 1
    slug = document_slug(document_id)[:budget].rstrip("-") or DEFAULT_SLUG
    return f"{INDEX_PREFIX}{slug}-{stamp}"


def vector_key(document_id: str, chunk_index: int) -> str:
    """Stable vector key ``<slug>-chunk-<i>``; re-uploads overwrite by key."""
    return f"{document_slug(document_id)}-chunk-{chunk_index}"


class IndexManager:
    """Creates per-document indices and uploads chunk vectors."""

    def __init__(
        self,
        store: VectorIndexStore,
        dimension: int = 1536,
        metric: str = "cosine",
        batch_size: int = 25,
        max_metadata_content: int = 1000,
        retry_attempts: int = 3,
        retry_initial: float = 1.0,
    ) -> None:
        self.store = store
        self.dimension = dimension
        self.metric = metric
        self.batch_size = max(1, batch_size)
        self.max_metadata_content = max_metadata_content
        self.retry_attempts = retry_attempts
        self.retry_initial = retry_initial

    @classmethod
    def from_settings(cls, store: VectorIndexStore, settings: Settings) -> "IndexManager":
        return cls(
            store,
            dimension=settings.embedding.dimension,
            metric=settings.vector_store.distance_metric,
            batch_size=settings.vector_store.upload_batch_size,
            max_metadata_content=settings.vector_store.max_metadata_content,
            retry_attempts=settings.embedding.retry_attempts,
            retry_initial=settings.embedding.retry_initial_seconds,
        )

    async def ensure_index(self, name: str, dimension: int | None = None) -> bool:
        """
        Create ``name`` if needed; existing indices count as success.

        Raises:
            IndexCreationError: When the store cannot create the index
        """
        dimension = dimension or self.dimension
        try:
            created = await self.store.create_index(name, dimension, self.metric)
        except VectorStoreError as e:
            logger.error(f"{__name__}:ensure_index - Failed to create {name}: {e}")
            raise IndexCreationError(name, details={"cause": str(e)}) from e
        if not created:
            logger.error(f"{__name__}:ensure_index - Store declined to create {name}")
            raise IndexCreationError(name)
        logger.info(f"{__name__}:ensure_index - Index ready: {name} (dimension={dimension})")
        return True

    def build_records(
        self,
        document_id: str,
        filename: str,
        chunks: list[Chunk],
        timestamp: str | None = None,
    ) -> list[VectorRecord]:
        """
        Vector records with denormalised chunk metadata.

        Raises:
            EmbeddingError: If a chunk has no embedding
        """
        timestamp = timestamp or datetime.now(timezone.utc).isoformat()
        total = len(chunks)
        records = []
        for chunk in chunks:
            if chunk.embedding is None:
                raise EmbeddingError(
                    f"Chunk {chunk.index} has no embedding",
                    document_id=document_id,
                )
            metadata = {
                "content": chunk.content[: self.max_metadata_content],
                "pageStart": chunk.page_start,
                "pageEnd": chunk.page_end,
                "chunkIndex": chunk.index,
                "totalChunks": total,
                "documentId": document_id,
                "filename": filename,
                "timestamp": timestamp,
                "approximatePages": chunk.approximate_pages,
            }
            if chunk.summary:
                metadata["summary"] = chunk.summary
            if chunk.is_header:
                title = chunk.content.strip().split("\n", 1)[0][:MAX_SECTION_TITLE]
                metadata["sectionTitle"] = title
                number = _SECTION_NUMBER.match(title)
                if number:
                    metadata["sectionNumber"] = number.group(1)
            records.append(
                VectorRecord(
                    key=vector_key(document_id, chunk.index),
                    embedding=chunk.embedding,
                    metadata=metadata,
                )
            )
        return records

    async def _upload_pass(
        self,
        index_name: str,
        records: list[VectorRecord],
        batch_size: int,
        attempts: int,
    ) -> tuple[int, list[str]]:
        upserted = 0
        failed: list[str] = []
        for start in range(0, len(records), batch_size):
            batch = records[start : start + batch_size]
            outcome = await run_with_retry(
                lambda batch=batch: self.store.upsert(index_name, batch),
                attempts=attempts,
                initial=self.retry_initial,
                operation=f"upsert {index_name}[{start}:{start + len(batch)}]",
            )
            if outcome.succeeded and outcome.value == len(batch):
                upserted += len(batch)
            else:
                failed.extend(record.key for record in batch)
        return upserted, failed

    async def upload(
        self,
        index_name: str,
        records: list[VectorRecord],
        batch_size: int | None = None,
    ) -> UploadOutcome:
        """
        Upsert records in batches and report requested vs. upserted.

        Keys from failed batches are retried once more before reporting.
        """
        batch_size = max(1, batch_size or self.batch_size)
        upserted, failed = await self._upload_pass(
            index_name, records, batch_size, self.retry_attempts
        )

        if failed:
            logger.warning(
                f"{__name__}:upload - {len(failed)}/{len(records)} vectors not confirmed "
                f"for {index_name}, retrying shortfall"
            )
            failed_set = set(failed)
            retry_records = [record for record in records if record.key in failed_set]
            recovered, failed = await self._upload_pass(index_name, retry_records, batch_size, 1)
            upserted += recovered

        outcome = UploadOutcome(
            index_name=index_name,
            requested=len(records),
            upserted=upserted,
            failed_keys=failed,
        )
        log = logger.info if outcome.status == "succeeded" else logger.error
        log(
            f"{__name__}:upload - {index_name}: requested={outcome.requested}, "
            f"upserted={outcome.upserted}, status={outcome.status}"
        )
        return outcome
