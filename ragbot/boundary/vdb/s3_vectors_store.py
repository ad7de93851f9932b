"""
S3 Vectors store for production retrieval.

Talks to Amazon S3 Vectors through the boto3 ``s3vectors`` client: one
index per document, keyed vectors with denormalised metadata, top-k
cosine queries returning distances.

Metadata Keys:
- Filterable: documentId, chunkIndex, pageStart, pageEnd
- Non-filterable: content, summary

Dependencies: boto3, botocore, tenacity
System role: Production vector store (S3 Vectors)
"""

import asyncio
import logging
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from ragbot.boundary.vdb.vector_schemas import StoreHit, VectorRecord
from ragbot.core.exceptions import VectorStoreError

logger = logging.getLogger(__name__)

ALREADY_EXISTS_CODES = {"ConflictException", "ResourceAlreadyExistsException"}
NOT_FOUND_CODES = {"NotFoundException", "ResourceNotFoundException"}
THROTTLE_CODES = {
    "TooManyRequestsException",
    "ThrottlingException",
    "ServiceUnavailableException",
    "RequestTimeout",
}
NON_FILTERABLE_KEYS = ["content", "summary"]
MAX_PUT_BATCH = 500
MAX_GET_BATCH = 100


def _error_code(exc: BaseException) -> str:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code", "")
    return ""


def _is_throttled(exc: BaseException) -> bool:
    """True for rate limiting and transient service errors worth retrying."""
    return _error_code(exc) in THROTTLE_CODES


_throttle_retry = retry(
    retry=retry_if_exception(_is_throttled),
    stop=stop_after_attempt(5),
    wait=wait_exponential_jitter(initial=1, max=30, jitter=5),
    before_sleep=lambda retry_state: logger.warning(
        f"{__name__}:s3vectors - Retry {retry_state.attempt_number}/5 after throttling"
    ),
    reraise=True,
)


class S3VectorsStore:
    """
    S3 Vectors store for production retrieval.

    Blocking boto3 calls run in worker threads so the event loop stays free
    during fan-out queries.
    """

    def __init__(
        self,
        vectors_bucket: str = "ragbot-dev-vectors",
        region: str = "us-east-2",
        batch_size: int = MAX_PUT_BATCH,
        client: Any | None = None,
    ) -> None:
        """
        Initialize S3 Vectors store.

        Args:
            vectors_bucket: S3 Vectors bucket name
            region: AWS region for S3 Vectors
            batch_size: Vectors per put_vectors call (service maximum 500)
            client: Preconfigured s3vectors client (created from region if None)
        """
        self._vectors_bucket = vectors_bucket
        self._region = region
        self._batch_size = max(1, min(batch_size, MAX_PUT_BATCH))
        self._client = client or boto3.client("s3vectors", region_name=region)
        logger.info(
            f"{__name__}:__init__ - S3 Vectors store ready "
            f"(bucket={vectors_bucket}, region={region})"
        )

    @_throttle_retry
    def _call(self, operation: str, **kwargs: Any) -> dict[str, Any]:
        """Invoke one s3vectors API operation with throttling retry."""
        return getattr(self._client, operation)(vectorBucketName=self._vectors_bucket, **kwargs)

    async def create_index(self, name: str, dimension: int, metric: str = "cosine") -> bool:
        """
        Create an index; an existing index is treated as success.

        Raises:
            VectorStoreError: If the service rejects the request
        """
        try:
            await asyncio.to_thread(
                self._call,
                "create_index",
                indexName=name,
                dataType="float32",
                dimension=dimension,
                distanceMetric=metric,
                metadataConfiguration={"nonFilterableMetadataKeys": NON_FILTERABLE_KEYS},
            )
        except ClientError as e:
            if _error_code(e) in ALREADY_EXISTS_CODES:
                logger.info(f"{__name__}:create_index - Index already exists: {name}")
                return True
            raise VectorStoreError(
                f"Failed to create index {name}: {e}",
                operation="create_index",
                details={"index_name": name, "code": _error_code(e)},
            ) from e
        except BotoCoreError as e:
            raise VectorStoreError(
                f"Failed to create index {name}: {e}",
                operation="create_index",
                details={"index_name": name},
            ) from e

        logger.info(f"{__name__}:create_index - Created index {name} (dimension={dimension})")
        return True

    async def upsert(self, index_name: str, records: list[VectorRecord]) -> int:
        """
        Put vectors in service-sized batches.

        Returns:
            int: Number of vectors upserted

        Raises:
            VectorStoreError: When a batch fails after throttling retries
        """
        upserted = 0
        for start in range(0, len(records), self._batch_size):
            batch = records[start : start + self._batch_size]
            payload = [
                {
                    "key": record.key,
                    "data": {"float32": [float(v) for v in record.embedding]},
                    "metadata": record.metadata,
                }
                for record in batch
            ]
            try:
                await asyncio.to_thread(self._call, "put_vectors", indexName=index_name, vectors=payload)
            except (ClientError, BotoCoreError) as e:
                raise VectorStoreError(
                    f"Failed to put vectors into {index_name}: {e}",
                    operation="upsert",
                    details={"index_name": index_name, "upserted": upserted, "batch": len(batch)},
                ) from e
            upserted += len(batch)

        logger.info(f"{__name__}:upsert - Upserted {upserted} vectors into {index_name}")
        return upserted

    async def query(self, index_name: str, vector: list[float], top_k: int) -> list[StoreHit]:
        """
        Top-k cosine query with metadata and distances.

        Returns:
            list[StoreHit]: Hits best first; empty when the index does not exist

        Raises:
            VectorStoreError: On any other service failure
        """
        try:
            response = await asyncio.to_thread(
                self._call,
                "query_vectors",
                indexName=index_name,
                queryVector={"float32": [float(v) for v in vector]},
                topK=top_k,
                returnMetadata=True,
                returnDistance=True,
            )
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                logger.warning(f"{__name__}:query - Index not found: {index_name}")
                return []
            raise VectorStoreError(
                f"Query failed on {index_name}: {e}",
                operation="query",
                details={"index_name": index_name, "code": _error_code(e)},
            ) from e
        except BotoCoreError as e:
            raise VectorStoreError(
                f"Query failed on {index_name}: {e}",
                operation="query",
                details={"index_name": index_name},
            ) from e

        hits = [
            StoreHit(
                key=item.get("key", ""),
                index_name=index_name,
                rank=rank,
                distance=item.get("distance"),
                metadata=item.get("metadata") or {},
            )
            for rank, item in enumerate(response.get("vectors", []))
        ]
        logger.debug(f"{__name__}:query - {len(hits)} hits from {index_name}")
        return hits

    async def get_vectors(self, index_name: str, keys: list[str]) -> list[StoreHit]:
        """
        Fetch vectors with data and metadata by key.

        Returns:
            list[StoreHit]: Found vectors; empty when the index does not exist

        Raises:
            VectorStoreError: On any other service failure
        """
        hits: list[StoreHit] = []
        for start in range(0, len(keys), MAX_GET_BATCH):
            batch = keys[start : start + MAX_GET_BATCH]
            try:
                response = await asyncio.to_thread(
                    self._call,
                    "get_vectors",
                    indexName=index_name,
                    keys=batch,
                    returnData=True,
                    returnMetadata=True,
                )
            except ClientError as e:
                if _error_code(e) in NOT_FOUND_CODES:
                    logger.warning(f"{__name__}:get_vectors - Index not found: {index_name}")
                    return []
                raise VectorStoreError(
                    f"Failed to get vectors from {index_name}: {e}",
                    operation="get_vectors",
                    details={"index_name": index_name, "code": _error_code(e)},
                ) from e
            except BotoCoreError as e:
                raise VectorStoreError(
                    f"Failed to get vectors from {index_name}: {e}",
                    operation="get_vectors",
                    details={"index_name": index_name},
                ) from e

            for item in response.get("vectors", []):
                data = (item.get("data") or {}).get("float32")
                hits.append(
                    StoreHit(
                        key=item.get("key", ""),
                        index_name=index_name,
                        vector=[float(v) for v in data] if data else None,
                        metadata=item.get("metadata") or {},
                    )
                )
        return hits

    async def list_indices(self) -> list[str]:
        """
        List index names across all pages.

        A failure part-way returns the names collected so far.
        """
        names: list[str] = []
        token: str | None = None
        while True:
            kwargs: dict[str, Any] = {"maxResults": 100}
            if token:
                kwargs["nextToken"] = token
            try:
                response = await asyncio.to_thread(self._call, "list_indexes", **kwargs)
            except (ClientError, BotoCoreError) as e:
                logger.error(
                    f"{__name__}:list_indices - Listing failed after {len(names)} indices: {e}"
                )
                return names
            names.extend(item["indexName"] for item in response.get("indexes", []) if "indexName" in item)
            token = response.get("nextToken")
            if not token:
                return names

    async def delete_vectors(self, index_name: str, keys: list[str]) -> int:
        """
        Delete vectors by key.

        Raises:
            VectorStoreError: If the service rejects the request
        """
        if not keys:
            return 0
        deleted = 0
        for start in range(0, len(keys), self._batch_size):
            batch = keys[start : start + self._batch_size]
            try:
                await asyncio.to_thread(self._call, "delete_vectors", indexName=index_name, keys=batch)
            except (ClientError, BotoCoreError) as e:
                raise VectorStoreError(
                    f"Failed to delete vectors from {index_name}: {e}",
                    operation="delete_vectors",
                    details={"index_name": index_name, "deleted": deleted},
                ) from e
            deleted += len(batch)
        logger.info(f"{__name__}:delete_vectors - Deleted {deleted} vectors from {index_name}")
        return deleted
