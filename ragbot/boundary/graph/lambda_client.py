"""
Entity graph enrichment client.

Sends document and chunk nodes to a Lambda function that maintains a
knowledge graph alongside the vector indices. Enrichment is optional:
every failure is logged and swallowed so ingestion never depends on it.

Dependencies: boto3, botocore, tenacity (via ragbot.core.retry)
System role: Fire-and-forget graph collaborator of the ingestion pipeline
"""

import asyncio
import json
import logging
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ragbot.core.exceptions import GraphError
from ragbot.core.retry import run_with_retry
from ragbot.models.chunk import Chunk

logger = logging.getLogger(__name__)

MAX_NODE_CONTENT = 1000


class GraphEnrichmentClient:
    """Lambda-backed graph writer with batched, bounded-retry chunk uploads."""

    def __init__(
        self,
        function_name: str = "chatbotRAG",
        region: str = "us-east-2",
        batch_size: int = 10,
        retry_attempts: int = 3,
        enabled: bool = True,
        retry_initial: float = 1.0,
        client: Any | None = None,
    ) -> None:
        """
        Initialize graph client.

        Args:
            function_name: Lambda function name
            region: AWS region of the function
            batch_size: Chunk nodes per invocation
            retry_attempts: Attempts per invocation
            enabled: When False every call is a no-op
            retry_initial: First backoff delay between attempts
            client: Preconfigured Lambda client (created lazily if None)
        """
        self._function_name = function_name
        self._region = region
        self._batch_size = max(1, batch_size)
        self._retry_attempts = retry_attempts
        self._retry_initial = retry_initial
        self.enabled = enabled
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client("lambda", region_name=self._region)
        return self._client

    def _invoke_sync(self, payload: dict[str, Any]) -> dict[str, Any]:
        operation = payload.get("operation")
        try:
            response = self.client.invoke(
                FunctionName=self._function_name,
                Payload=json.dumps(payload, default=str).encode("utf-8"),
            )
        except (ClientError, BotoCoreError) as e:
            raise GraphError(f"Lambda invoke failed: {e}", operation=operation) from e

        body = response.get("Payload")
        if body is None:
            raise GraphError("No payload in Lambda response", operation=operation)
        raw = body.read() if hasattr(body, "read") else body
        result = json.loads(raw or b"{}")
        if response.get("FunctionError") or (isinstance(result, dict) and result.get("errorMessage")):
            message = result.get("errorMessage", "Lambda function error") if isinstance(result, dict) else str(result)
            raise GraphError(message, operation=operation)
        return result if isinstance(result, dict) else {"result": result}

    async def invoke(self, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Invoke the graph Lambda with one operation payload.

        Raises:
            GraphError: On transport failure or a function-reported error
        """
        logger.debug(f"{__name__}:invoke - operation={payload.get('operation')}")
        return await asyncio.to_thread(self._invoke_sync, payload)

    async def _invoke_with_retry(self, payload: dict[str, Any]) -> bool:
        outcome = await run_with_retry(
            lambda: self.invoke(payload),
            attempts=self._retry_attempts,
            initial=self._retry_initial,
            operation=f"graph {payload.get('operation')}",
        )
        return outcome.succeeded

    async def create_document_node(self, document_id: str, metadata: dict[str, Any]) -> bool:
        """Create the document node; False when the call ultimately failed."""
        return await self._invoke_with_retry(
            {"operation": "createDocumentGraph", "documentId": document_id, "metadata": metadata}
        )

    async def create_chunk_nodes(self, document_id: str, chunks: list[Chunk]) -> int:
        """
        Create chunk nodes in batches.

        Returns:
            int: Number of chunk nodes in batches that succeeded
        """
        created = 0
        for start in range(0, len(chunks), self._batch_size):
            batch = chunks[start : start + self._batch_size]
            payload = {
                "operation": "createChunkGraph",
                "documentId": document_id,
                "chunks": [
                    {
                        "chunkId": f"{document_id}-chunk-{chunk.index}",
                        "chunkIndex": chunk.index,
                        "content": chunk.content[:MAX_NODE_CONTENT],
                        "summary": chunk.summary,
                        "metadata": {"pageStart": chunk.page_start, "pageEnd": chunk.page_end},
                    }
                    for chunk in batch
                ],
            }
            if await self._invoke_with_retry(payload):
                created += len(batch)
        return created

    async def create_entity(self, entity: dict[str, Any]) -> bool:
        """Create one entity node."""
        return await self._invoke_with_retry({"operation": "createEntity", "entity": entity})

    async def create_relationships(
        self,
        chunk_id: str,
        related: list[dict[str, Any]],
    ) -> bool:
        """
        Link a chunk to related chunks.

        Args:
            chunk_id: Source chunk id
            related: Items of the form {"id", "relationship", "strength"}
        """
        return await self._invoke_with_retry(
            {"operation": "createRelationships", "chunkId": chunk_id, "relationships": related}
        )

    async def query_graph(self, query: str, limit: int = 10) -> list[dict[str, Any]]:
        """Free-text graph query; empty list on any failure."""
        try:
            result = await self.invoke({"operation": "query", "query": query, "limit": limit})
        except GraphError as e:
            logger.error(f"{__name__}:query_graph - {e}")
            return []
        return result.get("results", [])

    async def stats(self) -> dict[str, Any] | None:
        """Node/edge counts reported by the graph, or None on failure."""
        try:
            return await self.invoke({"operation": "stats"})
        except GraphError as e:
            logger.error(f"{__name__}:stats - {e}")
            return None

    async def enrich_document(
        self,
        document_id: str,
        filename: str,
        chunks: list[Chunk],
    ) -> bool:
        """
        Write a document, its chunks and their reading-order links.

        Never raises; returns True only when every step succeeded.
        """
        if not self.enabled:
            return False

        try:
            document_ok = await self.create_document_node(
                document_id,
                {"filename": filename, "totalChunks": len(chunks)},
            )
            created = await self.create_chunk_nodes(document_id, chunks)

            links_ok = True
            for current, following in zip(chunks, chunks[1:]):
                linked = await self.create_relationships(
                    f"{document_id}-chunk-{current.index}",
                    [
                        {
                            "id": f"{document_id}-chunk-{following.index}",
                            "relationship": "FOLLOWED_BY",
                            "strength": 1.0,
                        }
                    ],
                )
                links_ok = links_ok and linked
        except Exception as e:
            logger.error(f"{__name__}:enrich_document - Enrichment failed for {document_id}: {e}")
            return False

        ok = document_ok and created == len(chunks) and links_ok
        log = logger.info if ok else logger.warning
        log(
            f"{__name__}:enrich_document - {document_id}: document={document_ok}, "
            f"chunks={created}/{len(chunks)}, links={links_ok}"
        )
        return ok
