"""
Document pipeline orchestrator.

Coordinates parsing, chunking, index creation, embedding, upload and the
optional graph enrichment for ingestion, plus the three retrieval entry
points: single-document query, single-document summary and cross-index
answer. Every entry point returns a result model with a status; errors
never escape to the caller.

Dependencies: All core modules, ragbot.boundary, configs
System role: Pipeline orchestration (coordinates only)
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Any

from langchain_core.embeddings import Embeddings

from ragbot.boundary.embeddings import get_embedder
from ragbot.boundary.graph import GraphEnrichmentClient
from ragbot.boundary.vdb import VectorIndexStore, get_vector_store
from ragbot.configs import Settings, get_settings
from ragbot.core.chunking import Chunker, ChunkingOptions, ChunkStrategy, recursive_summary
from ragbot.core.context_builder import ContextBuilder
from ragbot.core.document_cache import DocumentCache
from ragbot.core.document_processing.tasks import ParsingTask
from ragbot.core.embedding_batcher import EmbeddingBatcher
from ragbot.core.exceptions import RagbotError, RetrievalError
from ragbot.core.index_manager import IndexManager, index_name_for, vector_key
from ragbot.core.metadata_filter import MetadataFilter
from ragbot.core.retrieval_aggregator import RetrievalAggregator
from ragbot.core.similarity import cosine_similarity
from ragbot.models import (
    NO_RESULTS_MESSAGE,
    UNREADABLE_DOCUMENT_MESSAGE,
    DocumentCacheEntry,
    IngestionResult,
    QueryResult,
    SearchHit,
    SummaryResult,
)
from ragbot.observability.log_utils import log_exception_with_context

logger = logging.getLogger(__name__)

CHUNK_PREVIEW = 3


class DocumentPipeline:
    """Orchestrate ingestion (parse -> chunk -> index -> embed -> upload) and retrieval."""

    def __init__(
        self,
        settings: Settings | None = None,
        store: VectorIndexStore | None = None,
        embedder: Embeddings | None = None,
        batcher: EmbeddingBatcher | None = None,
        chunking_options: ChunkingOptions | None = None,
        index_manager: IndexManager | None = None,
        cache: DocumentCache | None = None,
        aggregator: RetrievalAggregator | None = None,
        context_builder: ContextBuilder | None = None,
        graph: GraphEnrichmentClient | None = None,
        parser: ParsingTask | None = None,
    ) -> None:
        """
        Initialize pipeline; every collaborator defaults from settings.

        Args:
            settings: Application settings (uses get_settings() if None)
            store: Vector index store
            embedder: Provider embeddings (ignored when batcher is given)
            batcher: Embedding batcher
            chunking_options: Chunk size bounds and strategy
            index_manager: Index naming, creation and upload
            cache: Document cache for follow-up query/summarize calls
            aggregator: Cross-index retrieval
            context_builder: Context bundle assembly
            graph: Graph enrichment client (created when enabled in settings)
            parser: Document parser
        """
        self._settings = settings or get_settings()
        self._store = store or get_vector_store(self._settings)
        self._batcher = batcher or EmbeddingBatcher.from_settings(
            embedder or get_embedder(self._settings), self._settings
        )

        chunking = self._settings.chunking
        self._chunker = Chunker(
            chunking_options
            or ChunkingOptions(
                max_size=chunking.max_size,
                min_size=chunking.min_size,
                overlap=chunking.overlap,
                strategy=ChunkStrategy(chunking.strategy),
            )
        )
        self._index_manager = index_manager or IndexManager.from_settings(self._store, self._settings)
        self._cache = cache if cache is not None else DocumentCache()
        self._aggregator = aggregator or RetrievalAggregator.from_settings(self._store, self._settings)
        self._context_builder = context_builder or ContextBuilder()
        self._parser = parser or ParsingTask()

        graph_config = self._settings.graph
        if graph is None and graph_config.enabled:
            graph = GraphEnrichmentClient(
                function_name=graph_config.lambda_function,
                region=graph_config.region,
                batch_size=graph_config.batch_size,
                retry_attempts=graph_config.retry_attempts,
            )
        self._graph = graph
        self._background: set[asyncio.Task] = set()

    @property
    def cache(self) -> DocumentCache:
        return self._cache

    def _spawn(self, coro: Any) -> None:
        """Run ``coro`` in the background, keeping a reference until it finishes."""
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def drain(self) -> None:
        """Wait for background enrichment tasks to finish."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def _derive(self, file_path: str, document_id: str) -> tuple[list, dict[str, Any]]:
        """Parse, chunk and embed a document without touching any index."""
        parsed = await asyncio.to_thread(self._parser.parse, file_path)
        chunks = self._chunker.chunk(parsed.text, total_pages=parsed.pages)
        embedded = await self._batcher.embed_chunks(chunks)
        metadata = {
            "document_id": document_id,
            "filename": Path(file_path).name,
            "pages": parsed.pages,
            "total_chunks": len(embedded),
            **parsed.metadata,
        }
        return embedded, metadata

    async def process(
        self,
        file_path: str,
        document_id: str | None = None,
        timeout: float | None = None,
        temporary: bool = False,
    ) -> IngestionResult:
        """
        Ingest a document into its own vector index.

        Args:
            file_path: Path to a local document
            document_id: Document identifier (defaults to the filename)
            timeout: Overall deadline in seconds
            temporary: Delete the file when its cache entry is released

        Returns:
            IngestionResult: success, or failed with an explanatory message
        """
        start_time = time.perf_counter()
        filename = Path(file_path).name
        doc_id = document_id or filename

        try:
            return await asyncio.wait_for(
                self._process(file_path, doc_id, filename, start_time, temporary),
                timeout,
            )
        except asyncio.TimeoutError:
            message = f"Processing timed out after {timeout}s"
            logger.error(f"{__name__}:process - {message} ({filename})")
            error = message
        except RagbotError as e:
            logger.error(f"{__name__}:process - {type(e).__name__}: {e}")
            error = str(e)
        except Exception as e:
            log_exception_with_context(
                logger, f"{__name__}:process - Unexpected failure", e, file_path=file_path
            )
            error = f"{type(e).__name__}: {e}"

        return IngestionResult(
            status="failed",
            document_id=doc_id,
            filename=filename,
            processing_time_ms=(time.perf_counter() - start_time) * 1000,
            message=UNREADABLE_DOCUMENT_MESSAGE,
            error=error,
        )

    async def _process(
        self,
        file_path: str,
        doc_id: str,
        filename: str,
        start_time: float,
        temporary: bool,
    ) -> IngestionResult:
        # Follow-up query/summarize calls on this path wait until the entry is cached
        async with self._cache.hold(file_path):
            parsed = await asyncio.to_thread(self._parser.parse, file_path)
            chunks = self._chunker.chunk(parsed.text, total_pages=parsed.pages)

            # Index must exist before any embedding quota is spent
            index_name = index_name_for(doc_id)
            await self._index_manager.ensure_index(index_name)

            embedded = await self._batcher.embed_chunks(chunks)
            records = self._index_manager.build_records(doc_id, filename, embedded)
            upload = await self._index_manager.upload(index_name, records)

            self._cache.put(
                file_path,
                embedded,
                metadata={
                    "document_id": doc_id,
                    "filename": filename,
                    "index_name": index_name,
                    "pages": parsed.pages,
                    "total_chunks": len(embedded),
                },
                source_path=file_path if temporary else None,
            )

        if self._graph is not None and self._graph.enabled:
            self._spawn(self._graph.enrich_document(doc_id, filename, embedded))

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        preview = [chunk.model_copy(update={"embedding": None}) for chunk in embedded[:CHUNK_PREVIEW]]

        if upload.status == "failed":
            return IngestionResult(
                status="failed",
                document_id=doc_id,
                filename=filename,
                index_name=index_name,
                total_chunks=len(embedded),
                pages=parsed.pages,
                upload=upload,
                chunks=preview,
                processing_time_ms=elapsed_ms,
                message=UNREADABLE_DOCUMENT_MESSAGE,
                error=f"No vectors were stored in {index_name}",
            )

        message = f"Processed {filename}: {len(embedded)} chunks from {parsed.pages} pages"
        if upload.status == "partial":
            message += f" ({upload.upserted}/{upload.requested} vectors stored)"
        logger.info(f"{__name__}:process - {message} in {elapsed_ms:.0f}ms")
        return IngestionResult(
            status="success",
            document_id=doc_id,
            filename=filename,
            index_name=index_name,
            total_chunks=len(embedded),
            pages=parsed.pages,
            upload=upload,
            chunks=preview,
            processing_time_ms=elapsed_ms,
            message=message,
        )

    async def _lease_entry(self, entry: DocumentCacheEntry | None, file_path: str) -> DocumentCacheEntry:
        """Cached entry, or a freshly derived one registered under the current lease."""
        if entry is not None:
            return entry
        logger.info(f"{__name__}:_lease_entry - Cache miss for {file_path}, re-deriving chunks")
        chunks, metadata = await self._derive(file_path, Path(file_path).name)
        return self._cache.put(file_path, chunks, metadata)

    async def query(
        self,
        file_path: str,
        question: str,
        top_k: int = 5,
        min_similarity: float | None = None,
    ) -> QueryResult:
        """
        Answer a question from one processed document.

        The cache entry is used once and released afterwards.
        """
        threshold = (
            self._settings.vector_store.similarity_threshold
            if min_similarity is None
            else min_similarity
        )
        try:
            async with self._cache.lease(file_path) as cached:
                entry = await self._lease_entry(cached, file_path)
                query_vector = await self._batcher.embed_one(question)
                hits = self._rank_cached(entry, query_vector, threshold, top_k)
        except Exception as e:
            log_exception_with_context(
                logger, f"{__name__}:query - Query failed", e, file_path=file_path
            )
            return QueryResult(
                status="failed",
                question=question,
                message=UNREADABLE_DOCUMENT_MESSAGE,
                error=str(e),
            )

        if not hits:
            return QueryResult(
                status="success_empty",
                question=question,
                embedding_dimension=len(query_vector),
                message=NO_RESULTS_MESSAGE,
            )
        bundle = self._context_builder.build(hits)
        return QueryResult(
            status="success_with_chunks",
            question=question,
            total_similar_chunks=len(hits),
            bundle=bundle,
            embedding_dimension=len(query_vector),
            message=f"Found {len(hits)} relevant chunks",
        )

    def _rank_cached(
        self,
        entry: DocumentCacheEntry,
        query_vector: list[float],
        threshold: float,
        top_k: int,
    ) -> list[SearchHit]:
        document_id = str(entry.metadata.get("document_id", ""))
        filename = str(entry.metadata.get("filename", document_id))
        source = str(entry.metadata.get("index_name", "cache"))

        scored = []
        for chunk in entry.chunks:
            if not chunk.embedding:
                continue
            similarity = cosine_similarity(query_vector, chunk.embedding)
            if similarity > threshold:
                scored.append((similarity, chunk))
        scored.sort(key=lambda item: (-item[0], item[1].index))

        return [
            SearchHit(
                key=vector_key(document_id, chunk.index),
                source_index=source,
                content=chunk.content,
                metadata={
                    "documentId": document_id,
                    "filename": filename,
                    "pageStart": chunk.page_start,
                    "pageEnd": chunk.page_end,
                    "chunkIndex": chunk.index,
                },
                rank=rank,
                similarity=similarity,
                score_kind="computed",
            )
            for rank, (similarity, chunk) in enumerate(scored[:top_k])
        ]

    async def summarize(self, file_path: str) -> SummaryResult:
        """Extractive summary of one processed document; the cache entry is released afterwards."""
        filename = Path(file_path).name
        try:
            async with self._cache.lease(file_path) as cached:
                entry = await self._lease_entry(cached, file_path)
                summary = recursive_summary([chunk.content for chunk in entry.chunks])
                metadata = dict(entry.metadata)
        except Exception as e:
            log_exception_with_context(
                logger, f"{__name__}:summarize - Summary failed", e, file_path=file_path
            )
            return SummaryResult(
                status="failed",
                filename=filename,
                message=UNREADABLE_DOCUMENT_MESSAGE,
                error=str(e),
            )

        return SummaryResult(
            status="success",
            filename=filename,
            total_chunks=len(entry.chunks),
            summary=summary,
            metadata=metadata,
            message=f"Summarized {filename}",
        )

    async def answer(
        self,
        question: str,
        indices: list[str] | None = None,
        patterns: list[str] | None = None,
        top_k: int | None = None,
        min_similarity: float | None = None,
        expand: bool = False,
        metadata_filter: MetadataFilter | None = None,
        hybrid: bool | None = None,
    ) -> QueryResult:
        """
        Cross-index retrieval for a question.

        Args:
            question: User question
            indices: Explicit index names (discovered when None)
            patterns: Glob patterns narrowing discovered indices
            top_k: Global number of hits to keep
            min_similarity: Strict similarity threshold override
            expand: Add neighbouring chunks of each hit to the context
            metadata_filter: Document, page range or section constraints
            hybrid: Blend keyword matches into the ranking (settings default when None)

        Returns:
            QueryResult: success_with_chunks, success_empty or failed
        """
        use_hybrid = self._settings.vector_store.hybrid_search if hybrid is None else hybrid
        query_vector: list[float] = []
        try:
            query_vector = await self._batcher.embed_one(question)
            if indices is None:
                indices = await self._aggregator.discover_indices(patterns)
            result = await self._aggregator.search(
                query_vector,
                indices,
                global_top_k=top_k,
                min_similarity=min_similarity,
                query_text=question if use_hybrid else None,
                metadata_filter=metadata_filter,
            )
        except RetrievalError as e:
            logger.error(f"{__name__}:answer - {e.message}")
            return QueryResult(
                status="failed",
                question=question,
                failed_indices=list(e.details.get("failed_indices", [])),
                embedding_dimension=len(query_vector) or None,
                message="Retrieval failed",
                error=e.message,
            )
        except Exception as e:
            log_exception_with_context(logger, f"{__name__}:answer - Retrieval failed", e)
            return QueryResult(status="failed", question=question, message="Retrieval failed", error=str(e))

        common = {
            "question": question,
            "searched_indices": result.searched_indices,
            "failed_indices": result.failed_indices,
            "mixed_score_regimes": result.mixed_score_regimes,
            "synthetic_only": result.synthetic_only,
            "section_query": result.section_query,
            "embedding_dimension": len(query_vector),
        }
        if not result.hits:
            logger.info(f"{__name__}:answer - {NO_RESULTS_MESSAGE} across {len(indices)} indices")
            return QueryResult(status="success_empty", message=NO_RESULTS_MESSAGE, **common)

        if expand:
            neighbours = await self._aggregator.fetch_neighbours(result.hits, query_vector)
            bundle = self._context_builder.build_expanded(result.hits, neighbours)
        else:
            bundle = self._context_builder.build(result.hits)
        return QueryResult(
            status="success_with_chunks",
            total_similar_chunks=len(result.hits),
            bundle=bundle,
            message=f"Found {len(result.hits)} relevant chunks",
            **common,
        )
