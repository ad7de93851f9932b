"""
Cross-index retrieval aggregator.

Fans a query embedding out to many per-document indices, normalises the
heterogeneous scores each store returns into one similarity scale,
filters, merges and ranks the hits globally. A failing index is logged
and skipped; it never aborts the search unless every index failed.

Dependencies: ragbot.boundary.vdb, ragbot.core.similarity
System role: Retrieval stage feeding the context builder
"""

import asyncio
import logging
from fnmatch import fnmatchcase

from ragbot.boundary.vdb.base import VectorIndexStore
from ragbot.boundary.vdb.vector_schemas import StoreHit
from ragbot.configs import Settings
from ragbot.core.exceptions import RetrievalError
from ragbot.core.hybrid_search import DEFAULT_VECTOR_WEIGHT, SECTION_VECTOR_WEIGHT, apply_hybrid_scores
from ragbot.core.index_manager import vector_key
from ragbot.core.metadata_filter import MetadataFilter, detect_section_query, filter_hits
from ragbot.core.similarity import cosine_similarity
from ragbot.models.search import AggregatedSearch, SearchHit
from ragbot.observability.log_utils import log_exception_with_context

logger = logging.getLogger(__name__)

RANK_SCORE_STEP = 0.1
MIN_CONTENT_CHARS = 10
SUPPORTED_METRICS = ("cosine", "euclidean")


def distance_to_similarity(distance: float, metric: str = "cosine") -> float:
    """
    Map a store distance onto the cosine similarity scale.

    Cosine distance is ``1 - cos``. Squared euclidean distance between
    unit-length vectors is ``2 - 2 cos``, so ``cos = 1 - d^2 / 2``.
    """
    if metric == "cosine":
        return 1.0 - distance
    if metric == "euclidean":
        return 1.0 - (distance * distance) / 2.0
    raise ValueError(f"Unsupported distance metric: {metric}")


def normalise_hit(
    hit: StoreHit,
    query_embedding: list[float],
    rank_step: float = RANK_SCORE_STEP,
    metric: str = "cosine",
) -> SearchHit:
    """
    Convert a raw store hit into a SearchHit on the similarity scale.

    Precedence: explicit score, then distance mapped per metric, then
    local cosine against the returned vector, then a synthetic
    ``1 - rank * step`` tagged as rank-derived.
    """
    if hit.score is not None:
        similarity, kind = float(hit.score), "similarity"
    elif hit.distance is not None:
        similarity, kind = distance_to_similarity(float(hit.distance), metric), "distance"
    elif hit.vector:
        similarity, kind = cosine_similarity(query_embedding, hit.vector), "computed"
    else:
        similarity, kind = 1.0 - hit.rank * rank_step, "rank"

    content = hit.metadata.get("content") or hit.metadata.get("text") or ""
    return SearchHit(
        key=hit.key,
        source_index=hit.index_name,
        content=str(content),
        metadata=hit.metadata,
        rank=hit.rank,
        similarity=similarity,
        score_kind=kind,
        distance=hit.distance,
    )


class RetrievalAggregator:
    """Multi-index semantic search with partial-failure tolerance."""

    def __init__(
        self,
        store: VectorIndexStore,
        default_index: str = "queries",
        query_index_prefix: str = "query-",
        top_k_per_index: int = 10,
        global_top_k: int = 10,
        min_similarity: float = 0.7,
        max_concurrency: int = 5,
        distance_metric: str = "cosine",
        hybrid_vector_weight: float = DEFAULT_VECTOR_WEIGHT,
        section_vector_weight: float = SECTION_VECTOR_WEIGHT,
    ) -> None:
        if distance_metric not in SUPPORTED_METRICS:
            raise ValueError(f"Unsupported distance metric: {distance_metric}")
        self.store = store
        self.default_index = default_index
        self.query_index_prefix = query_index_prefix
        self.top_k_per_index = top_k_per_index
        self.global_top_k = global_top_k
        self.min_similarity = min_similarity
        self.max_concurrency = max(1, max_concurrency)
        self.distance_metric = distance_metric
        self.hybrid_vector_weight = hybrid_vector_weight
        self.section_vector_weight = section_vector_weight

    @classmethod
    def from_settings(cls, store: VectorIndexStore, settings: Settings) -> "RetrievalAggregator":
        config = settings.vector_store
        return cls(
            store,
            default_index=config.default_index,
            query_index_prefix=config.query_index_prefix,
            top_k_per_index=config.top_k_per_index,
            global_top_k=config.global_top_k,
            min_similarity=config.similarity_threshold,
            max_concurrency=config.max_concurrent_queries,
            distance_metric=config.distance_metric,
            hybrid_vector_weight=config.hybrid_vector_weight,
            section_vector_weight=config.section_vector_weight,
        )

    async def discover_indices(self, patterns: list[str] | None = None) -> list[str]:
        """
        Document indices to search.

        Excludes ad-hoc query indices, applies optional glob patterns and
        falls back to the shared default index when nothing remains.
        """
        try:
            names = await self.store.list_indices()
        except Exception as e:
            log_exception_with_context(logger, f"{__name__}:discover_indices - Listing failed", e)
            names = []

        names = [name for name in names if not name.startswith(self.query_index_prefix)]
        if patterns:
            names = [name for name in names if any(fnmatchcase(name, p) for p in patterns)]
        if not names:
            logger.info(
                f"{__name__}:discover_indices - No document indices, using '{self.default_index}'"
            )
            return [self.default_index]
        return names

    async def _query_index(
        self,
        semaphore: asyncio.Semaphore,
        index_name: str,
        query_embedding: list[float],
        top_k: int,
    ) -> tuple[str, list[StoreHit] | None]:
        async with semaphore:
            try:
                return index_name, await self.store.query(index_name, query_embedding, top_k)
            except Exception as e:
                log_exception_with_context(
                    logger,
                    f"{__name__}:search - Query failed, skipping index",
                    e,
                    index_name=index_name,
                )
                return index_name, None

    async def search(
        self,
        query_embedding: list[float],
        indices: list[str] | None = None,
        top_k_per_index: int | None = None,
        global_top_k: int | None = None,
        min_similarity: float | None = None,
        query_text: str | None = None,
        metadata_filter: MetadataFilter | None = None,
    ) -> AggregatedSearch:
        """
        Query every index, normalise, filter and merge.

        Args:
            query_embedding: Query vector
            indices: Index names (discovered when None)
            top_k_per_index: Hits requested per index
            global_top_k: Hits kept after the merge
            min_similarity: Hits must score strictly above this
            query_text: Question text; enables hybrid keyword ranking
            metadata_filter: Document, page or section constraints

        Returns:
            AggregatedSearch: Ranked hits with searched/failed index lists

        Raises:
            RetrievalError: When every queried index failed
        """
        top_k_per_index = top_k_per_index or self.top_k_per_index
        global_top_k = global_top_k or self.global_top_k
        threshold = self.min_similarity if min_similarity is None else min_similarity
        if indices is None:
            indices = await self.discover_indices()

        semaphore = asyncio.Semaphore(self.max_concurrency)
        responses = await asyncio.gather(
            *(self._query_index(semaphore, name, query_embedding, top_k_per_index) for name in indices)
        )

        searched: list[str] = []
        failed: list[str] = []
        hits: list[SearchHit] = []
        for index_name, raw_hits in responses:
            if raw_hits is None:
                failed.append(index_name)
                continue
            searched.append(index_name)
            for raw in raw_hits:
                hit = normalise_hit(raw, query_embedding, metric=self.distance_metric)
                if len(hit.content.strip()) < MIN_CONTENT_CHARS:
                    continue
                hits.append(hit)

        if failed and not searched:
            raise RetrievalError(
                f"All {len(failed)} index queries failed",
                details={"failed_indices": failed},
            )

        genuine = [hit for hit in hits if not hit.is_synthetic]
        synthetic = [hit for hit in hits if hit.is_synthetic]
        mixed = bool(genuine and synthetic)
        if mixed:
            logger.warning(
                f"{__name__}:search - {len(synthetic)} rank-derived scores ignored "
                f"alongside {len(genuine)} genuine scores"
            )

        if genuine:
            pool = [hit for hit in genuine if hit.similarity > threshold]
        else:
            pool = synthetic

        best: dict[str, SearchHit] = {}
        for hit in pool:
            current = best.get(hit.key)
            if current is None or (hit.similarity, -hit.rank) > (current.similarity, -current.rank):
                best[hit.key] = hit

        candidates = filter_hits(list(best.values()), metadata_filter)

        section = detect_section_query(query_text) if query_text else None
        if query_text:
            weight = self.section_vector_weight if section else self.hybrid_vector_weight
            candidates = apply_hybrid_scores(candidates, query_text, weight)

        ranked = sorted(candidates, key=lambda hit: (-hit.ranking_score, hit.rank))[:global_top_k]
        ranked = [hit.model_copy(update={"rank": position}) for position, hit in enumerate(ranked)]

        logger.info(
            f"{__name__}:search - {len(ranked)} hits from {len(searched)} indices "
            f"({len(failed)} failed, threshold={threshold}, hybrid={bool(query_text)})"
        )
        return AggregatedSearch(
            hits=ranked,
            searched_indices=searched,
            failed_indices=failed,
            mixed_score_regimes=mixed,
            synthetic_only=bool(ranked) and not genuine,
            section_query=section.number if section else None,
        )

    async def fetch_neighbours(
        self,
        hits: list[SearchHit],
        query_embedding: list[float],
    ) -> list[SearchHit]:
        """
        Chunks adjacent (chunk index +/- 1) to ``hits``, looked up by key.

        Neighbours are scored against the query like any other hit. An index
        whose lookup fails contributes nothing.
        """
        present = {(hit.source_index, hit.key) for hit in hits}
        wanted: dict[str, set[str]] = {}
        for hit in hits:
            document_id = hit.metadata.get("documentId")
            chunk_index = hit.chunk_index
            if not document_id or chunk_index is None:
                continue
            total = hit.metadata.get("totalChunks")
            for neighbour in (chunk_index - 1, chunk_index + 1):
                if neighbour < 0 or (total is not None and neighbour >= int(total)):
                    continue
                key = vector_key(str(document_id), neighbour)
                if (hit.source_index, key) not in present:
                    wanted.setdefault(hit.source_index, set()).add(key)

        neighbours: list[SearchHit] = []
        for index_name, keys in wanted.items():
            try:
                raw_hits = await self.store.get_vectors(index_name, sorted(keys))
            except Exception as e:
                log_exception_with_context(
                    logger,
                    f"{__name__}:fetch_neighbours - Lookup failed, skipping index",
                    e,
                    index_name=index_name,
                )
                continue
            for raw in raw_hits:
                hit = normalise_hit(raw, query_embedding, metric=self.distance_metric)
                if hit.content.strip():
                    neighbours.append(hit)

        logger.debug(f"{__name__}:fetch_neighbours - {len(neighbours)} neighbours for {len(hits)} hits")
        return neighbours
