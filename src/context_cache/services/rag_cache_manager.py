"""Cached retrieval orchestration.

Puts the semantic query cache in front of the full retrieval flow:
1. Embed the query
2. Look up a similar cached query for the assistant
3. On a hit, return the stored results unchanged
4. On a miss, run full retrieval and cache non-empty results

The cache is an optimization: any failure on the cached path degrades to a
direct retrieval.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any

from context_cache.entities import CachedQueryResult, RagChunk, RetrievalResult
from context_cache.errors import CollaboratorTimeoutError
from context_cache.protocols import EmbeddingProvider
from context_cache.services.query_cache_service import CacheConfig, QueryCacheService
from context_cache.services.rag_query_service import RagQueryService, RetrievalOptions

logger = logging.getLogger(__name__)


@dataclass
class CacheMetrics:
    """Running cache effectiveness counters.

    Times are in milliseconds. Informational only; nothing reads them back
    into cache decisions.
    """

    total_queries: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    hit_rate: float = 0.0
    average_query_time: float = 0.0
    average_cache_hit_time: float = 0.0
    average_full_rag_time: float = 0.0


class RagCacheManager:
    """Semantic cache in front of RagQueryService.

    Example:
        ```python
        manager = RagCacheManager(
            query_cache=QueryCacheService(store=RedisQueryCacheStore.create(settings)),
            rag_service=RagQueryService(embedding_provider=provider),
            embedding_provider=provider,
        )

        result = await manager.perform_cached_rag_query(query, assistant.id, assistant.rag_chunks)
        context = manager.results_to_context_string(result.results)
        ```
    """

    def __init__(
        self,
        query_cache: QueryCacheService,
        rag_service: RagQueryService,
        embedding_provider: EmbeddingProvider,
        config: CacheConfig | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            query_cache: Semantic query cache (required).
            rag_service: Full retrieval flow used on misses (required).
            embedding_provider: Embeds queries for lookup (required).
            config: Cache settings. Defaults to the query cache's config.
            timeout: Seconds allowed for the lookup embedding call. None disables it.
        """
        self._cache = query_cache
        self._rag = rag_service
        self._embeddings = embedding_provider
        self._config = config or query_cache.config
        self._timeout = timeout

        self._metrics = CacheMetrics()
        self._total_query_time = 0.0
        self._total_cache_hit_time = 0.0
        self._total_full_rag_time = 0.0

    async def perform_cached_rag_query(
        self,
        query: str,
        assistant_id: str,
        rag_chunks: list[RagChunk],
        options: RetrievalOptions | None = None,
        similarity_threshold: float | None = None,
        enable_cache: bool = True,
    ) -> CachedQueryResult:
        """Answer a retrieval query, from the cache when possible.

        Args:
            query: The user query
            assistant_id: Tenant key
            rag_chunks: The assistant's local chunks
            options: Retrieval knobs for a full retrieval
            similarity_threshold: Override the cache threshold for this call
            enable_cache: False skips the cache entirely

        Returns:
            CachedQueryResult; from_cache tells where the results came from

        Raises:
            Exception: Only when the direct-retrieval fallback itself fails
        """
        start_time = time.time()
        self._metrics.total_queries += 1

        if not enable_cache:
            return await self._direct_retrieval(query, assistant_id, rag_chunks, options, start_time)

        try:
            query_embedding = await self._embed(query)
            match = self._cache.lookup(query_embedding, assistant_id, similarity_threshold)

            if match is not None:
                query_time = _elapsed_ms(start_time)
                self._update_metrics(True, query_time)
                logger.info(
                    "Cache hit: %r matched %r (%.1fms)",
                    query,
                    match.entry.query_text,
                    query_time,
                )
                return CachedQueryResult(
                    results=match.entry.stored_results,
                    from_cache=True,
                    query_time_ms=query_time,
                    similarity=match.similarity,
                    original_query=match.entry.query_text,
                )

            logger.info("Cache miss, running full retrieval for %r", query)
            retrieval = await self._rag.perform_rag_query(query, assistant_id, rag_chunks, options)

            if retrieval.results:
                self._cache.store(query, query_embedding, retrieval.results, assistant_id)

            query_time = _elapsed_ms(start_time)
            self._update_metrics(False, query_time)
            logger.debug("Retrieval completed and cached in %.1fms", query_time)
            return self._from_retrieval(retrieval, query_time)

        except Exception:
            logger.exception("Cached retrieval failed, falling back to direct retrieval")

        try:
            return await self._direct_retrieval(query, assistant_id, rag_chunks, options, start_time)
        except Exception as e:
            logger.error("Fallback retrieval also failed: %s", e)
            raise

    async def _direct_retrieval(
        self,
        query: str,
        assistant_id: str,
        rag_chunks: list[RagChunk],
        options: RetrievalOptions | None,
        start_time: float,
    ) -> CachedQueryResult:
        retrieval = await self._rag.perform_rag_query(query, assistant_id, rag_chunks, options)
        query_time = _elapsed_ms(start_time)
        self._update_metrics(False, query_time)
        return self._from_retrieval(retrieval, query_time)

    @staticmethod
    def _from_retrieval(retrieval: RetrievalResult, query_time: float) -> CachedQueryResult:
        return CachedQueryResult(
            results=retrieval.results,
            from_cache=False,
            query_time_ms=query_time,
            retrieval=retrieval,
        )

    async def _embed(self, text: str) -> list[float]:
        if self._timeout is None:
            return await self._embeddings.encode(text, "query")
        try:
            return await asyncio.wait_for(self._embeddings.encode(text, "query"), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise CollaboratorTimeoutError(f"Query embedding timed out after {self._timeout}s") from e

    def _update_metrics(self, is_hit: bool, query_time: float) -> None:
        self._total_query_time += query_time
        if is_hit:
            self._metrics.cache_hits += 1
            self._total_cache_hit_time += query_time
        else:
            self._metrics.cache_misses += 1
            self._total_full_rag_time += query_time

        metrics = self._metrics
        metrics.hit_rate = metrics.cache_hits / metrics.total_queries if metrics.total_queries else 0.0
        metrics.average_query_time = (
            self._total_query_time / metrics.total_queries if metrics.total_queries else 0.0
        )
        metrics.average_cache_hit_time = (
            self._total_cache_hit_time / metrics.cache_hits if metrics.cache_hits else 0.0
        )
        metrics.average_full_rag_time = (
            self._total_full_rag_time / metrics.cache_misses if metrics.cache_misses else 0.0
        )

    def get_metrics(self) -> CacheMetrics:
        """Get a copy of the current metrics."""
        return CacheMetrics(**asdict(self._metrics))

    def reset_metrics(self) -> None:
        """Zero every metric."""
        self._metrics = CacheMetrics()
        self._total_query_time = 0.0
        self._total_cache_hit_time = 0.0
        self._total_full_rag_time = 0.0
        logger.info("Cache metrics reset")

    def clear_assistant_cache(self, assistant_id: str) -> int:
        """Delete one assistant's cached queries."""
        return self._cache.clear_assistant_cache(assistant_id)

    async def perform_maintenance(self) -> dict[str, Any]:
        """Expire stale entries and report storage statistics.

        Returns:
            Dictionary with expired_entries_deleted and cache_stats
        """
        logger.info("Performing cache maintenance")
        deleted = await asyncio.to_thread(self._cache.expire)
        stats = await asyncio.to_thread(self._cache.get_cache_stats)
        logger.info("Cache maintenance completed: %d expired entries deleted", deleted)
        return {"expired_entries_deleted": deleted, "cache_stats": stats}

    def get_cache_stats(self) -> dict[str, Any]:
        """Get performance metrics together with storage statistics."""
        return {
            "performance_metrics": asdict(self._metrics),
            "storage_stats": self._cache.get_cache_stats(),
        }

    def set_similarity_threshold(self, threshold: float) -> float:
        """Update the cache threshold.

        Returns:
            The threshold in effect after clamping
        """
        self._cache.set_similarity_threshold(threshold)
        logger.info("Cache similarity threshold set to %.2f", self._cache.threshold)
        return self._cache.threshold

    async def warmup_cache(self, queries: list[str]) -> int:
        """Pre-embed common queries to load the embedding model.

        Failures are logged and skipped.

        Returns:
            Number of queries embedded successfully
        """
        logger.info("Warming up with %d queries", len(queries))
        warmed = 0
        for query in queries:
            try:
                await self._embed(query)
                warmed += 1
            except Exception as e:
                logger.warning("Failed to warm up query %r: %s", query, e)
        logger.info("Warmup completed: %d/%d queries", warmed, len(queries))
        return warmed

    def results_to_context_string(self, results: list[RagChunk]) -> str:
        """Render results as a prompt context block."""
        return self._rag.results_to_context_string(results)

    @property
    def config(self) -> CacheConfig:
        """Get the cache config."""
        return self._config

    @property
    def query_cache(self) -> QueryCacheService:
        """Get the query cache."""
        return self._cache

    @property
    def rag_service(self) -> RagQueryService:
        """Get the uncached retrieval service."""
        return self._rag


def _elapsed_ms(start_time: float) -> float:
    return (time.time() - start_time) * 1000
