"""HTTP handlers for retrieval and cache operations.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes, validation, and error handling.
"""

import logging
from dataclasses import asdict

from fastapi import HTTPException, status

from context_cache.dto import (
    CacheMetricsResponse,
    CacheStatsResponse,
    ClearCacheResponse,
    HealthCheckResponse,
    MaintenanceResponse,
    RagChunkItem,
    RagQueryRequest,
    RagQueryResponse,
    ThresholdRequest,
    ThresholdResponse,
)
from context_cache.entities import RagChunk
from context_cache.protocols import EmbeddingProvider
from context_cache.services import RagCacheManager, RetrievalOptions

logger = logging.getLogger(__name__)


def to_chunk(item: RagChunkItem) -> RagChunk:
    """Convert a chunk DTO to the domain entity."""
    return RagChunk(**item.model_dump())


def to_chunk_item(chunk: RagChunk) -> RagChunkItem:
    """Convert a domain chunk to its DTO."""
    return RagChunkItem(**asdict(chunk))


class CacheHandler:
    """HTTP handlers for cached retrieval.

    This handler delegates business logic to RagCacheManager
    and handles HTTP-specific concerns like:
    - Converting entities to DTOs
    - Setting appropriate status codes
    - Error handling and responses

    Example:
        ```python
        handler = CacheHandler(cache_manager=manager, embedding_provider=provider)

        @app.post("/rag/query", response_model=RagQueryResponse)
        async def rag_query(request: RagQueryRequest):
            return await handler.rag_query(request)
        ```
    """

    def __init__(self, cache_manager: RagCacheManager, embedding_provider: EmbeddingProvider | None = None) -> None:
        """Initialize the cache handler.

        Args:
            cache_manager: Cached retrieval orchestration (required).
            embedding_provider: Checked by the health endpoint, if given.
        """
        self._manager = cache_manager
        self._embeddings = embedding_provider

    async def rag_query(self, request: RagQueryRequest) -> RagQueryResponse:
        """Handle POST /rag/query requests.

        Raises:
            HTTPException: If retrieval fails even without the cache
        """
        options = RetrievalOptions(
            vector_search_limit=request.vector_search_limit,
            rerank_limit=request.rerank_limit,
            enable_reranking=request.enable_reranking,
            min_similarity=request.min_similarity,
        )

        try:
            result = await self._manager.perform_cached_rag_query(
                query=request.query,
                assistant_id=request.assistant_id,
                rag_chunks=[to_chunk(item) for item in request.rag_chunks],
                options=options,
                similarity_threshold=request.similarity_threshold,
                enable_cache=request.enable_cache,
            )
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Retrieval failed: {e}",
            ) from e

        return RagQueryResponse(
            query=request.query,
            results=[to_chunk_item(chunk) for chunk in result.results],
            from_cache=result.from_cache,
            query_time_ms=result.query_time_ms,
            similarity=result.similarity,
            original_query=result.original_query,
            source=result.retrieval.source if result.retrieval else None,
            context=self._manager.results_to_context_string(result.results),
        )

    async def get_stats(self) -> CacheStatsResponse:
        """Handle GET /cache/stats requests."""
        try:
            stats = self._manager.get_cache_stats()
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to get stats: {e}",
            ) from e

        return CacheStatsResponse(
            performance_metrics=CacheMetricsResponse(**stats["performance_metrics"]),
            storage_stats=stats["storage_stats"],
        )

    async def clear_assistant_cache(self, assistant_id: str) -> ClearCacheResponse:
        """Handle DELETE /cache/{assistant_id} requests."""
        try:
            count = self._manager.clear_assistant_cache(assistant_id)
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to clear cache: {e}",
            ) from e

        return ClearCacheResponse(
            success=True,
            deleted_count=count,
            message=f"Cleared cache for assistant {assistant_id}",
        )

    async def run_maintenance(self) -> MaintenanceResponse:
        """Handle POST /cache/maintenance requests."""
        try:
            result = await self._manager.perform_maintenance()
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Maintenance failed: {e}",
            ) from e

        return MaintenanceResponse(**result)

    async def get_threshold(self) -> ThresholdResponse:
        """Handle GET /cache/threshold requests."""
        return ThresholdResponse(threshold=self._manager.query_cache.threshold)

    async def set_threshold(self, request: ThresholdRequest) -> ThresholdResponse:
        """Handle POST /cache/threshold requests."""
        return ThresholdResponse(threshold=self._manager.set_similarity_threshold(request.threshold))

    async def get_metrics(self) -> CacheMetricsResponse:
        """Handle GET /cache/metrics requests."""
        return CacheMetricsResponse(**asdict(self._manager.get_metrics()))

    async def reset_metrics(self) -> dict:
        """Handle POST /cache/metrics/reset requests."""
        self._manager.reset_metrics()
        return {"message": "Cache metrics reset"}

    async def health_check(self) -> HealthCheckResponse:
        """Handle GET /health requests."""
        cache_healthy = self._manager.query_cache.is_healthy()
        embedding_healthy = None
        if self._embeddings is not None:
            embedding_healthy = await self._embeddings.is_available()

        healthy = cache_healthy and embedding_healthy is not False
        return HealthCheckResponse(
            status="healthy" if healthy else "unhealthy",
            cache_healthy=cache_healthy,
            embedding_healthy=embedding_healthy,
        )
