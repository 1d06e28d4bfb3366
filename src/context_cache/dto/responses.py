"""Response DTOs for API endpoints."""

from typing import Any

from pydantic import BaseModel, Field

from .requests import RagChunkItem


class RagQueryResponse(BaseModel):
    """Response DTO for a cached retrieval query."""

    query: str = Field(..., description="The original query")
    results: list[RagChunkItem] = Field(default_factory=list, description="Ranked chunks, best first")
    from_cache: bool = Field(..., description="Whether the results were served from the cache")
    query_time_ms: float = Field(..., description="Time taken for the query in milliseconds")
    similarity: float | None = Field(
        None,
        description="Cosine similarity to the cached query (cache hits only)",
        ge=-1.0,
        le=1.0,
    )
    original_query: str | None = Field(None, description="The cached query that matched (cache hits only)")
    source: str | None = Field(None, description="'primary', 'local' or 'empty' (full retrievals only)")
    context: str = Field("", description="Results rendered as a prompt context block")


class CacheMetricsResponse(BaseModel):
    """Response DTO for cache performance metrics."""

    total_queries: int = Field(..., ge=0)
    cache_hits: int = Field(..., ge=0)
    cache_misses: int = Field(..., ge=0)
    hit_rate: float = Field(..., ge=0.0, le=1.0)
    average_query_time: float = Field(..., description="Milliseconds", ge=0.0)
    average_cache_hit_time: float = Field(..., description="Milliseconds", ge=0.0)
    average_full_rag_time: float = Field(..., description="Milliseconds", ge=0.0)


class CacheStatsResponse(BaseModel):
    """Response DTO for cache statistics."""

    performance_metrics: CacheMetricsResponse
    storage_stats: dict[str, Any] = Field(..., description="Entry counts and timestamps")


class MaintenanceResponse(BaseModel):
    """Response DTO for a maintenance run."""

    expired_entries_deleted: int = Field(..., ge=0)
    cache_stats: dict[str, Any]


class ClearCacheResponse(BaseModel):
    """Response DTO for clearing one assistant's cache."""

    success: bool = Field(..., description="Whether the operation succeeded")
    deleted_count: int = Field(..., description="Number of entries deleted", ge=0)
    message: str = Field(..., description="Human-readable status message")


class ThresholdResponse(BaseModel):
    """Response DTO for the cache similarity threshold."""

    threshold: float = Field(..., description="Current similarity threshold", ge=0.0, le=1.0)


class CompactContextItem(BaseModel):
    """Summary of older conversation rounds."""

    content: str
    token_count: int = Field(..., ge=0)
    compressed_from_rounds: int = Field(..., ge=0)
    compressed_from_messages: int = Field(..., ge=0)
    created_at: str
    version: str


class SessionResponse(BaseModel):
    """Response DTO for a chat session."""

    id: str
    assistant_id: str
    title: str
    message_count: int = Field(..., description="Uncompacted messages in the session", ge=0)
    token_count: int = Field(..., ge=0)
    compact_context: CompactContextItem | None = None
    last_compaction_at: str | None = None
    created_at: int | None = None
    updated_at: int | None = None


class ShouldTriggerResponse(BaseModel):
    """Response DTO for the compaction trigger check."""

    should_trigger: bool
    threshold: int = Field(..., description="Rounds allowed before compaction", ge=0)


class HealthCheckResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'unhealthy'")
    cache_healthy: bool = Field(..., description="Whether the cache backend is reachable")
    embedding_healthy: bool | None = Field(
        None,
        description="Whether the embedding service is reachable",
    )


class AssistantResponse(BaseModel):
    """Response DTO for an assistant. Chunk vectors are not echoed."""

    id: str
    name: str
    description: str
    system_prompt: str
    created_at: int
    chunk_count: int = Field(..., description="Local fallback chunks stored with the assistant", ge=0)


class IndexChunksResponse(BaseModel):
    """Response DTO for chunk ingestion."""

    assistant_id: str
    indexed_count: int = Field(..., description="Chunks ingested by this request", ge=0)
    total_chunks: int = Field(..., description="Local chunks now stored with the assistant", ge=0)


class DeleteAssistantResponse(BaseModel):
    """Response DTO for deleting an assistant and everything stored for it."""

    success: bool
    deleted_cache_entries: int = Field(..., ge=0)
    deleted_chunks: int = Field(..., description="Chunks removed from the primary index", ge=0)
    message: str


class DeleteSessionResponse(BaseModel):
    """Response DTO for deleting a session."""

    success: bool
    message: str
