"""Data Transfer Objects for API contracts.

These Pydantic models define the external API contract.
They are used for request/response validation and serialization.

Internal domain logic should use entities from the entities package.
"""

from .requests import (
    AssistantCreateRequest,
    ChunksRequest,
    ExchangeRequest,
    RagChunkItem,
    RagQueryRequest,
    SessionCreateRequest,
    ShouldTriggerRequest,
    ThresholdRequest,
)
from .responses import (
    AssistantResponse,
    CacheMetricsResponse,
    CacheStatsResponse,
    ClearCacheResponse,
    CompactContextItem,
    DeleteAssistantResponse,
    DeleteSessionResponse,
    HealthCheckResponse,
    IndexChunksResponse,
    MaintenanceResponse,
    RagQueryResponse,
    SessionResponse,
    ShouldTriggerResponse,
    ThresholdResponse,
)

__all__ = [
    "RagChunkItem",
    "RagQueryRequest",
    "ThresholdRequest",
    "ExchangeRequest",
    "ShouldTriggerRequest",
    "AssistantCreateRequest",
    "ChunksRequest",
    "SessionCreateRequest",
    "RagQueryResponse",
    "CacheMetricsResponse",
    "CacheStatsResponse",
    "MaintenanceResponse",
    "ClearCacheResponse",
    "ThresholdResponse",
    "CompactContextItem",
    "SessionResponse",
    "ShouldTriggerResponse",
    "HealthCheckResponse",
    "AssistantResponse",
    "IndexChunksResponse",
    "DeleteAssistantResponse",
    "DeleteSessionResponse",
]
