"""Service layer for business logic.

This layer contains the compaction policy, the semantic query cache and the
retrieval orchestration. Services depend on protocols (interfaces), not
concrete implementations, making them testable and flexible.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)

Usage:
    ```python
    from context_cache.services import QueryCacheService, RagCacheManager

    cache = QueryCacheService(store=InMemoryQueryCacheStore())
    manager = RagCacheManager(query_cache=cache, rag_service=rag, embedding_provider=provider)
    ```
"""

from .compactor_service import ChatCompactorService, CompressionConfig
from .maintenance import CacheMaintenanceTask
from .query_cache_service import CacheConfig, QueryCacheService
from .rag_cache_manager import CacheMetrics, RagCacheManager
from .rag_query_service import RagQueryService, RetrievalOptions
from .session_service import ChatSessionService

__all__ = [
    "ChatCompactorService",
    "CompressionConfig",
    "ChatSessionService",
    "CacheConfig",
    "QueryCacheService",
    "RetrievalOptions",
    "RagQueryService",
    "CacheMetrics",
    "RagCacheManager",
    "CacheMaintenanceTask",
]
