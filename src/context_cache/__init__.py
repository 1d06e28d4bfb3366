"""Context Cache - Conversation compaction and semantic retrieval caching.

This package keeps long chat sessions within a bounded context budget and
serves repeated or paraphrased retrieval queries from a per-assistant
semantic cache.

Layers:
    - protocols: Interface contracts (QueryCacheStore, EmbeddingProvider, TextGenerator, ...)
    - repositories: Data access implementations (Redis, in-memory, local models, Ollama, OpenAI)
    - services: Business logic (compaction, query cache, retrieval, sessions)
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)
    - utils: Round accounting, token estimation, vector math

Usage:
    ```python
    from context_cache.services import QueryCacheService, RagCacheManager, RagQueryService
    from context_cache.repositories import InMemoryQueryCacheStore, LocalEmbeddingProvider

    provider = LocalEmbeddingProvider.create(settings)
    manager = RagCacheManager(
        query_cache=QueryCacheService(store=InMemoryQueryCacheStore()),
        rag_service=RagQueryService(embedding_provider=provider),
        embedding_provider=provider,
    )
    ```

For HTTP API:
    ```python
    from context_cache.api.app import app
    ```
"""

from context_cache.config import Settings, get_redis_client, get_settings
from context_cache.entities import (
    CachedQueryResult,
    CacheEntryEntity,
    CacheMatchEntity,
    CompactContext,
    CompressionResult,
    RagChunk,
    RetrievalResult,
)
from context_cache.errors import (
    AssistantNotFoundError,
    ContextCacheError,
    SessionNotFoundError,
)
from context_cache.protocols import (
    ChatStore,
    ChunkIndex,
    EmbeddingProvider,
    QueryCacheStore,
    TextGenerator,
)
from context_cache.services import (
    CacheConfig,
    ChatCompactorService,
    ChatSessionService,
    CompressionConfig,
    QueryCacheService,
    RagCacheManager,
    RagQueryService,
)

__all__ = [
    # Configuration
    "Settings",
    "get_settings",
    "get_redis_client",
    # Errors
    "ContextCacheError",
    "AssistantNotFoundError",
    "SessionNotFoundError",
    # Protocols (interfaces)
    "QueryCacheStore",
    "EmbeddingProvider",
    "TextGenerator",
    "ChunkIndex",
    "ChatStore",
    # Services (business logic)
    "CompressionConfig",
    "ChatCompactorService",
    "ChatSessionService",
    "CacheConfig",
    "QueryCacheService",
    "RagQueryService",
    "RagCacheManager",
    # Entities (domain models)
    "CompactContext",
    "CompressionResult",
    "RagChunk",
    "RetrievalResult",
    "CacheEntryEntity",
    "CacheMatchEntity",
    "CachedQueryResult",
]
