"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Easy swapping of implementations (Redis -> in-memory, local -> Ollama, etc.)
- Unit testing with fake implementations
- Clear separation of concerns

Usage:
    ```python
    from context_cache.protocols import QueryCacheStore, EmbeddingProvider

    store: QueryCacheStore = RedisQueryCacheStore.create(settings)  # works
    store: QueryCacheStore = InMemoryQueryCacheStore()               # also works
    ```
"""

from .cache_store import QueryCacheStore
from .chat_store import ChatStore
from .chunk_index import ChunkIndex
from .embedding_provider import EmbeddingKind, EmbeddingProvider
from .text_generator import TextGenerator

__all__ = [
    "QueryCacheStore",
    "ChatStore",
    "ChunkIndex",
    "EmbeddingKind",
    "EmbeddingProvider",
    "TextGenerator",
]
