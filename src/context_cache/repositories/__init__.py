"""Repository layer for data access.

This layer abstracts external dependencies (Redis, embedding models, chat
model APIs) behind protocol-based interfaces. This enables:
- Easy swapping of implementations (Redis -> in-memory, local -> Ollama, etc.)
- Unit testing with fake implementations
- Clear separation of concerns

The repositories are protocol-based (structural typing), not inheritance-based.
Any class implementing the required methods will satisfy the protocol.
"""

from .local_embedding_provider import LocalEmbeddingProvider
from .memory_cache_store import InMemoryQueryCacheStore
from .memory_chat_store import InMemoryChatStore
from .ollama_embedding_provider import OllamaEmbeddingProvider
from .openai_text_generator import OpenAITextGenerator
from .redis_cache_store import RedisQueryCacheStore
from .redis_chat_store import RedisChatStore
from .redis_chunk_index import RedisChunkIndex

__all__ = [
    "InMemoryQueryCacheStore",
    "InMemoryChatStore",
    "RedisQueryCacheStore",
    "RedisChunkIndex",
    "RedisChatStore",
    "LocalEmbeddingProvider",
    "OllamaEmbeddingProvider",
    "OpenAITextGenerator",
]
