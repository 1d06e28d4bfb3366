"""Domain entities for internal representation.

These are pure dataclasses used internally by services and repositories.
They are NOT used for API contracts - use DTOs from the dto package for that.

Entities should have:
- No JSON serialization logic
- No Pydantic validation
- No external dependencies
"""

from .cache_entry import CacheEntryEntity
from .cache_match import CachedQueryResult, CacheMatchEntity
from .compact_context import CompactContext, CompressionResult
from .conversation import (
    MODEL_ROLE,
    SYSTEM_ROLE,
    USER_ROLE,
    ChatMessage,
    ConversationRound,
    SystemMessage,
)
from .rag_chunk import RagChunk, RetrievalResult, RetrievalSource
from .session import DEFAULT_SESSION_TITLE, Assistant, ChatSession

__all__ = [
    "USER_ROLE",
    "MODEL_ROLE",
    "SYSTEM_ROLE",
    "DEFAULT_SESSION_TITLE",
    "ChatMessage",
    "SystemMessage",
    "ConversationRound",
    "CompactContext",
    "CompressionResult",
    "RagChunk",
    "RetrievalResult",
    "RetrievalSource",
    "CacheEntryEntity",
    "CacheMatchEntity",
    "CachedQueryResult",
    "Assistant",
    "ChatSession",
]
