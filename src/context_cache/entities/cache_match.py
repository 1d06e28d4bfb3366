"""Cache match domain entities."""

from dataclasses import dataclass

from .cache_entry import CacheEntryEntity
from .rag_chunk import RagChunk, RetrievalResult


@dataclass(frozen=True)
class CacheMatchEntity:
    """Best cache entry for a lookup.

    Attributes:
        entry: The matched cache entry (hit statistics already updated)
        similarity: Cosine similarity (1 = identical direction)
    """

    entry: CacheEntryEntity
    similarity: float


@dataclass(frozen=True)
class CachedQueryResult:
    """Result of a cache-fronted retrieval.

    Attributes:
        results: Ranked chunks, either from cache or from full retrieval
        from_cache: True if served from a cache hit
        query_time_ms: Total time of the call
        similarity: Similarity of the matched entry on a hit
        original_query: Query text of the matched entry on a hit
        retrieval: Full retrieval metadata on a miss
    """

    results: list[RagChunk]
    from_cache: bool
    query_time_ms: float
    similarity: float | None = None
    original_query: str | None = None
    retrieval: RetrievalResult | None = None
