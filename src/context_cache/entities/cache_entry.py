"""Query cache entry domain entity."""

from dataclasses import dataclass, field

from .rag_chunk import RagChunk


@dataclass
class CacheEntryEntity:
    """Domain entity for a cached query and its ranked retrieval results.

    Not frozen: ``hit_count`` and ``last_access_time`` are updated on every
    cache hit.

    Attributes:
        id: Unique entry id
        query_text: The query that produced the results
        query_embedding: Embedding vector of the query
        stored_results: Ranked chunks returned by full retrieval
        assistant_id: Tenant key; lookups never cross tenants
        timestamp: Creation time (Unix milliseconds)
        hit_count: Number of cache hits served from this entry
        last_access_time: Last hit or creation time (Unix milliseconds)
    """

    id: str
    query_text: str
    query_embedding: list[float]
    assistant_id: str
    timestamp: int
    last_access_time: int
    stored_results: list[RagChunk] = field(default_factory=list)
    hit_count: int = 0
