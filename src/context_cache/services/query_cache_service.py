"""Semantic query cache service.

Stores (query embedding -> ranked results) pairs per assistant and answers
new queries with the stored results of the most similar past query.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any

from context_cache.config import Settings
from context_cache.entities import CacheEntryEntity, CacheMatchEntity, RagChunk
from context_cache.protocols import QueryCacheStore
from context_cache.utils import cosine_similarity

logger = logging.getLogger(__name__)

MS_PER_DAY = 24 * 60 * 60 * 1000

# Float rounding can put an identical vector at 0.9999999999999998.
SIMILARITY_TOLERANCE = 1e-9


def now_ms() -> int:
    """Current Unix time in milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CacheConfig:
    """Query cache settings.

    Attributes:
        similarity_threshold: Minimum cosine similarity for a hit (0-1).
            One value serves every call site; 0.9 keeps hits to near
            paraphrases so reused results stay relevant.
        max_entries_per_assistant: Size cap per tenant
        expiration_days: Entries not accessed for this long are expired
        auto_maintenance: Run periodic expiry in the background
        maintenance_interval_seconds: Period of the background expiry
    """

    similarity_threshold: float = 0.9
    max_entries_per_assistant: int = 1000
    expiration_days: int = 30
    auto_maintenance: bool = True
    maintenance_interval_seconds: float = 24 * 60 * 60

    def __post_init__(self) -> None:
        """Validate config after initialization."""
        self.validate()

    def validate(self) -> None:
        """Raise ValueError for out-of-range settings."""
        if not 0 <= self.similarity_threshold <= 1:
            raise ValueError("similarity_threshold must be between 0 and 1")
        if self.max_entries_per_assistant < 1:
            raise ValueError("max_entries_per_assistant must be at least 1")
        if self.expiration_days < 1:
            raise ValueError("expiration_days must be at least 1")
        if self.maintenance_interval_seconds < 1:
            raise ValueError("maintenance_interval_seconds must be at least 1")

    @property
    def max_age_ms(self) -> int:
        """Expiry bound in milliseconds."""
        return self.expiration_days * MS_PER_DAY

    @classmethod
    def from_settings(cls, settings: Settings) -> "CacheConfig":
        """Build the cache config from application settings."""
        return cls(
            similarity_threshold=settings.cache_similarity_threshold,
            max_entries_per_assistant=settings.cache_max_entries_per_assistant,
            expiration_days=settings.cache_expiration_days,
            auto_maintenance=settings.cache_auto_maintenance,
            maintenance_interval_seconds=settings.cache_maintenance_interval,
        )


class QueryCacheService:
    """Embedding-similarity cache over a QueryCacheStore.

    Lookups scan the tenant's entries (no cross-tenant matches) and return
    the best entry at or above the threshold, not the first one.

    Example:
        ```python
        cache = QueryCacheService(store=InMemoryQueryCacheStore(), config=CacheConfig())

        cache.store("What is RAG?", embedding, results, assistant_id="a1")
        match = cache.lookup(embedding, assistant_id="a1")
        ```
    """

    def __init__(self, store: QueryCacheStore, config: CacheConfig | None = None) -> None:
        """Initialize the cache service.

        Args:
            store: Entry storage backend (required).
            config: Cache settings. Defaults to CacheConfig().
        """
        self._store = store
        self._config = config or CacheConfig()
        self._threshold = self._config.similarity_threshold

    def lookup(
        self,
        query_embedding: list[float],
        assistant_id: str,
        threshold: float | None = None,
    ) -> CacheMatchEntity | None:
        """Find the most similar cached query for one assistant.

        On a hit the entry's hit_count is incremented and last_access_time
        refreshed, and the change is persisted.

        Args:
            query_embedding: Embedding of the new query
            assistant_id: Tenant key
            threshold: Override the configured similarity threshold

        Returns:
            CacheMatchEntity for the best qualifying entry, or None
        """
        threshold = self._threshold if threshold is None else threshold

        best_entry: CacheEntryEntity | None = None
        best_similarity = 0.0

        for entry in self._store.list_by_assistant(assistant_id):
            if entry.assistant_id != assistant_id:
                continue
            similarity = cosine_similarity(query_embedding, entry.query_embedding)
            # Zero similarity never matches, even at threshold 0.
            if similarity >= threshold - SIMILARITY_TOLERANCE and similarity > best_similarity:
                best_entry = entry
                best_similarity = similarity

        if best_entry is None:
            return None

        best_entry.hit_count += 1
        best_entry.last_access_time = now_ms()
        self._store.put(best_entry)

        logger.info(
            "Cache hit for assistant %s (similarity %.4f): %r",
            assistant_id,
            best_similarity,
            best_entry.query_text,
        )
        return CacheMatchEntity(entry=best_entry, similarity=best_similarity)

    # Descriptive alias
    search_similar_query = lookup

    def store(
        self,
        query_text: str,
        query_embedding: list[float],
        results: list[RagChunk],
        assistant_id: str,
    ) -> CacheEntryEntity:
        """Cache the ranked results of a query, then enforce the size cap.

        Args:
            query_text: The original query text
            query_embedding: Embedding of the query
            results: Ranked results of the full retrieval
            assistant_id: Tenant key

        Returns:
            The stored entry
        """
        timestamp = now_ms()
        entry = CacheEntryEntity(
            id=str(uuid.uuid4()),
            query_text=query_text,
            query_embedding=list(query_embedding),
            stored_results=list(results),
            assistant_id=assistant_id,
            timestamp=timestamp,
            hit_count=0,
            last_access_time=timestamp,
        )
        self._store.put(entry)
        self.enforce_cache_limit(assistant_id)

        logger.debug("Cached query result for assistant %s: %r", assistant_id, query_text)
        return entry

    cache_query_result = store

    def enforce_cache_limit(self, assistant_id: str, max_entries: int | None = None) -> int:
        """Evict the least recently accessed entries beyond the per-tenant cap.

        Args:
            assistant_id: Tenant key
            max_entries: Override the configured cap

        Returns:
            Number of entries evicted (0 when already within the cap)
        """
        limit = max_entries if max_entries is not None else self._config.max_entries_per_assistant
        entries = self._store.list_by_assistant(assistant_id)

        if len(entries) <= limit:
            return 0

        entries.sort(key=lambda e: e.last_access_time)
        to_delete = [entry.id for entry in entries[: len(entries) - limit]]
        deleted = self._store.delete(to_delete)

        logger.info("Enforced cache limit for assistant %s: deleted %d entries", assistant_id, deleted)
        return deleted

    def expire(self, max_age_ms: int | None = None) -> int:
        """Delete entries not accessed within the age bound.

        Args:
            max_age_ms: Age bound in milliseconds. Defaults to expiration_days.

        Returns:
            Number of entries deleted
        """
        age = max_age_ms if max_age_ms is not None else self._config.max_age_ms
        deleted = self._store.delete_accessed_before(now_ms() - age)
        logger.info("Cleaned up %d expired cache entries", deleted)
        return deleted

    cleanup_expired_cache = expire

    def clear_assistant_cache(self, assistant_id: str) -> int:
        """Delete every cached entry of one assistant.

        Returns:
            Number of entries deleted
        """
        deleted = self._store.delete_by_assistant(assistant_id)
        logger.info("Cleared %d cache entries for assistant %s", deleted, assistant_id)
        return deleted

    def get_cache_stats(self) -> dict[str, Any]:
        """Get storage statistics.

        Returns:
            Dictionary with total_entries, entries_by_assistant, oldest_entry
            and newest_entry (creation timestamps in ms, None when empty)
        """
        entries = self._store.list_all()
        by_assistant: dict[str, int] = {}
        for entry in entries:
            by_assistant[entry.assistant_id] = by_assistant.get(entry.assistant_id, 0) + 1

        timestamps = [entry.timestamp for entry in entries]
        return {
            "total_entries": len(entries),
            "entries_by_assistant": by_assistant,
            "oldest_entry": min(timestamps) if timestamps else None,
            "newest_entry": max(timestamps) if timestamps else None,
            "similarity_threshold": self._threshold,
        }

    def set_similarity_threshold(self, threshold: float) -> None:
        """Update the similarity threshold, clamped into [0, 1]."""
        self._threshold = max(0.0, min(1.0, threshold))

    def is_healthy(self) -> bool:
        """Check if the storage backend is reachable."""
        return self._store.health_check()

    @property
    def threshold(self) -> float:
        """Get current similarity threshold."""
        return self._threshold

    @property
    def config(self) -> CacheConfig:
        """Get the cache config."""
        return self._config

    @property
    def store_backend(self) -> QueryCacheStore:
        """Get the underlying store (for testing)."""
        return self._store
