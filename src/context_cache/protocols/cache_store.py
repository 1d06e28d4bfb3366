"""Query cache storage protocol.

Defines the interface for any backend that can persist query cache entries
partitioned by assistant id (the tenant key).

Implementations:
- In-memory dictionaries (local / tests)
- Redis hashes with a per-assistant set index
"""

from typing import Protocol, runtime_checkable

from context_cache.entities import CacheEntryEntity


@runtime_checkable
class QueryCacheStore(Protocol):
    """Protocol for query cache storage backends.

    Any type implementing these methods satisfies the protocol, no explicit
    inheritance needed.

    Example:
        ```python
        store: QueryCacheStore = InMemoryQueryCacheStore()
        store: QueryCacheStore = RedisQueryCacheStore.create(settings)
        ```
    """

    def put(self, entry: CacheEntryEntity) -> None:
        """Insert or replace an entry (keyed by ``entry.id``).

        Args:
            entry: The cache entry to persist
        """
        ...

    def get(self, entry_id: str) -> CacheEntryEntity | None:
        """Fetch a single entry.

        Args:
            entry_id: The entry id

        Returns:
            The entry, or None if it does not exist
        """
        ...

    def list_by_assistant(self, assistant_id: str) -> list[CacheEntryEntity]:
        """List every entry stored for one assistant.

        Args:
            assistant_id: The tenant key

        Returns:
            Entries for that assistant only, in no particular order
        """
        ...

    def list_all(self) -> list[CacheEntryEntity]:
        """List every entry across all assistants.

        Returns:
            All stored entries
        """
        ...

    def delete(self, entry_ids: list[str]) -> int:
        """Delete entries by id.

        Args:
            entry_ids: Ids to delete; unknown ids are ignored

        Returns:
            Number of entries deleted
        """
        ...

    def delete_by_assistant(self, assistant_id: str) -> int:
        """Delete all entries of one assistant.

        Args:
            assistant_id: The tenant key

        Returns:
            Number of entries deleted
        """
        ...

    def delete_accessed_before(self, cutoff_ms: int) -> int:
        """Delete entries whose last access time is at or before a cutoff.

        Args:
            cutoff_ms: Unix time in milliseconds

        Returns:
            Number of entries deleted
        """
        ...

    def health_check(self) -> bool:
        """Check if the backend is accessible.

        Returns:
            True if healthy, False otherwise
        """
        ...
