"""In-memory implementation of QueryCacheStore.

Keeps entries in a dictionary. Used for local runs without Redis and in
tests; contents are lost when the process exits.
"""

import copy
import threading

from context_cache.entities import CacheEntryEntity


class InMemoryQueryCacheStore:
    """Dictionary-backed query cache storage.

    This class satisfies the QueryCacheStore protocol through structural
    typing - no explicit inheritance needed.

    Entries are copied on the way in and out, so callers never share state
    with the store.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntryEntity] = {}
        self._lock = threading.Lock()

    def put(self, entry: CacheEntryEntity) -> None:
        with self._lock:
            self._entries[entry.id] = copy.deepcopy(entry)

    def get(self, entry_id: str) -> CacheEntryEntity | None:
        with self._lock:
            entry = self._entries.get(entry_id)
            return copy.deepcopy(entry) if entry is not None else None

    def list_by_assistant(self, assistant_id: str) -> list[CacheEntryEntity]:
        with self._lock:
            return [copy.deepcopy(e) for e in self._entries.values() if e.assistant_id == assistant_id]

    def list_all(self) -> list[CacheEntryEntity]:
        with self._lock:
            return [copy.deepcopy(e) for e in self._entries.values()]

    def delete(self, entry_ids: list[str]) -> int:
        with self._lock:
            deleted = 0
            for entry_id in entry_ids:
                if self._entries.pop(entry_id, None) is not None:
                    deleted += 1
            return deleted

    def delete_by_assistant(self, assistant_id: str) -> int:
        with self._lock:
            ids = [entry_id for entry_id, e in self._entries.items() if e.assistant_id == assistant_id]
            for entry_id in ids:
                del self._entries[entry_id]
            return len(ids)

    def delete_accessed_before(self, cutoff_ms: int) -> int:
        with self._lock:
            ids = [entry_id for entry_id, e in self._entries.items() if e.last_access_time <= cutoff_ms]
            for entry_id in ids:
                del self._entries[entry_id]
            return len(ids)

    def health_check(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self._entries)
