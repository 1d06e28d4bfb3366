"""Redis implementation of QueryCacheStore.

Each entry is a Redis hash; a set per assistant indexes the entry ids of
that tenant so lookups never scan other tenants' keys.

Key layout:
    {prefix}:entry:{entry_id}          hash with the entry fields
    {prefix}:assistant:{assistant_id}  set of entry ids
    {prefix}:entries                   set of every entry id
"""

import logging
import struct

import redis

from context_cache.config import Settings, get_redis_client
from context_cache.entities import CacheEntryEntity
from context_cache.utils.serialization import chunks_from_json, chunks_to_json

logger = logging.getLogger(__name__)


class RedisQueryCacheStore:
    """Redis hash storage for query cache entries.

    This class satisfies the QueryCacheStore protocol through structural
    typing - no explicit inheritance needed.

    Embeddings are packed as float64 bytes so a stored vector compares
    exactly equal to the one it came from.
    """

    def __init__(self, redis_client: redis.Redis, prefix: str = "context_cache:query") -> None:
        """Initialize the Redis cache store.

        Args:
            redis_client: Redis client instance (decode_responses=False).
            prefix: Key prefix for every key this store writes.
        """
        self._client = redis_client
        self._prefix = prefix

    @classmethod
    def create(cls, settings: Settings, redis_client: redis.Redis | None = None) -> "RedisQueryCacheStore":
        """Factory method to create RedisQueryCacheStore from settings.

        Args:
            settings: Application settings
            redis_client: Existing client to share. If None, creates one.

        Returns:
            Configured RedisQueryCacheStore
        """
        return cls(
            redis_client=redis_client or get_redis_client(settings),
            prefix=f"{settings.cache_index_name}:query",
        )

    def _entry_key(self, entry_id: str) -> str:
        return f"{self._prefix}:entry:{entry_id}"

    def _assistant_key(self, assistant_id: str) -> str:
        return f"{self._prefix}:assistant:{assistant_id}"

    @property
    def _all_key(self) -> str:
        return f"{self._prefix}:entries"

    def put(self, entry: CacheEntryEntity) -> None:
        # Convert vector to float64 bytes for Redis
        vector_bytes = struct.pack(f"{len(entry.query_embedding)}d", *entry.query_embedding)

        pipe = self._client.pipeline()
        pipe.hset(
            self._entry_key(entry.id),
            mapping={
                "id": entry.id,
                "query_text": entry.query_text,
                "query_embedding": vector_bytes,
                "stored_results": chunks_to_json(entry.stored_results),
                "assistant_id": entry.assistant_id,
                "timestamp": str(entry.timestamp),
                "hit_count": str(entry.hit_count),
                "last_access_time": str(entry.last_access_time),
            },
        )
        pipe.sadd(self._assistant_key(entry.assistant_id), entry.id)
        pipe.sadd(self._all_key, entry.id)
        pipe.execute()

    def get(self, entry_id: str) -> CacheEntryEntity | None:
        data = self._client.hgetall(self._entry_key(entry_id))
        if not data:
            return None
        return self._decode(data)

    def list_by_assistant(self, assistant_id: str) -> list[CacheEntryEntity]:
        ids = [self._text(i) for i in self._client.smembers(self._assistant_key(assistant_id))]
        return self._load_many(ids, assistant_id)

    def list_all(self) -> list[CacheEntryEntity]:
        ids = [self._text(i) for i in self._client.smembers(self._all_key)]
        return self._load_many(ids)

    def delete(self, entry_ids: list[str]) -> int:
        deleted = 0
        for entry in self._load_many(entry_ids):
            deleted += self._delete_entry(entry.id, entry.assistant_id)
        return deleted

    def delete_by_assistant(self, assistant_id: str) -> int:
        ids = [self._text(i) for i in self._client.smembers(self._assistant_key(assistant_id))]
        deleted = 0
        for entry_id in ids:
            deleted += self._delete_entry(entry_id, assistant_id)
        self._client.delete(self._assistant_key(assistant_id))
        return deleted

    def delete_accessed_before(self, cutoff_ms: int) -> int:
        deleted = 0
        for entry in self.list_all():
            if entry.last_access_time <= cutoff_ms:
                deleted += self._delete_entry(entry.id, entry.assistant_id)
        return deleted

    def health_check(self) -> bool:
        """Check if Redis is accessible."""
        try:
            return bool(self._client.ping())
        except Exception:
            return False

    def _delete_entry(self, entry_id: str, assistant_id: str) -> int:
        pipe = self._client.pipeline()
        pipe.delete(self._entry_key(entry_id))
        pipe.srem(self._assistant_key(assistant_id), entry_id)
        pipe.srem(self._all_key, entry_id)
        removed, _, _ = pipe.execute()
        return int(removed)

    def _load_many(self, entry_ids: list[str], assistant_id: str | None = None) -> list[CacheEntryEntity]:
        if not entry_ids:
            return []

        pipe = self._client.pipeline()
        for entry_id in entry_ids:
            pipe.hgetall(self._entry_key(entry_id))

        entries = []
        for entry_id, data in zip(entry_ids, pipe.execute()):
            if not data:
                # Index points at an entry that is gone
                logger.debug("Dropping stale index member %s", entry_id)
                stale = self._client.pipeline()
                stale.srem(self._all_key, entry_id)
                if assistant_id is not None:
                    stale.srem(self._assistant_key(assistant_id), entry_id)
                stale.execute()
                continue
            entries.append(self._decode(data))
        return entries

    def _decode(self, data: dict) -> CacheEntryEntity:
        fields = {self._text(k): v for k, v in data.items()}
        raw_vector = fields["query_embedding"]
        count = len(raw_vector) // 8

        return CacheEntryEntity(
            id=self._text(fields["id"]),
            query_text=self._text(fields["query_text"]),
            query_embedding=list(struct.unpack(f"{count}d", raw_vector)),
            stored_results=chunks_from_json(fields.get("stored_results", b"[]")),
            assistant_id=self._text(fields["assistant_id"]),
            timestamp=int(self._text(fields["timestamp"])),
            hit_count=int(self._text(fields.get("hit_count", b"0"))),
            last_access_time=int(self._text(fields["last_access_time"])),
        )

    @staticmethod
    def _text(value: bytes | str) -> str:
        return value.decode() if isinstance(value, bytes) else value

    def get_stats(self) -> dict:
        """Get repository statistics."""
        return {
            "prefix": self._prefix,
            "total_entries": int(self._client.scard(self._all_key)),
        }

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client."""
        return self._client
