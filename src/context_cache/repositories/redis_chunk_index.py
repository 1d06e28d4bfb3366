"""Redis implementation of ChunkIndex.

This is the primary vector store for document chunks. It uses Redis Stack
vector search (HNSW index, COSINE distance) with an ``assistant_id`` tag so
every search is restricted to one tenant.
"""

import logging
import uuid

import redis
from redisvl.index import SearchIndex
from redisvl.query import VectorQuery
from redisvl.query.filter import Tag
from redisvl.redis.utils import array_to_buffer

from context_cache.config import Settings, get_redis_client
from context_cache.entities import RagChunk
from context_cache.protocols import EmbeddingProvider

logger = logging.getLogger(__name__)

# Default dimension for paraphrase-multilingual-MiniLM-L12-v2
DEFAULT_DIMENSION = 384


class RedisChunkIndex:
    """HNSW vector index over assistant document chunks.

    This class satisfies the ChunkIndex protocol through structural
    typing - no explicit inheritance needed.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        index_name: str = "context_cache_chunks",
        dimension: int = DEFAULT_DIMENSION,
    ) -> None:
        """Initialize the chunk index.

        Args:
            redis_client: Redis client instance.
            index_name: Name of the Redis search index.
            dimension: Embedding vector dimension.
        """
        self._client = redis_client
        self._index_name = index_name
        self._dimension = dimension
        self._index: SearchIndex | None = None

        self._ensure_index()

    @classmethod
    def create(
        cls,
        settings: Settings,
        embedding_provider: EmbeddingProvider | None = None,
        redis_client: redis.Redis | None = None,
    ) -> "RedisChunkIndex":
        """Factory method to create RedisChunkIndex from settings.

        Args:
            settings: Application settings
            embedding_provider: Provider for the vector dimension.
            redis_client: Existing client to share. If None, creates one.

        Returns:
            Configured RedisChunkIndex
        """
        return cls(
            redis_client=redis_client or get_redis_client(settings),
            index_name=f"{settings.cache_index_name}_chunks",
            dimension=embedding_provider.dimension if embedding_provider else DEFAULT_DIMENSION,
        )

    def _ensure_index(self) -> None:
        """Ensure the Redis vector index exists."""
        if self._index is not None:
            return

        index_schema = {
            "index": {
                "name": self._index_name,
                "prefix": f"{self._index_name}:",
                "storage_type": "hash",
            },
            "fields": [
                {"name": "id", "type": "tag"},
                {"name": "assistant_id", "type": "tag"},
                {"name": "file_name", "type": "text"},
                {"name": "content", "type": "text"},
                {"name": "chunk_index", "type": "numeric"},
                {
                    "name": "vector",
                    "type": "vector",
                    "attrs": {
                        "dims": self._dimension,
                        "algorithm": "HNSW",
                        "metric": "COSINE",
                        "datatype": "float32",
                    },
                },
            ],
        }

        self._index = SearchIndex.from_dict(index_schema, redis_client=self._client)

        if self._index.exists():
            logger.info("Using existing index: %s", self._index_name)
        else:
            self._index.create(overwrite=False)
            logger.info("Created new index: %s", self._index_name)

    def _assistant_key(self, assistant_id: str) -> str:
        return f"{self._index_name}:assistant:{assistant_id}"

    def add_chunks(self, assistant_id: str, chunks: list[RagChunk]) -> int:
        """Index chunks for one assistant; chunks without a vector are skipped."""
        records = [
            {
                "id": chunk.id or str(uuid.uuid4()),
                "assistant_id": assistant_id,
                "file_name": chunk.file_name,
                "content": chunk.content,
                "chunk_index": chunk.chunk_index if chunk.chunk_index is not None else 0,
                "vector": array_to_buffer(chunk.vector, dtype="float32"),
            }
            for chunk in chunks
            if chunk.vector
        ]
        if not records:
            return 0

        keys = self._index.load(records, id_field="id")
        self._client.sadd(self._assistant_key(assistant_id), *keys)

        logger.info("Indexed %d chunks for assistant %s", len(keys), assistant_id)
        return len(keys)

    def search_similar_chunks(self, assistant_id: str, vector: list[float], limit: int) -> list[RagChunk]:
        """Find one assistant's chunks closest to a query vector."""
        query = VectorQuery(
            vector=vector,
            vector_field_name="vector",
            return_fields=["id", "file_name", "content", "chunk_index"],
            num_results=limit,
            filter_expression=Tag("assistant_id") == assistant_id,
        )

        results = self._index.query(query)

        chunks = []
        for result in results:
            # COSINE distance is 1 - cosine similarity
            distance = float(result.get("vector_distance", 1.0))
            chunk_index = result.get("chunk_index")
            chunks.append(
                RagChunk(
                    id=result.get("id"),
                    file_name=result.get("file_name", ""),
                    content=result.get("content", ""),
                    chunk_index=int(float(chunk_index)) if chunk_index is not None else None,
                    relevance_score=1.0 - distance,
                )
            )

        chunks.sort(key=lambda c: c.relevance_score or 0.0, reverse=True)
        return chunks

    def delete_by_assistant(self, assistant_id: str) -> int:
        """Remove every chunk of one assistant."""
        set_key = self._assistant_key(assistant_id)
        keys = list(self._client.smembers(set_key))
        deleted = int(self._client.delete(*keys)) if keys else 0
        self._client.delete(set_key)

        logger.info("Deleted %d chunks for assistant %s", deleted, assistant_id)
        return deleted

    def health_check(self) -> bool:
        """Check if Redis is accessible."""
        try:
            return bool(self._client.ping())
        except Exception:
            return False
