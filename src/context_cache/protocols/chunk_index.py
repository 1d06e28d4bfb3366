"""Primary vector store protocol for document chunks.

Implementations can include:
- Redis Stack with vector search (default)
- Any other vector database with a tenant filter
"""

from typing import Protocol, runtime_checkable

from context_cache.entities import RagChunk


@runtime_checkable
class ChunkIndex(Protocol):
    """Protocol for the primary chunk vector store."""

    def add_chunks(self, assistant_id: str, chunks: list[RagChunk]) -> int:
        """Index chunks for one assistant.

        Args:
            assistant_id: The tenant key
            chunks: Chunks carrying a ``vector``; chunks without one are skipped

        Returns:
            Number of chunks indexed
        """
        ...

    def search_similar_chunks(
        self,
        assistant_id: str,
        vector: list[float],
        limit: int,
    ) -> list[RagChunk]:
        """Find the chunks of one assistant closest to a query vector.

        Args:
            assistant_id: The tenant key
            vector: The query embedding
            limit: Maximum number of chunks

        Returns:
            Chunks sorted by similarity, with ``relevance_score`` holding the
            cosine similarity
        """
        ...

    def delete_by_assistant(self, assistant_id: str) -> int:
        """Remove every chunk of one assistant.

        Returns:
            Number of chunks deleted
        """
        ...
