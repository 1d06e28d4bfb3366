"""Embedding provider protocol.

Defines the interface for any embedding service that can turn text into
vectors and rerank retrieved chunks against a query.

Implementations can include:
- sentence-transformers (local, default)
- Ollama (local HTTP API)
- Custom embedding services
"""

from typing import Literal, Protocol, runtime_checkable

from context_cache.entities import RagChunk

EmbeddingKind = Literal["query", "document"]


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for embedding generation and reranking services.

    Example:
        ```python
        provider: EmbeddingProvider = LocalEmbeddingProvider.create()
        provider: EmbeddingProvider = OllamaEmbeddingProvider.create()
        ```
    """

    @property
    def dimension(self) -> int:
        """Return the dimension of the embedding vectors."""
        ...

    @property
    def model_name(self) -> str:
        """Return the name/identifier of the model."""
        ...

    async def encode(self, text: str, kind: EmbeddingKind = "query") -> list[float]:
        """Generate an embedding vector for a single text.

        Args:
            text: The text to encode
            kind: "query" for search queries, "document" for stored chunks

        Returns:
            The embedding vector as a list of floats
        """
        ...

    async def rerank(self, query: str, chunks: list[RagChunk], limit: int) -> list[RagChunk]:
        """Reorder chunks by relevance to a query.

        Args:
            query: The search query
            chunks: Candidate chunks
            limit: Maximum number of chunks to return

        Returns:
            At most ``limit`` chunks, best first, with ``relevance_score`` set
        """
        ...

    async def is_available(self) -> bool:
        """Check if the embedding provider is available."""
        ...
