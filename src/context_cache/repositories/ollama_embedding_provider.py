"""Ollama-based embedding provider.

Uses Ollama's local API to generate embeddings. Ollama serves models locally
without requiring HuggingFace authentication or downloading models manually.

Requirements:
    - Ollama installed: https://ollama.com
    - Model pulled: `ollama pull embeddinggemma`
    - Ollama running: `ollama serve` (usually runs automatically)

Ollama has no reranking endpoint, so rerank orders chunks by cosine
similarity between the query embedding and each chunk's embedding.
"""

import asyncio
import dataclasses
import logging

import httpx

from context_cache.config import Settings
from context_cache.entities import RagChunk
from context_cache.protocols import EmbeddingKind
from context_cache.utils import cosine_similarity

from .local_embedding_provider import GEMMA_PREFIXES

logger = logging.getLogger(__name__)


class OllamaEmbeddingProvider:
    """Ollama-based implementation of EmbeddingProvider protocol.

    This class satisfies the EmbeddingProvider protocol through structural
    typing - no explicit inheritance needed.

    Example:
        ```python
        provider = OllamaEmbeddingProvider(
            model_name="embeddinggemma",
            base_url="http://localhost:11434",
        )

        embedding = await provider.encode("Hello, world!")
        print(len(embedding))  # 768
        ```
    """

    # Known model dimensions (for common models)
    MODEL_DIMENSIONS = {
        "embeddinggemma": 768,
        "embeddinggemma:300m": 768,
        "nomic-embed-text": 768,
        "mxbai-embed-large": 1024,
        "all-minilm": 384,
        "all-minilm:l6-v2": 384,
    }

    def __init__(
        self,
        model_name: str,
        base_url: str = "http://localhost:11434",
        timeout: float = 30.0,
    ) -> None:
        """Initialize the Ollama embedding provider.

        Args:
            model_name: Name of the Ollama model.
            base_url: Ollama API base URL.
            timeout: Request timeout in seconds.
        """
        self._model_name = model_name
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._dimension: int | None = None
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            )
        return self._client

    @classmethod
    def create(cls, settings: Settings) -> "OllamaEmbeddingProvider":
        """Factory method to create OllamaEmbeddingProvider from settings."""
        return cls(
            model_name=settings.embedding_model,
            base_url=settings.ollama_base_url,
            timeout=settings.collaborator_timeout,
        )

    @property
    def dimension(self) -> int:
        """Get the embedding vector dimension.

        For unknown models, returns 768 until the first encode reports the
        real size.
        """
        if self._dimension is None:
            self._dimension = self.MODEL_DIMENSIONS.get(self._model_name, 768)
        return self._dimension

    @property
    def model_name(self) -> str:
        """Get the model name/identifier."""
        return self._model_name

    def _prefixed(self, text: str, kind: EmbeddingKind) -> str:
        if self._model_name.startswith("embeddinggemma"):
            return GEMMA_PREFIXES[kind] + text
        return text

    async def _embed(self, inputs: str | list[str]) -> list[list[float]]:
        url = f"{self._base_url}/api/embed"
        payload = {
            "model": self._model_name,
            "input": inputs,
        }

        try:
            response = await self.client.post(url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            error_msg = f"Ollama API error: {e}"
            if "connection refused" in str(e).lower():
                error_msg += " (is Ollama running? Try: ollama serve)"
            elif "not found" in str(e).lower():
                error_msg += f" (model not found? Try: ollama pull {self._model_name})"
            raise RuntimeError(error_msg) from e

        # Ollama returns {"embeddings": [[...]]}; older versions {"embedding": [...]}
        if data.get("embeddings"):
            embeddings = data["embeddings"]
        elif "embedding" in data:
            embeddings = [data["embedding"]]
        else:
            raise ValueError(f"Unexpected response format: {data}")

        self._dimension = len(embeddings[0])
        return embeddings

    async def encode(self, text: str, kind: EmbeddingKind = "query") -> list[float]:
        """Generate embedding vector for a single text.

        Raises:
            RuntimeError: If the Ollama API request fails
            ValueError: If the response format is invalid
        """
        embeddings = await self._embed(self._prefixed(text, kind))
        return embeddings[0]

    async def rerank(self, query: str, chunks: list[RagChunk], limit: int) -> list[RagChunk]:
        """Order chunks by embedding similarity to the query, best first."""
        if not chunks:
            return []

        query_vector, doc_vectors = await asyncio.gather(
            self.encode(query, "query"),
            self._embed([self._prefixed(chunk.content, "document") for chunk in chunks]),
        )

        scored = [
            dataclasses.replace(chunk, relevance_score=cosine_similarity(query_vector, vector))
            for chunk, vector in zip(chunks, doc_vectors)
        ]
        scored.sort(key=lambda c: c.relevance_score or 0.0, reverse=True)
        return scored[:limit]

    async def is_available(self) -> bool:
        """Check if Ollama is running and the model is available."""
        try:
            await self.encode("test")
            return True
        except Exception as e:
            logger.warning("Ollama embedding provider unavailable: %s", e)
            return False

    async def close(self) -> None:
        """Close the async HTTP client.

        Should be called when shutting down the application.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None
