"""Local sentence-transformers embedding provider.

This is the default embedding provider, using sentence-transformers models
running locally for embeddings and a cross-encoder for reranking. No API
calls required.
"""

import asyncio
import dataclasses
import logging
import time

import numpy as np
from sentence_transformers import CrossEncoder, SentenceTransformer

from context_cache.config import Settings
from context_cache.entities import RagChunk
from context_cache.protocols import EmbeddingKind

logger = logging.getLogger(__name__)

# Task prefixes expected by the embeddinggemma family
GEMMA_PREFIXES = {
    "query": "task: search result | query: ",
    "document": "title: none | text: ",
}


class LocalEmbeddingProvider:
    """Local sentence-transformers implementation of EmbeddingProvider.

    This class satisfies the EmbeddingProvider protocol through structural
    typing - no explicit inheritance needed.

    Default models:
    - embeddings: paraphrase-multilingual-MiniLM-L12-v2 (384 dimensions)
    - reranker: jinaai/jina-reranker-v2-base-multilingual

    Model calls are blocking, so they run in a worker thread.
    """

    def __init__(self, model_name: str, reranker_model_name: str | None = None) -> None:
        """Initialize the local embedding provider.

        Args:
            model_name: Name of the sentence-transformers model.
            reranker_model_name: Name of the cross-encoder model. If None,
                rerank falls back to cosine similarity against the query.
        """
        self._model_name = model_name
        self._reranker_model_name = reranker_model_name
        self._model: SentenceTransformer | None = None
        self._reranker: CrossEncoder | None = None
        self._dimension: int | None = None

    @classmethod
    def create(cls, settings: Settings) -> "LocalEmbeddingProvider":
        """Factory method to create LocalEmbeddingProvider from settings."""
        return cls(model_name=settings.embedding_model, reranker_model_name=settings.reranker_model)

    @property
    def model(self) -> SentenceTransformer:
        """Lazy-load the embedding model."""
        if self._model is None:
            logger.info("Loading embedding model: %s", self._model_name)
            start_time = time.time()
            self._model = SentenceTransformer(self._model_name)
            logger.info("Model loaded in %.2fs", time.time() - start_time)
        return self._model

    @property
    def reranker(self) -> CrossEncoder | None:
        """Lazy-load the reranker model."""
        if self._reranker is None and self._reranker_model_name:
            logger.info("Loading reranker model: %s", self._reranker_model_name)
            start_time = time.time()
            self._reranker = CrossEncoder(self._reranker_model_name, trust_remote_code=True)
            logger.info("Reranker loaded in %.2fs", time.time() - start_time)
        return self._reranker

    @property
    def dimension(self) -> int:
        """Get the embedding vector dimension."""
        if self._dimension is None:
            # Get dimension by encoding a sample
            sample_embedding = self.model.encode(["test"], show_progress_bar=False)
            self._dimension = len(sample_embedding[0])
        return self._dimension

    @property
    def model_name(self) -> str:
        """Get the model name/identifier."""
        return self._model_name

    def _prefixed(self, text: str, kind: EmbeddingKind) -> str:
        if "embeddinggemma" in self._model_name.lower():
            return GEMMA_PREFIXES[kind] + text
        return text

    def _encode_sync(self, text: str, kind: EmbeddingKind) -> list[float]:
        embedding = self.model.encode(
            self._prefixed(text, kind),
            show_progress_bar=False,
            normalize_embeddings=True,
        )
        # Handle both single string (returns array) and list input
        if isinstance(embedding, np.ndarray):
            if embedding.ndim == 1:
                return embedding.tolist()
            return embedding[0].tolist()
        return list(embedding)

    async def encode(self, text: str, kind: EmbeddingKind = "query") -> list[float]:
        """Generate embedding vector for a single text.

        Args:
            text: The text to encode
            kind: "query" or "document"

        Returns:
            The embedding vector as a list of floats
        """
        return await asyncio.to_thread(self._encode_sync, text, kind)

    def encode_batch(
        self,
        texts: list[str],
        kind: EmbeddingKind = "document",
        batch_size: int = 32,
    ) -> list[list[float]]:
        """Generate embeddings for multiple texts efficiently (blocking).

        Used when ingesting document chunks.
        """
        embeddings = self.model.encode(
            [self._prefixed(text, kind) for text in texts],
            batch_size=batch_size,
            show_progress_bar=False,
            normalize_embeddings=True,
        )
        return embeddings.tolist()

    def _rerank_sync(self, query: str, chunks: list[RagChunk], limit: int) -> list[RagChunk]:
        reranker = self.reranker
        if reranker is None:
            query_vector = np.asarray(self._encode_sync(query, "query"))
            doc_vectors = np.asarray(self.encode_batch([chunk.content for chunk in chunks]))
            scores = doc_vectors @ query_vector
        else:
            scores = reranker.predict(
                [(query, chunk.content) for chunk in chunks],
                show_progress_bar=False,
            )

        scored = [
            dataclasses.replace(chunk, relevance_score=float(score))
            for chunk, score in zip(chunks, scores)
        ]
        scored.sort(key=lambda c: c.relevance_score or 0.0, reverse=True)
        return scored[:limit]

    async def rerank(self, query: str, chunks: list[RagChunk], limit: int) -> list[RagChunk]:
        """Reorder chunks by cross-encoder relevance, best first.

        Args:
            query: The search query
            chunks: Candidate chunks
            limit: Maximum number of chunks to return

        Returns:
            At most ``limit`` chunks with relevance_score set
        """
        if not chunks:
            return []
        return await asyncio.to_thread(self._rerank_sync, query, chunks, limit)

    async def is_available(self) -> bool:
        """Check if the embedding provider is available.

        Returns:
            True if the model can be loaded, False otherwise
        """
        try:
            await asyncio.to_thread(lambda: self.model)
            return True
        except Exception:
            return False
