"""Full retrieval service.

Runs the uncached retrieval flow:
1. Embed the query
2. Search the primary chunk index for the assistant
3. Fall back to the assistant's local chunks when the index has nothing
4. Filter by minimum similarity, then rerank (or cut) to the final size
"""

import asyncio
import dataclasses
import logging
import time
from dataclasses import dataclass

from context_cache.entities import RagChunk, RetrievalResult
from context_cache.errors import CollaboratorTimeoutError
from context_cache.protocols import ChunkIndex, EmbeddingProvider
from context_cache.utils import cosine_similarity

logger = logging.getLogger(__name__)

CONTEXT_SEPARATOR = "\n\n---\n\n"


@dataclass(frozen=True)
class RetrievalOptions:
    """Knobs for a single retrieval run.

    Attributes:
        vector_search_limit: Candidates fetched by vector search
        rerank_limit: Chunks returned after reranking or cutting
        enable_reranking: Apply the embedding provider's reranker
        min_similarity: Candidates must score strictly above this
    """

    vector_search_limit: int = 50
    rerank_limit: int = 5
    enable_reranking: bool = True
    min_similarity: float = 0.3


class RagQueryService:
    """Primary-index retrieval with a local-chunk fallback.

    Example:
        ```python
        rag = RagQueryService(embedding_provider=provider, chunk_index=index)
        result = await rag.perform_rag_query("How do refunds work?", "a1", assistant.rag_chunks)
        print(result.source)  # "primary", "local" or "empty"
        ```
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        chunk_index: ChunkIndex | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the retrieval service.

        Args:
            embedding_provider: Query embedding and reranking (required).
            chunk_index: Primary vector store. If None, only local chunks are used.
            timeout: Seconds allowed for each embedding/rerank call. None disables it.
        """
        self._embeddings = embedding_provider
        self._index = chunk_index
        self._timeout = timeout

    async def perform_rag_query(
        self,
        query: str,
        assistant_id: str,
        rag_chunks: list[RagChunk],
        options: RetrievalOptions | None = None,
    ) -> RetrievalResult:
        """Retrieve ranked chunks for a query.

        Args:
            query: The user query
            assistant_id: Tenant key for the primary index
            rag_chunks: The assistant's local chunks, used as fallback
            options: Retrieval knobs. Defaults to RetrievalOptions().

        Returns:
            RetrievalResult tagged with the source that produced it
        """
        options = options or RetrievalOptions()
        start_time = time.time()

        logger.debug("Starting retrieval for %r", query)
        query_vector = await self._with_timeout(self._embeddings.encode(query, "query"))

        primary_results = self._search_primary(assistant_id, query_vector, options.vector_search_limit)
        if primary_results:
            return await self._process_primary_results(query, primary_results, options, start_time)

        if rag_chunks:
            logger.info("Primary index returned no results, using %d local chunks", len(rag_chunks))
            return await self._process_local_chunks(query, query_vector, rag_chunks, options, start_time)

        logger.info("No context found for assistant %s", assistant_id)
        return RetrievalResult(
            results=[],
            query_time_ms=(time.time() - start_time) * 1000,
            source="empty",
        )

    def _search_primary(self, assistant_id: str, vector: list[float], limit: int) -> list[RagChunk]:
        if self._index is None:
            return []
        try:
            return self._index.search_similar_chunks(assistant_id, vector, limit)
        except Exception as e:
            logger.warning("Primary chunk index search failed, falling back to local chunks: %s", e)
            return []

    async def _process_primary_results(
        self,
        query: str,
        candidates: list[RagChunk],
        options: RetrievalOptions,
        start_time: float,
    ) -> RetrievalResult:
        relevant = [c for c in candidates if (c.relevance_score or 0.0) > options.min_similarity]
        logger.debug(
            "Primary index: %d candidates, %d above %.2f",
            len(candidates),
            len(relevant),
            options.min_similarity,
        )

        final = await self._rank(query, relevant, options)

        return RetrievalResult(
            results=final,
            query_time_ms=(time.time() - start_time) * 1000,
            source="primary",
            total_candidates=len(candidates),
            filtered_candidates=len(relevant),
            final_results=len(final),
        )

    async def _process_local_chunks(
        self,
        query: str,
        query_vector: list[float],
        rag_chunks: list[RagChunk],
        options: RetrievalOptions,
        start_time: float,
    ) -> RetrievalResult:
        scored = [
            dataclasses.replace(
                chunk,
                relevance_score=cosine_similarity(query_vector, chunk.vector) if chunk.vector else 0.0,
            )
            for chunk in rag_chunks
        ]
        scored.sort(key=lambda c: c.relevance_score or 0.0, reverse=True)
        top = scored[: options.vector_search_limit]
        relevant = [c for c in top if (c.relevance_score or 0.0) > options.min_similarity]

        final = await self._rank(query, [c for c in relevant if c.vector], options, fallback=relevant)

        return RetrievalResult(
            results=final,
            query_time_ms=(time.time() - start_time) * 1000,
            source="local",
            total_candidates=len(rag_chunks),
            filtered_candidates=len(relevant),
            final_results=len(final),
        )

    async def _rank(
        self,
        query: str,
        chunks: list[RagChunk],
        options: RetrievalOptions,
        fallback: list[RagChunk] | None = None,
    ) -> list[RagChunk]:
        """Rerank chunks, or cut the similarity-sorted list when disabled."""
        if options.enable_reranking and chunks:
            reranked = await self._with_timeout(self._embeddings.rerank(query, chunks, options.rerank_limit))
            logger.debug("Reranked to %d chunks", len(reranked))
            return reranked

        candidates = fallback if fallback is not None else chunks
        return candidates[: options.rerank_limit]

    async def index_chunks(self, assistant_id: str, chunks: list[RagChunk]) -> list[RagChunk]:
        """Embed chunks that carry no vector and load them into the primary index.

        Args:
            assistant_id: Tenant key the chunks are stored under
            chunks: Chunks to ingest. Chunks with a vector keep it.

        Returns:
            The chunks, every one with a vector. Without a primary index they
            are only embedded, for use as local fallback chunks.
        """
        embedded: list[RagChunk] = []
        for chunk in chunks:
            if chunk.vector:
                embedded.append(chunk)
                continue
            vector = await self._with_timeout(self._embeddings.encode(chunk.content, "document"))
            embedded.append(dataclasses.replace(chunk, vector=vector))

        if self._index is not None and embedded:
            loaded = await asyncio.to_thread(self._index.add_chunks, assistant_id, embedded)
            logger.info("Indexed %d chunks for assistant %s", loaded, assistant_id)
        return embedded

    async def delete_chunks(self, assistant_id: str) -> int:
        """Remove an assistant's chunks from the primary index."""
        if self._index is None:
            return 0
        return await asyncio.to_thread(self._index.delete_by_assistant, assistant_id)

    async def _with_timeout(self, awaitable):
        if self._timeout is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise CollaboratorTimeoutError(f"Embedding call timed out after {self._timeout}s") from e

    def results_to_context_string(self, results: list[RagChunk]) -> str:
        """Render retrieved chunks as a prompt context block.

        Returns:
            "From <file>:\\n<content>" blocks separated by "---", or "" if empty
        """
        if not results:
            return ""

        context = CONTEXT_SEPARATOR.join(f"From {chunk.file_name}:\n{chunk.content}" for chunk in results)
        logger.debug("Final context: %d chunks, %d characters", len(results), len(context))
        return context
