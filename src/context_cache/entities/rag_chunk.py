"""Retrieval domain entities."""

from dataclasses import dataclass
from typing import Literal

RetrievalSource = Literal["primary", "local", "empty"]


@dataclass(frozen=True)
class RagChunk:
    """A piece of an ingested document.

    Attributes:
        file_name: Name of the source document
        content: The chunk text
        vector: Document embedding, if one was computed at ingestion
        relevance_score: Similarity or reranker score once retrieved
        chunk_index: Position of the chunk inside its document
        id: Optional stable identifier
    """

    file_name: str
    content: str
    vector: list[float] | None = None
    relevance_score: float | None = None
    chunk_index: int | None = None
    id: str | None = None


@dataclass(frozen=True)
class RetrievalResult:
    """Ranked result set from a full retrieval run.

    Attributes:
        results: Final ranked chunks
        query_time_ms: Wall time spent on the retrieval
        source: "primary" (vector store), "local" (assistant chunks) or "empty"
        total_candidates: Candidates before similarity filtering
        filtered_candidates: Candidates above the minimum similarity
        final_results: Number of chunks returned
    """

    results: list[RagChunk]
    query_time_ms: float
    source: RetrievalSource
    total_candidates: int = 0
    filtered_candidates: int = 0
    final_results: int = 0
