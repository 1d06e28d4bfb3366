"""Request DTOs for API endpoints."""

from pydantic import BaseModel, Field


class RagChunkItem(BaseModel):
    """A document chunk in API payloads."""

    file_name: str = Field(..., description="Name of the source document")
    content: str = Field(..., description="The chunk text")
    vector: list[float] | None = Field(None, description="Document embedding, if computed")
    relevance_score: float | None = Field(None, description="Similarity or reranker score")
    chunk_index: int | None = Field(None, description="Position inside the document", ge=0)
    id: str | None = Field(None, description="Optional stable identifier")


class RagQueryRequest(BaseModel):
    """Request DTO for a cached retrieval query.

    The handler will convert this to internal calls to the service layer.
    """

    query: str = Field(..., description="The user query", min_length=1)
    assistant_id: str = Field(..., description="Assistant (tenant) the query belongs to", min_length=1)
    rag_chunks: list[RagChunkItem] = Field(
        default_factory=list,
        description="The assistant's local chunks, used when the primary index has nothing",
    )
    similarity_threshold: float | None = Field(
        None,
        description="Override the cache similarity threshold (0-1, higher = more strict)",
        ge=0.0,
        le=1.0,
    )
    enable_cache: bool = Field(True, description="False skips the cache entirely")
    vector_search_limit: int = Field(50, description="Candidates fetched by vector search", ge=1)
    rerank_limit: int = Field(5, description="Chunks returned after reranking", ge=1)
    enable_reranking: bool = Field(True, description="Apply the reranker")
    min_similarity: float = Field(0.3, description="Minimum candidate similarity", ge=0.0, le=1.0)


class ThresholdRequest(BaseModel):
    """Request DTO for setting the cache similarity threshold."""

    threshold: float = Field(..., description="New similarity threshold (0-1)", ge=0.0, le=1.0)


class ExchangeRequest(BaseModel):
    """Request DTO for recording a user/model exchange on a session."""

    user_message: str = Field(..., description="The user's message", min_length=1)
    model_response: str = Field(..., description="The model's reply")


class ShouldTriggerRequest(BaseModel):
    """Request DTO for asking whether a conversation needs compaction."""

    total_rounds: int = Field(..., description="Complete rounds in the session history", ge=0)
    has_existing_compact: bool = Field(False, description="Whether the session already has a summary")


class AssistantCreateRequest(BaseModel):
    """Request DTO for creating an assistant.

    Chunks without a vector are embedded on ingestion.
    """

    name: str = Field(..., description="Display name", min_length=1)
    system_prompt: str = Field(..., description="Base system prompt", min_length=1)
    description: str = Field("", description="Optional description")
    rag_chunks: list[RagChunkItem] = Field(default_factory=list, description="Knowledge to ingest")


class ChunksRequest(BaseModel):
    """Request DTO for adding knowledge chunks to an assistant."""

    chunks: list[RagChunkItem] = Field(..., description="Chunks to ingest", min_length=1)


class SessionCreateRequest(BaseModel):
    """Request DTO for starting a session."""

    title: str | None = Field(None, description="Session title. Defaults to the first user message.")
