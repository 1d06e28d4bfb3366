import logging
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from context_cache.api.dependencies import (
    AssistantHandlerDep,
    CacheHandlerDep,
    SessionHandlerDep,
    make_lifespan,
)
from context_cache.config import get_settings
from context_cache.dto import (
    AssistantCreateRequest,
    AssistantResponse,
    CacheMetricsResponse,
    CacheStatsResponse,
    ChunksRequest,
    ClearCacheResponse,
    DeleteAssistantResponse,
    DeleteSessionResponse,
    ExchangeRequest,
    HealthCheckResponse,
    IndexChunksResponse,
    MaintenanceResponse,
    RagQueryRequest,
    RagQueryResponse,
    SessionCreateRequest,
    SessionResponse,
    ShouldTriggerRequest,
    ShouldTriggerResponse,
    ThresholdRequest,
    ThresholdResponse,
)

API_NAME = "Context Cache API"
API_VERSION = "0.1.0"
API_DESCRIPTION = "Conversation compaction and semantic retrieval caching using Redis and sentence-transformers"


def create_app(lifespan=None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        lifespan: Lifespan context manager. Defaults to make_lifespan(),
            which wires production services from settings.
    """
    app = FastAPI(
        title=API_NAME,
        description=API_DESCRIPTION,
        version=API_VERSION,
        lifespan=lifespan or make_lifespan(),
    )

    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "name": API_NAME,
            "version": API_VERSION,
            "description": API_DESCRIPTION,
            "endpoints": {
                "assistants": "/assistants",
                "rag": "/rag/query",
                "cache": "/cache",
                "sessions": "/sessions",
                "compaction": "/compaction",
                "health": "/health",
                "docs": "/docs",
            },
        }

    @app.get("/health", response_model=HealthCheckResponse)
    async def health(handler: CacheHandlerDep) -> HealthCheckResponse:
        """Health check endpoint."""
        return await handler.health_check()

    @app.post("/rag/query", response_model=RagQueryResponse)
    async def rag_query(request: RagQueryRequest, handler: CacheHandlerDep) -> RagQueryResponse:
        """Retrieve context for a query, from the semantic cache when possible."""
        return await handler.rag_query(request)

    @app.get("/cache/stats", response_model=CacheStatsResponse)
    async def cache_stats(handler: CacheHandlerDep) -> CacheStatsResponse:
        """Get performance metrics and storage statistics."""
        return await handler.get_stats()

    @app.delete("/cache/{assistant_id}", response_model=ClearCacheResponse)
    async def clear_assistant_cache(assistant_id: str, handler: CacheHandlerDep) -> ClearCacheResponse:
        """Delete every cached query of one assistant."""
        return await handler.clear_assistant_cache(assistant_id)

    @app.post("/cache/maintenance", response_model=MaintenanceResponse)
    async def run_maintenance(handler: CacheHandlerDep) -> MaintenanceResponse:
        """Expire stale cache entries now."""
        return await handler.run_maintenance()

    @app.get("/cache/threshold", response_model=ThresholdResponse)
    async def get_threshold(handler: CacheHandlerDep) -> ThresholdResponse:
        """Get the current cache similarity threshold."""
        return await handler.get_threshold()

    @app.post("/cache/threshold", response_model=ThresholdResponse)
    async def set_threshold(request: ThresholdRequest, handler: CacheHandlerDep) -> ThresholdResponse:
        """Update the cache similarity threshold."""
        return await handler.set_threshold(request)

    @app.get("/cache/metrics", response_model=CacheMetricsResponse)
    async def get_metrics(handler: CacheHandlerDep) -> CacheMetricsResponse:
        """Get cache hit/miss metrics."""
        return await handler.get_metrics()

    @app.post("/cache/metrics/reset", response_model=dict[str, str])
    async def reset_metrics(handler: CacheHandlerDep) -> dict[str, str]:
        """Reset cache hit/miss metrics."""
        return await handler.reset_metrics()

    @app.post("/assistants", response_model=AssistantResponse)
    async def create_assistant(
        request: AssistantCreateRequest,
        handler: AssistantHandlerDep,
    ) -> AssistantResponse:
        """Create an assistant, ingesting any chunks sent with it."""
        return await handler.create_assistant(request)

    @app.get("/assistants", response_model=list[AssistantResponse])
    async def list_assistants(handler: AssistantHandlerDep) -> list[AssistantResponse]:
        """List assistants, newest first."""
        return await handler.list_assistants()

    @app.get("/assistants/{assistant_id}", response_model=AssistantResponse)
    async def get_assistant(assistant_id: str, handler: AssistantHandlerDep) -> AssistantResponse:
        """Get one assistant."""
        return await handler.get_assistant(assistant_id)

    @app.delete("/assistants/{assistant_id}", response_model=DeleteAssistantResponse)
    async def delete_assistant(assistant_id: str, handler: AssistantHandlerDep) -> DeleteAssistantResponse:
        """Delete an assistant with its sessions, cached queries and indexed chunks."""
        return await handler.delete_assistant(assistant_id)

    @app.post("/assistants/{assistant_id}/chunks", response_model=IndexChunksResponse)
    async def add_chunks(
        assistant_id: str,
        request: ChunksRequest,
        handler: AssistantHandlerDep,
    ) -> IndexChunksResponse:
        """Embed and index knowledge chunks for an assistant."""
        return await handler.add_chunks(assistant_id, request)

    @app.post("/assistants/{assistant_id}/sessions", response_model=SessionResponse)
    async def create_session(
        assistant_id: str,
        request: SessionCreateRequest,
        handler: SessionHandlerDep,
    ) -> SessionResponse:
        """Start an empty chat session."""
        return await handler.create_session(assistant_id, request)

    @app.get("/assistants/{assistant_id}/sessions", response_model=list[SessionResponse])
    async def list_sessions(assistant_id: str, handler: SessionHandlerDep) -> list[SessionResponse]:
        """List an assistant's sessions, most recently active first."""
        return await handler.list_sessions(assistant_id)

    @app.get("/sessions/{session_id}", response_model=SessionResponse)
    async def get_session(session_id: str, handler: SessionHandlerDep) -> SessionResponse:
        """Get one session."""
        return await handler.get_session(session_id)

    @app.delete("/sessions/{session_id}", response_model=DeleteSessionResponse)
    async def delete_session(session_id: str, handler: SessionHandlerDep) -> DeleteSessionResponse:
        """Delete one session."""
        return await handler.delete_session(session_id)

    @app.post("/sessions/{session_id}/exchange", response_model=SessionResponse)
    async def record_exchange(
        session_id: str,
        request: ExchangeRequest,
        handler: SessionHandlerDep,
    ) -> SessionResponse:
        """Record a user/model exchange, compacting the session when due."""
        return await handler.record_exchange(session_id, request)

    @app.post("/compaction/should-trigger", response_model=ShouldTriggerResponse)
    async def should_trigger(request: ShouldTriggerRequest, handler: SessionHandlerDep) -> ShouldTriggerResponse:
        """Check whether a conversation of this size would be compacted."""
        return await handler.should_trigger(request)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = get_settings()
    uvicorn.run(
        "context_cache.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
