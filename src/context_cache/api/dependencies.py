"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services built once per process from Settings during lifespan
    - Dependency functions retrieve from request.app.state
    - Clean separation, no global mutable state
"""

import logging
from collections.abc import Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, FastAPI, Request

from context_cache.config import Settings, get_redis_client, get_settings
from context_cache.handlers import AssistantHandler, CacheHandler, SessionHandler
from context_cache.protocols import EmbeddingProvider
from context_cache.repositories import (
    LocalEmbeddingProvider,
    OllamaEmbeddingProvider,
    OpenAITextGenerator,
    RedisChatStore,
    RedisChunkIndex,
    RedisQueryCacheStore,
)
from context_cache.services import (
    CacheConfig,
    CacheMaintenanceTask,
    ChatCompactorService,
    ChatSessionService,
    CompressionConfig,
    QueryCacheService,
    RagCacheManager,
    RagQueryService,
)

logger = logging.getLogger(__name__)


@dataclass
class Components:
    """Everything the API needs, wired together."""

    embedding_provider: EmbeddingProvider
    cache_manager: RagCacheManager
    compactor: ChatCompactorService
    session_service: ChatSessionService


def build_components(settings: Settings) -> Components:
    """Wire production repositories and services from settings.

    ⚠️ When switching embedding providers or models, clear the query cache
    and re-index chunks: stored vectors are not comparable across models.
    """
    if settings.uses_ollama:
        embedding_provider: EmbeddingProvider = OllamaEmbeddingProvider.create(settings)
    else:
        embedding_provider = LocalEmbeddingProvider.create(settings)

    redis_client = get_redis_client(settings)
    cache_config = CacheConfig.from_settings(settings)

    query_cache = QueryCacheService(
        store=RedisQueryCacheStore.create(settings, redis_client=redis_client),
        config=cache_config,
    )
    rag_service = RagQueryService(
        embedding_provider=embedding_provider,
        chunk_index=RedisChunkIndex.create(settings, embedding_provider, redis_client=redis_client),
        timeout=settings.collaborator_timeout,
    )
    cache_manager = RagCacheManager(
        query_cache=query_cache,
        rag_service=rag_service,
        embedding_provider=embedding_provider,
        config=cache_config,
        timeout=settings.collaborator_timeout,
    )

    compactor = ChatCompactorService(
        text_generator=OpenAITextGenerator.create(settings),
        config=CompressionConfig.from_settings(settings),
    )
    session_service = ChatSessionService(
        chat_store=RedisChatStore.create(settings, redis_client=redis_client),
        compactor=compactor,
    )

    return Components(
        embedding_provider=embedding_provider,
        cache_manager=cache_manager,
        compactor=compactor,
        session_service=session_service,
    )


def get_cache_handler(request: Request) -> CacheHandler:
    """Dependency injection for CacheHandler from app.state.

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "cache_handler", None)
    if handler is None:
        raise RuntimeError("CacheHandler not initialized. Check lifespan setup.")
    return handler


def get_assistant_handler(request: Request) -> AssistantHandler:
    """Dependency injection for AssistantHandler from app.state.

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "assistant_handler", None)
    if handler is None:
        raise RuntimeError("AssistantHandler not initialized. Check lifespan setup.")
    return handler


def get_session_handler(request: Request) -> SessionHandler:
    """Dependency injection for SessionHandler from app.state.

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "session_handler", None)
    if handler is None:
        raise RuntimeError("SessionHandler not initialized. Check lifespan setup.")
    return handler


def make_lifespan(builder: Callable[[Settings], Components] = build_components, settings: Settings | None = None):
    """Create the lifespan context manager for the FastAPI app.

    Args:
        builder: Wires the components from settings. Tests pass one that
            returns in-memory stores and fakes.
        settings: Settings to build from. Defaults to get_settings().

    Returns:
        An asynccontextmanager usable as FastAPI(lifespan=...)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize all layers, store them in app.state and run maintenance.

        Cleanup:
            Stops the maintenance task and removes all services from app.state
        """
        app_settings = settings or get_settings()
        components = builder(app_settings)
        cache_config = components.cache_manager.config

        maintenance_task = None
        if cache_config.auto_maintenance:
            maintenance_task = CacheMaintenanceTask(
                components.cache_manager,
                interval_seconds=cache_config.maintenance_interval_seconds,
            )
            maintenance_task.start()

        app.state.cache_manager = components.cache_manager
        app.state.session_service = components.session_service
        app.state.embedding_provider = components.embedding_provider
        app.state.maintenance_task = maintenance_task
        app.state.cache_handler = CacheHandler(
            cache_manager=components.cache_manager,
            embedding_provider=components.embedding_provider,
        )
        app.state.session_handler = SessionHandler(
            session_service=components.session_service,
            compactor=components.compactor,
        )
        app.state.assistant_handler = AssistantHandler(
            session_service=components.session_service,
            cache_manager=components.cache_manager,
        )

        logger.info("Embedding model: %s", components.embedding_provider.model_name)
        logger.info("Similarity threshold: %.2f", components.cache_manager.query_cache.threshold)
        logger.info("Cache backend healthy: %s", components.cache_manager.query_cache.is_healthy())

        yield

        if maintenance_task is not None:
            await maintenance_task.stop()

        del app.state.assistant_handler
        del app.state.session_handler
        del app.state.cache_handler
        del app.state.maintenance_task
        del app.state.embedding_provider
        del app.state.session_service
        del app.state.cache_manager
        logger.info("Context cache services shut down")

    return lifespan


# Type aliases for cleaner dependency injection
CacheHandlerDep = Annotated[CacheHandler, Depends(get_cache_handler)]
SessionHandlerDep = Annotated[SessionHandler, Depends(get_session_handler)]
AssistantHandlerDep = Annotated[AssistantHandler, Depends(get_assistant_handler)]
