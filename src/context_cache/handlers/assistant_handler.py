"""HTTP handlers for assistants and their knowledge chunks."""

import logging

from fastapi import HTTPException, status

from context_cache.dto import (
    AssistantCreateRequest,
    AssistantResponse,
    ChunksRequest,
    DeleteAssistantResponse,
    IndexChunksResponse,
)
from context_cache.entities import Assistant, RagChunk
from context_cache.errors import AssistantNotFoundError
from context_cache.services import ChatSessionService, RagCacheManager

from .cache_handler import to_chunk

logger = logging.getLogger(__name__)


class AssistantHandler:
    """HTTP handlers for the assistant lifecycle.

    Ingested chunks go to the primary chunk index and are also kept on the
    assistant as its local fallback set. Any ingestion clears the
    assistant's cached queries, since their stored results predate the new
    knowledge.

    Example:
        ```python
        handler = AssistantHandler(session_service=sessions, cache_manager=manager)

        @app.post("/assistants", response_model=AssistantResponse)
        async def create_assistant(request: AssistantCreateRequest):
            return await handler.create_assistant(request)
        ```
    """

    def __init__(self, session_service: ChatSessionService, cache_manager: RagCacheManager) -> None:
        self._sessions = session_service
        self._manager = cache_manager

    async def create_assistant(self, request: AssistantCreateRequest) -> AssistantResponse:
        """Handle POST /assistants requests.

        Raises:
            HTTPException: 500 if storing or embedding fails
        """
        try:
            assistant = self._sessions.create_assistant(
                name=request.name,
                system_prompt=request.system_prompt,
                description=request.description,
            )
            if request.rag_chunks:
                assistant = await self._ingest(assistant.id, [to_chunk(item) for item in request.rag_chunks])
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to create assistant: {e}",
            ) from e

        return self._to_response(assistant)

    async def list_assistants(self) -> list[AssistantResponse]:
        """Handle GET /assistants requests."""
        return [self._to_response(assistant) for assistant in self._sessions.list_assistants()]

    async def get_assistant(self, assistant_id: str) -> AssistantResponse:
        """Handle GET /assistants/{assistant_id} requests."""
        try:
            assistant = self._sessions.get_assistant(assistant_id)
        except AssistantNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
        return self._to_response(assistant)

    async def add_chunks(self, assistant_id: str, request: ChunksRequest) -> IndexChunksResponse:
        """Handle POST /assistants/{assistant_id}/chunks requests.

        Raises:
            HTTPException: 404 for an unknown assistant, 500 if ingestion fails
        """
        try:
            self._sessions.get_assistant(assistant_id)
            assistant = await self._ingest(assistant_id, [to_chunk(item) for item in request.chunks])
        except AssistantNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to ingest chunks: {e}",
            ) from e

        return IndexChunksResponse(
            assistant_id=assistant_id,
            indexed_count=len(request.chunks),
            total_chunks=len(assistant.rag_chunks),
        )

    async def delete_assistant(self, assistant_id: str) -> DeleteAssistantResponse:
        """Handle DELETE /assistants/{assistant_id} requests.

        Removes the assistant, its sessions, its cached queries and its
        indexed chunks.
        """
        try:
            self._sessions.delete_assistant(assistant_id)
            cache_entries = self._manager.clear_assistant_cache(assistant_id)
            chunks = await self._manager.rag_service.delete_chunks(assistant_id)
        except AssistantNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to delete assistant: {e}",
            ) from e

        return DeleteAssistantResponse(
            success=True,
            deleted_cache_entries=cache_entries,
            deleted_chunks=chunks,
            message=f"Deleted assistant {assistant_id}",
        )

    async def _ingest(self, assistant_id: str, chunks: list[RagChunk]) -> Assistant:
        embedded = await self._manager.rag_service.index_chunks(assistant_id, chunks)
        assistant = self._sessions.add_assistant_chunks(assistant_id, embedded)
        cleared = self._manager.clear_assistant_cache(assistant_id)
        logger.info(
            "Ingested %d chunks for assistant %s, cleared %d cached queries",
            len(embedded),
            assistant_id,
            cleared,
        )
        return assistant

    @staticmethod
    def _to_response(assistant: Assistant) -> AssistantResponse:
        return AssistantResponse(
            id=assistant.id,
            name=assistant.name,
            description=assistant.description,
            system_prompt=assistant.system_prompt,
            created_at=assistant.created_at,
            chunk_count=len(assistant.rag_chunks),
        )
