"""HTTP handlers for chat sessions and compaction."""

from fastapi import HTTPException, status

from context_cache.dto import (
    CompactContextItem,
    DeleteSessionResponse,
    ExchangeRequest,
    SessionCreateRequest,
    SessionResponse,
    ShouldTriggerRequest,
    ShouldTriggerResponse,
)
from context_cache.entities import ChatSession
from context_cache.errors import AssistantNotFoundError, SessionNotFoundError
from context_cache.services import ChatCompactorService, ChatSessionService


class SessionHandler:
    """HTTP handlers for session bookkeeping.

    Example:
        ```python
        handler = SessionHandler(session_service=sessions, compactor=compactor)

        @app.post("/sessions/{session_id}/exchange", response_model=SessionResponse)
        async def record_exchange(session_id: str, request: ExchangeRequest):
            return await handler.record_exchange(session_id, request)
        ```
    """

    def __init__(self, session_service: ChatSessionService, compactor: ChatCompactorService) -> None:
        self._sessions = session_service
        self._compactor = compactor

    async def create_session(self, assistant_id: str, request: SessionCreateRequest) -> SessionResponse:
        """Handle POST /assistants/{assistant_id}/sessions requests.

        Raises:
            HTTPException: 404 for an unknown assistant
        """
        try:
            session = self._sessions.create_session(assistant_id, title=request.title)
        except AssistantNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
        return self._to_response(session)

    async def list_sessions(self, assistant_id: str) -> list[SessionResponse]:
        """Handle GET /assistants/{assistant_id}/sessions requests."""
        try:
            sessions = self._sessions.list_sessions(assistant_id)
        except AssistantNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
        return [self._to_response(session) for session in sessions]

    async def get_session(self, session_id: str) -> SessionResponse:
        """Handle GET /sessions/{session_id} requests."""
        try:
            session = self._sessions.get_session(session_id)
        except SessionNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
        return self._to_response(session)

    async def delete_session(self, session_id: str) -> DeleteSessionResponse:
        """Handle DELETE /sessions/{session_id} requests."""
        try:
            self._sessions.delete_session(session_id)
        except SessionNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
        return DeleteSessionResponse(success=True, message=f"Deleted session {session_id}")

    async def record_exchange(self, session_id: str, request: ExchangeRequest) -> SessionResponse:
        """Handle POST /sessions/{session_id}/exchange requests.

        Raises:
            HTTPException: 404 for an unknown session, 500 otherwise
        """
        try:
            session = await self._sessions.record_exchange(
                session_id=session_id,
                user_message=request.user_message,
                model_response=request.model_response,
            )
        except SessionNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to record exchange: {e}",
            ) from e

        return self._to_response(session)

    async def should_trigger(self, request: ShouldTriggerRequest) -> ShouldTriggerResponse:
        """Handle POST /compaction/should-trigger requests."""
        config = self._compactor.get_config()
        return ShouldTriggerResponse(
            should_trigger=self._compactor.should_trigger_compression(
                request.total_rounds, request.has_existing_compact
            ),
            threshold=config.trigger_rounds + config.preserve_last_rounds,
        )

    @staticmethod
    def _to_response(session: ChatSession) -> SessionResponse:
        compact = session.compact_context
        return SessionResponse(
            id=session.id,
            assistant_id=session.assistant_id,
            title=session.title,
            message_count=len(session.messages),
            token_count=session.token_count,
            compact_context=CompactContextItem(
                content=compact.content,
                token_count=compact.token_count,
                compressed_from_rounds=compact.compressed_from_rounds,
                compressed_from_messages=compact.compressed_from_messages,
                created_at=compact.created_at,
                version=compact.version,
            )
            if compact
            else None,
            last_compaction_at=session.last_compaction_at,
            created_at=session.created_at,
            updated_at=session.updated_at,
        )
