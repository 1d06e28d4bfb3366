"""Chat session service.

Manages assistants and their sessions, records exchanges, compacts sessions
that grow past the configured budget and assembles the system prompt for the
next turn.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone

from context_cache.entities import (
    DEFAULT_SESSION_TITLE,
    MODEL_ROLE,
    USER_ROLE,
    Assistant,
    ChatMessage,
    ChatSession,
    RagChunk,
)
from context_cache.errors import AssistantNotFoundError, SessionNotFoundError
from context_cache.protocols import ChatStore
from context_cache.services.compactor_service import ChatCompactorService
from context_cache.utils import count_conversation_rounds, group_messages_by_rounds

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 40

# Rough per-message allowance used when recounting preserved messages.
PRESERVED_MESSAGE_TOKENS = 50

RAG_PREAMBLE = (
    "Use the information from the following context to inform your response to the "
    "user's question. Provide a natural, conversational answer as if the information is "
    "part of your general knowledge, without mentioning the context or documents directly. "
    "If the answer is not found in the provided information, state that you don't have "
    "the relevant information to answer the question."
)

SUMMARY_HEADER = "[PREVIOUS CONVERSATION SUMMARY]"
SUMMARY_FOOTER = (
    "The above is a summary of our previous conversation. Please refer to this context "
    "when responding to continue our conversation naturally."
)
CURRENT_CONVERSATION_HEADER = "[CURRENT CONVERSATION]"


class ChatSessionService:
    """Session bookkeeping around ChatCompactorService.

    Example:
        ```python
        sessions = ChatSessionService(chat_store=store, compactor=compactor)

        session = await sessions.record_exchange(session_id, "How do I ...?", reply)
        system_prompt, history = sessions.build_chat_context(assistant, session, rag_context)
        ```
    """

    def __init__(self, chat_store: ChatStore, compactor: ChatCompactorService) -> None:
        """Initialize the session service.

        The compaction policy is read from the compactor on every run, so
        ``compactor.update_config`` takes effect immediately.

        Args:
            chat_store: Assistant and session storage (required).
            compactor: Produces summaries and owns the policy (required).
        """
        self._store = chat_store
        self._compactor = compactor

    def get_assistant(self, assistant_id: str) -> Assistant:
        """Load an assistant.

        Raises:
            AssistantNotFoundError: If no assistant has that id
        """
        assistant = self._store.get_assistant(assistant_id)
        if assistant is None:
            raise AssistantNotFoundError(assistant_id)
        return assistant

    def get_session(self, session_id: str) -> ChatSession:
        """Load a session.

        Raises:
            SessionNotFoundError: If no session has that id
        """
        session = self._store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def create_assistant(
        self,
        name: str,
        system_prompt: str,
        description: str = "",
        rag_chunks: list[RagChunk] | None = None,
    ) -> Assistant:
        """Create and store a new assistant with a generated id."""
        assistant = Assistant(
            id=str(uuid.uuid4()),
            name=name,
            system_prompt=system_prompt,
            created_at=int(time.time() * 1000),
            description=description,
            rag_chunks=list(rag_chunks or []),
        )
        self._store.save_assistant(assistant)
        logger.info("Created assistant %s (%s)", assistant.id, name)
        return assistant

    def list_assistants(self) -> list[Assistant]:
        return self._store.list_assistants()

    def add_assistant_chunks(self, assistant_id: str, chunks: list[RagChunk]) -> Assistant:
        """Append chunks to an assistant's local fallback set.

        Raises:
            AssistantNotFoundError: If no assistant has that id
        """
        assistant = self.get_assistant(assistant_id)
        assistant.rag_chunks = [*assistant.rag_chunks, *chunks]
        self._store.save_assistant(assistant)
        return assistant

    def delete_assistant(self, assistant_id: str) -> None:
        """Delete an assistant together with all of its sessions.

        Raises:
            AssistantNotFoundError: If no assistant has that id
        """
        self.get_assistant(assistant_id)
        self._store.delete_assistant(assistant_id)

    def create_session(self, assistant_id: str, title: str | None = None) -> ChatSession:
        """Start an empty session for an assistant.

        Without a title the session is named after its first user message.

        Raises:
            AssistantNotFoundError: If no assistant has that id
        """
        self.get_assistant(assistant_id)
        session = ChatSession(
            id=str(uuid.uuid4()),
            assistant_id=assistant_id,
            created_at=int(time.time() * 1000),
            title=title or DEFAULT_SESSION_TITLE,
        )
        self._store.save_session(session)
        logger.info("Created session %s for assistant %s", session.id, assistant_id)
        return session

    def list_sessions(self, assistant_id: str) -> list[ChatSession]:
        """List an assistant's sessions, most recently active first.

        Raises:
            AssistantNotFoundError: If no assistant has that id
        """
        self.get_assistant(assistant_id)
        return self._store.list_sessions(assistant_id)

    def delete_session(self, session_id: str) -> None:
        """Delete one session.

        Raises:
            SessionNotFoundError: If no session has that id
        """
        self.get_session(session_id)
        self._store.delete_session(session_id)

    async def record_exchange(self, session_id: str, user_message: str, model_response: str) -> ChatSession:
        """Append one user/model exchange, compact if due, and persist.

        Args:
            session_id: Session to update
            user_message: The user's message
            model_response: The model's reply

        Returns:
            The updated (possibly compacted) session

        Raises:
            SessionNotFoundError: If no session has that id
        """
        session = self.get_session(session_id)

        session.messages = [
            *session.messages,
            ChatMessage(role=USER_ROLE, content=user_message),
            ChatMessage(role=MODEL_ROLE, content=model_response),
        ]
        if session.title == DEFAULT_SESSION_TITLE and user_message:
            session.title = user_message[:TITLE_MAX_LENGTH]
        session.updated_at = int(time.time() * 1000)

        session = await self.maybe_compact(session)
        await asyncio.to_thread(self._store.save_session, session)
        return session

    async def maybe_compact(self, session: ChatSession) -> ChatSession:
        """Compact the session when its round count exceeds the budget.

        Every round except the last ``preserve_last_rounds`` is folded into
        the session's summary. Messages after the last compressed round are
        kept verbatim in their original order, including ones that pair into
        no round (a repeated user message, a trailing unanswered one).
        Unpaired messages before that point are in neither the summary nor
        the kept history. On failure the session is returned untouched.
        """
        total_rounds = count_conversation_rounds(session.messages)
        has_existing = session.compact_context is not None

        if not self._compactor.should_trigger_compression(total_rounds, has_existing):
            return session

        preserve = self._compactor.get_config().preserve_last_rounds
        all_rounds = group_messages_by_rounds(session.messages)
        split = len(all_rounds) - preserve if preserve > 0 else len(all_rounds)
        rounds_to_compress = all_rounds[:split]
        preserved_rounds = all_rounds[split:]

        logger.info(
            "Compacting session %s: %d rounds, compressing %d, preserving %d",
            session.id,
            total_rounds,
            len(rounds_to_compress),
            len(preserved_rounds),
        )

        try:
            result = await self._compactor.compress_conversation_history(
                rounds_to_compress, session.compact_context
            )
        except Exception as e:
            logger.warning("Compaction of session %s failed, keeping full history: %s", session.id, e)
            return session

        if not result.success or result.compact_context is None:
            logger.warning(
                "Compaction of session %s failed after %d retries, keeping full history: %s",
                session.id,
                result.retry_count,
                result.error,
            )
            return session

        preserved_messages = self._messages_after(session.messages, rounds_to_compress[-1].assistant_message)

        session.compact_context = result.compact_context
        session.last_compaction_at = datetime.now(timezone.utc).isoformat()
        session.messages = preserved_messages
        session.token_count = result.compact_context.token_count + len(preserved_messages) * PRESERVED_MESSAGE_TOKENS

        logger.info(
            "Compacted session %s: %d -> %d tokens",
            session.id,
            result.original_token_count,
            result.compressed_token_count,
        )
        return session

    @staticmethod
    def _messages_after(messages: list[ChatMessage], boundary: ChatMessage) -> list[ChatMessage]:
        # Rounds hold the session's own message objects, so match by identity
        for index, message in enumerate(messages):
            if message is boundary:
                return list(messages[index + 1 :])
        return list(messages)

    def build_chat_context(
        self,
        assistant: Assistant,
        session: ChatSession,
        rag_context: str = "",
    ) -> tuple[str, list[ChatMessage]]:
        """Assemble the system prompt and history for the next model call.

        Args:
            assistant: The assistant answering
            session: The current session
            rag_context: Rendered retrieval context, "" for none

        Returns:
            (system_prompt, history)
        """
        system_prompt = assistant.system_prompt

        if rag_context:
            system_prompt = f"{system_prompt}\n\n{RAG_PREAMBLE}\n\n<context>\n{rag_context}\n</context>"

        if session.compact_context is not None:
            system_prompt = (
                f"{system_prompt}\n\n{SUMMARY_HEADER}\n{session.compact_context.content}\n\n"
                f"{SUMMARY_FOOTER}\n\n{CURRENT_CONVERSATION_HEADER}"
            )

        return system_prompt, list(session.messages)
