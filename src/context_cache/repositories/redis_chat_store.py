"""Redis implementation of ChatStore.

Assistants and sessions are stored as JSON strings. A set per assistant
indexes its session ids.
"""

import logging

import redis

from context_cache.config import Settings, get_redis_client
from context_cache.entities import Assistant, ChatSession
from context_cache.utils.serialization import (
    assistant_from_json,
    assistant_to_json,
    session_from_json,
    session_to_json,
)

logger = logging.getLogger(__name__)


class RedisChatStore:
    """Redis storage for assistants and chat sessions.

    Satisfies the ChatStore protocol.
    """

    def __init__(self, redis_client: redis.Redis, prefix: str = "context_cache:chat") -> None:
        self._client = redis_client
        self._prefix = prefix

    @classmethod
    def create(cls, settings: Settings, redis_client: redis.Redis | None = None) -> "RedisChatStore":
        """Factory method to create RedisChatStore from settings."""
        return cls(
            redis_client=redis_client or get_redis_client(settings),
            prefix=f"{settings.cache_index_name}:chat",
        )

    def _assistant_key(self, assistant_id: str) -> str:
        return f"{self._prefix}:assistant:{assistant_id}"

    def _session_key(self, session_id: str) -> str:
        return f"{self._prefix}:session:{session_id}"

    def _sessions_of_key(self, assistant_id: str) -> str:
        return f"{self._prefix}:assistant_sessions:{assistant_id}"

    @property
    def _assistants_key(self) -> str:
        return f"{self._prefix}:assistants"

    def get_assistant(self, assistant_id: str) -> Assistant | None:
        raw = self._client.get(self._assistant_key(assistant_id))
        return assistant_from_json(raw) if raw else None

    def list_assistants(self) -> list[Assistant]:
        ids = [i.decode() if isinstance(i, bytes) else i for i in self._client.smembers(self._assistants_key)]
        assistants = [a for a in (self.get_assistant(i) for i in ids) if a is not None]
        assistants.sort(key=lambda a: a.created_at, reverse=True)
        return assistants

    def save_assistant(self, assistant: Assistant) -> None:
        pipe = self._client.pipeline()
        pipe.set(self._assistant_key(assistant.id), assistant_to_json(assistant))
        pipe.sadd(self._assistants_key, assistant.id)
        pipe.execute()

    def delete_assistant(self, assistant_id: str) -> None:
        session_ids = list(self._client.smembers(self._sessions_of_key(assistant_id)))

        pipe = self._client.pipeline()
        for session_id in session_ids:
            sid = session_id.decode() if isinstance(session_id, bytes) else session_id
            pipe.delete(self._session_key(sid))
        pipe.delete(self._sessions_of_key(assistant_id))
        pipe.delete(self._assistant_key(assistant_id))
        pipe.srem(self._assistants_key, assistant_id)
        pipe.execute()

        logger.info("Deleted assistant %s and %d sessions", assistant_id, len(session_ids))

    def get_session(self, session_id: str) -> ChatSession | None:
        raw = self._client.get(self._session_key(session_id))
        return session_from_json(raw) if raw else None

    def list_sessions(self, assistant_id: str) -> list[ChatSession]:
        ids = self._client.smembers(self._sessions_of_key(assistant_id))
        sessions = []
        for session_id in ids:
            sid = session_id.decode() if isinstance(session_id, bytes) else session_id
            session = self.get_session(sid)
            if session is not None:
                sessions.append(session)
        sessions.sort(key=lambda s: s.updated_at or s.created_at, reverse=True)
        return sessions

    def save_session(self, session: ChatSession) -> None:
        pipe = self._client.pipeline()
        pipe.set(self._session_key(session.id), session_to_json(session))
        pipe.sadd(self._sessions_of_key(session.assistant_id), session.id)
        pipe.execute()

    def delete_session(self, session_id: str) -> None:
        session = self.get_session(session_id)
        pipe = self._client.pipeline()
        pipe.delete(self._session_key(session_id))
        if session is not None:
            pipe.srem(self._sessions_of_key(session.assistant_id), session_id)
        pipe.execute()
