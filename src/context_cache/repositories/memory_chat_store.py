"""In-memory implementation of ChatStore."""

import copy

from context_cache.entities import Assistant, ChatSession


class InMemoryChatStore:
    """Dictionary-backed assistant and session storage.

    Satisfies the ChatStore protocol. Deleting an assistant deletes its
    sessions.
    """

    def __init__(self) -> None:
        self._assistants: dict[str, Assistant] = {}
        self._sessions: dict[str, ChatSession] = {}

    def get_assistant(self, assistant_id: str) -> Assistant | None:
        assistant = self._assistants.get(assistant_id)
        return copy.deepcopy(assistant) if assistant is not None else None

    def list_assistants(self) -> list[Assistant]:
        return sorted(
            (copy.deepcopy(a) for a in self._assistants.values()),
            key=lambda a: a.created_at,
            reverse=True,
        )

    def save_assistant(self, assistant: Assistant) -> None:
        self._assistants[assistant.id] = copy.deepcopy(assistant)

    def delete_assistant(self, assistant_id: str) -> None:
        self._assistants.pop(assistant_id, None)
        for session_id in [s.id for s in self._sessions.values() if s.assistant_id == assistant_id]:
            del self._sessions[session_id]

    def get_session(self, session_id: str) -> ChatSession | None:
        session = self._sessions.get(session_id)
        return copy.deepcopy(session) if session is not None else None

    def list_sessions(self, assistant_id: str) -> list[ChatSession]:
        sessions = [copy.deepcopy(s) for s in self._sessions.values() if s.assistant_id == assistant_id]
        sessions.sort(key=lambda s: s.updated_at or s.created_at, reverse=True)
        return sessions

    def save_session(self, session: ChatSession) -> None:
        self._sessions[session.id] = copy.deepcopy(session)

    def delete_session(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
