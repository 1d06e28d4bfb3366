"""Assistant and chat session storage protocol."""

from typing import Protocol, runtime_checkable

from context_cache.entities import Assistant, ChatSession


@runtime_checkable
class ChatStore(Protocol):
    """Protocol for persisting assistants and their sessions.

    Sessions are indexed by assistant id; deleting an assistant deletes its
    sessions.
    """

    def get_assistant(self, assistant_id: str) -> Assistant | None:
        ...

    def list_assistants(self) -> list[Assistant]:
        ...

    def save_assistant(self, assistant: Assistant) -> None:
        ...

    def delete_assistant(self, assistant_id: str) -> None:
        ...

    def get_session(self, session_id: str) -> ChatSession | None:
        ...

    def list_sessions(self, assistant_id: str) -> list[ChatSession]:
        ...

    def save_session(self, session: ChatSession) -> None:
        ...

    def delete_session(self, session_id: str) -> None:
        ...
