"""Exception hierarchy.

Tenant and configuration errors are raised immediately. Collaborator and
validation errors inside compaction are retried and reported through
``CompressionResult``; cache-layer errors are logged and bypassed.
"""


class ContextCacheError(Exception):
    """Base class for all errors raised by this package."""


class AssistantNotFoundError(ContextCacheError):
    """Raised when an assistant id does not resolve to a stored assistant."""

    def __init__(self, assistant_id: str) -> None:
        super().__init__(f"Assistant not found: {assistant_id}")
        self.assistant_id = assistant_id


class SessionNotFoundError(ContextCacheError):
    """Raised when a chat session id does not resolve to a stored session."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class CompressionValidationError(ContextCacheError):
    """Raised when a generated summary fails the acceptance heuristic."""


class CollaboratorTimeoutError(ContextCacheError):
    """Raised when an external collaborator does not answer in time."""
