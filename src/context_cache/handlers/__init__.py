"""Handler layer for HTTP endpoints.

This layer contains the HTTP request/response handlers.
Handlers depend on services (business logic), not directly on repositories.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)
"""

from .assistant_handler import AssistantHandler
from .cache_handler import CacheHandler
from .session_handler import SessionHandler

__all__ = [
    "AssistantHandler",
    "CacheHandler",
    "SessionHandler",
]
