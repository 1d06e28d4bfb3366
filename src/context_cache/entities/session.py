"""Assistant and chat session domain entities."""

from dataclasses import dataclass, field

from .compact_context import CompactContext
from .conversation import ChatMessage
from .rag_chunk import RagChunk

DEFAULT_SESSION_TITLE = "New Chat"


@dataclass
class Assistant:
    """A configured assistant; its id is the tenant key for cached data."""

    id: str
    name: str
    system_prompt: str
    created_at: int
    description: str = ""
    rag_chunks: list[RagChunk] = field(default_factory=list)


@dataclass
class ChatSession:
    """A conversation with one assistant.

    ``messages`` holds only the uncompacted turns; anything older lives in
    ``compact_context``.
    """

    id: str
    assistant_id: str
    created_at: int
    title: str = DEFAULT_SESSION_TITLE
    messages: list[ChatMessage] = field(default_factory=list)
    updated_at: int | None = None
    token_count: int = 0
    compact_context: CompactContext | None = None
    last_compaction_at: str | None = None
