"""JSON-friendly conversion of entities for the Redis-backed stores."""

import json
from dataclasses import asdict
from typing import Any

from context_cache.entities import (
    DEFAULT_SESSION_TITLE,
    Assistant,
    ChatMessage,
    ChatSession,
    CompactContext,
    RagChunk,
)


def chunk_to_dict(chunk: RagChunk) -> dict[str, Any]:
    return asdict(chunk)


def chunk_from_dict(data: dict[str, Any]) -> RagChunk:
    return RagChunk(
        file_name=data["file_name"],
        content=data["content"],
        vector=data.get("vector"),
        relevance_score=data.get("relevance_score"),
        chunk_index=data.get("chunk_index"),
        id=data.get("id"),
    )


def chunks_to_json(chunks: list[RagChunk]) -> str:
    return json.dumps([chunk_to_dict(chunk) for chunk in chunks])


def chunks_from_json(raw: str | bytes) -> list[RagChunk]:
    return [chunk_from_dict(item) for item in json.loads(raw)]


def assistant_to_json(assistant: Assistant) -> str:
    return json.dumps(asdict(assistant))


def assistant_from_json(raw: str | bytes) -> Assistant:
    data = json.loads(raw)
    return Assistant(
        id=data["id"],
        name=data["name"],
        system_prompt=data["system_prompt"],
        created_at=data["created_at"],
        description=data.get("description", ""),
        rag_chunks=[chunk_from_dict(item) for item in data.get("rag_chunks", [])],
    )


def session_to_json(session: ChatSession) -> str:
    return json.dumps(asdict(session))


def session_from_json(raw: str | bytes) -> ChatSession:
    data = json.loads(raw)
    compact = data.get("compact_context")
    return ChatSession(
        id=data["id"],
        assistant_id=data["assistant_id"],
        created_at=data["created_at"],
        title=data.get("title", DEFAULT_SESSION_TITLE),
        messages=[ChatMessage(role=m["role"], content=m["content"]) for m in data.get("messages", [])],
        updated_at=data.get("updated_at"),
        token_count=data.get("token_count", 0),
        compact_context=CompactContext(**compact) if compact else None,
        last_compaction_at=data.get("last_compaction_at"),
    )
