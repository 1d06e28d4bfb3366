"""Compaction domain entities."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CompactContext:
    """Summary standing in for older conversation rounds.

    Immutable once created. A later compaction folds this content into a new
    CompactContext whose counters include the ones carried here.

    Attributes:
        content: The generated summary text
        token_count: Estimated token count of the summary
        compressed_from_rounds: Total rounds folded into this summary so far
        compressed_from_messages: Total messages folded into this summary so far
        created_at: ISO-8601 UTC timestamp of creation
        version: Compaction format version
    """

    content: str
    token_count: int
    compressed_from_rounds: int
    compressed_from_messages: int
    created_at: str
    version: str


@dataclass(frozen=True)
class CompressionResult:
    """Outcome of a compaction attempt.

    On failure ``compact_context`` is None and ``error`` holds a
    human-readable reason; callers keep their uncompacted history.
    """

    success: bool
    retry_count: int
    original_token_count: int
    compressed_token_count: int
    compact_context: CompactContext | None = None
    error: str | None = None
