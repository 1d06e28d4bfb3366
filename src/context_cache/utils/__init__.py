"""Utility modules: round accounting, token estimation, vector math."""

from .conversation import (
    count_conversation_rounds,
    flatten_rounds,
    get_incomplete_round,
    get_last_n_rounds,
    group_messages_by_rounds,
    reconstruct_history,
)
from .similarity import cosine_similarity
from .tokens import estimate_rounds_tokens, estimate_text_tokens

__all__ = [
    "count_conversation_rounds",
    "group_messages_by_rounds",
    "flatten_rounds",
    "get_last_n_rounds",
    "get_incomplete_round",
    "reconstruct_history",
    "cosine_similarity",
    "estimate_text_tokens",
    "estimate_rounds_tokens",
]
