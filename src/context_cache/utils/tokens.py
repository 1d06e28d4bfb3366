"""Language-aware token estimation.

This is a heuristic for threshold decisions only, not a tokenizer: CJK
ideographs count at 1.5 characters per token, everything else at 4.
"""

import math
import re
from collections.abc import Sequence

from context_cache.entities import CompactContext, ConversationRound

_CJK_PATTERN = re.compile(r"[\u4e00-\u9fff]")

CJK_CHARS_PER_TOKEN = 1.5
OTHER_CHARS_PER_TOKEN = 4


def estimate_text_tokens(text: str) -> int:
    """Estimate the token count of a text."""
    if not text:
        return 0

    cjk_chars = len(_CJK_PATTERN.findall(text))
    other_chars = len(text) - cjk_chars
    return math.ceil(cjk_chars / CJK_CHARS_PER_TOKEN + other_chars / OTHER_CHARS_PER_TOKEN)


def estimate_rounds_tokens(
    rounds: Sequence[ConversationRound],
    existing: CompactContext | None = None,
) -> int:
    """Estimate the tokens of an existing summary plus the given rounds."""
    parts: list[str] = []
    if existing is not None:
        parts.append(existing.content)
    for conversation_round in rounds:
        parts.append(conversation_round.user_message.content)
        parts.append(conversation_round.assistant_message.content)
    return estimate_text_tokens("".join(parts))
