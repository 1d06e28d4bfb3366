"""Round accounting over flat chat message lists.

A round is one user message followed by the model reply to it. Messages
that break the user -> model alternation (a second user message while one
is pending, or a model message with nothing to answer) are absorbed without
advancing the count and without raising.

All functions are pure.
"""

from collections.abc import Sequence

from context_cache.entities import (
    MODEL_ROLE,
    USER_ROLE,
    ChatMessage,
    ConversationRound,
    SystemMessage,
)

COMPRESSED_CONTEXT_MARKER = "[COMPRESSED_CONTEXT]"


def count_conversation_rounds(messages: Sequence[ChatMessage]) -> int:
    """Count complete user -> model rounds.

    Example:
        ```python
        count_conversation_rounds([user, model, user, model])  # 2
        count_conversation_rounds([user, model, user])  # 1
        ```
    """
    rounds = 0
    expecting_user = True

    for message in messages:
        if expecting_user and message.role == USER_ROLE:
            expecting_user = False
        elif not expecting_user and message.role == MODEL_ROLE:
            rounds += 1
            expecting_user = True

    return rounds


def group_messages_by_rounds(messages: Sequence[ChatMessage]) -> list[ConversationRound]:
    """Pair each pending user message with the next model reply.

    Round numbers start at 1.
    """
    rounds: list[ConversationRound] = []
    pending_user: ChatMessage | None = None

    for message in messages:
        if message.role == USER_ROLE:
            if pending_user is None:
                pending_user = message
        elif message.role == MODEL_ROLE and pending_user is not None:
            rounds.append(
                ConversationRound(
                    user_message=pending_user,
                    assistant_message=message,
                    round_number=len(rounds) + 1,
                )
            )
            pending_user = None

    return rounds


def flatten_rounds(rounds: Sequence[ConversationRound]) -> list[ChatMessage]:
    """Turn rounds back into an alternating message list."""
    messages: list[ChatMessage] = []
    for conversation_round in rounds:
        messages.append(conversation_round.user_message)
        messages.append(conversation_round.assistant_message)
    return messages


def get_last_n_rounds(messages: Sequence[ChatMessage], rounds: int) -> list[ChatMessage]:
    """Return the messages of the last ``rounds`` complete rounds.

    ``rounds <= 0`` yields an empty list; asking for more rounds than exist
    yields every paired message.
    """
    if rounds <= 0 or not messages:
        return []

    return flatten_rounds(group_messages_by_rounds(messages)[-rounds:])


def get_incomplete_round(messages: Sequence[ChatMessage]) -> ChatMessage | None:
    """Return the trailing user message that has no reply yet, if any."""
    if not messages:
        return None

    last_message = messages[-1]
    if last_message.role != USER_ROLE:
        return None

    paired = len(group_messages_by_rounds(messages)) * 2
    if len(messages) > paired:
        return last_message
    return None


def reconstruct_history(
    compact_content: str | None,
    recent_rounds: Sequence[ConversationRound],
    incomplete_message: ChatMessage | None = None,
) -> list[ChatMessage | SystemMessage]:
    """Rebuild a message history from a summary and the preserved rounds.

    Args:
        compact_content: Summary text standing in for older rounds, if any
        recent_rounds: Rounds kept verbatim
        incomplete_message: Trailing unanswered user message, if any

    Returns:
        Summary system message (when present), recent rounds, then the
        incomplete message
    """
    history: list[ChatMessage | SystemMessage] = []

    if compact_content:
        history.append(SystemMessage(content=f"{COMPRESSED_CONTEXT_MARKER} {compact_content}"))

    history.extend(flatten_rounds(recent_rounds))

    if incomplete_message is not None:
        history.append(incomplete_message)

    return history
