"""Conversation domain entities."""

from dataclasses import dataclass
from typing import Literal

USER_ROLE = "user"
MODEL_ROLE = "model"
SYSTEM_ROLE = "system"


@dataclass(frozen=True)
class ChatMessage:
    """A single chat turn.

    Attributes:
        role: "user" for the person, "model" for the assistant reply
        content: The message text
    """

    role: Literal["user", "model"]
    content: str


@dataclass(frozen=True)
class SystemMessage:
    """A system-level message used when rebuilding history around a summary."""

    content: str
    role: Literal["system"] = SYSTEM_ROLE


@dataclass(frozen=True)
class ConversationRound:
    """One user message paired with its assistant reply.

    Attributes:
        user_message: The user turn opening the round
        assistant_message: The model turn answering it
        round_number: 1-based position of the round in the conversation
    """

    user_message: ChatMessage
    assistant_message: ChatMessage
    round_number: int
