"""Text generation protocol, used by compaction to produce summaries."""

from typing import Protocol, runtime_checkable

from context_cache.entities import ChatMessage


@runtime_checkable
class TextGenerator(Protocol):
    """Protocol for chat-model text generation services."""

    @property
    def model_name(self) -> str:
        """Return the name/identifier of the model."""
        ...

    async def generate(
        self,
        system_prompt: str,
        history: list[ChatMessage],
        message: str,
    ) -> str:
        """Generate a complete reply.

        Streaming backends aggregate the stream before returning.

        Args:
            system_prompt: Instructions for the model
            history: Prior turns of the conversation
            message: The new user message

        Returns:
            The full reply text
        """
        ...
