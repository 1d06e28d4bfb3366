"""OpenAI-compatible text generator.

Streams a chat completion and aggregates the deltas into one reply. Works
with any server speaking the OpenAI chat completions API (set
OPENAI_BASE_URL).
"""

import logging

from openai import AsyncOpenAI

from context_cache.config import Settings
from context_cache.entities import MODEL_ROLE, ChatMessage

logger = logging.getLogger(__name__)


class OpenAITextGenerator:
    """AsyncOpenAI implementation of TextGenerator.

    Example:
        ```python
        generator = OpenAITextGenerator.create(settings)
        summary = await generator.generate(system_prompt, history=[], message=prompt)
        ```
    """

    def __init__(self, client: AsyncOpenAI, model: str, temperature: float = 0.3) -> None:
        self._client = client
        self._model = model
        self._temperature = temperature

    @classmethod
    def create(cls, settings: Settings) -> "OpenAITextGenerator":
        """Factory method to create OpenAITextGenerator from settings."""
        client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=settings.collaborator_timeout,
        )
        return cls(client=client, model=settings.compaction_model)

    @property
    def model_name(self) -> str:
        """Get the model name/identifier."""
        return self._model

    async def generate(self, system_prompt: str, history: list[ChatMessage], message: str) -> str:
        """Generate a complete reply from a streamed completion."""
        messages = [{"role": "system", "content": system_prompt}]
        for turn in history:
            role = "assistant" if turn.role == MODEL_ROLE else turn.role
            messages.append({"role": role, "content": turn.content})
        messages.append({"role": "user", "content": message})

        stream = await self._client.chat.completions.create(
            model=self._model,
            messages=messages,
            stream=True,
            temperature=self._temperature,
        )

        accumulated_response = ""
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            if delta.content:
                accumulated_response += delta.content

        logger.debug("Generated %d characters with %s", len(accumulated_response), self._model)
        return accumulated_response

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.close()
