"""Conversation compaction service.

Folds older conversation rounds into a bounded-size summary produced by a
text-generation collaborator. Compaction is an optimization only: every
failure is reported through ``CompressionResult`` and the caller keeps its
uncompacted history.
"""

import asyncio
import dataclasses
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from context_cache.config import Settings
from context_cache.entities import CompactContext, CompressionResult, ConversationRound
from context_cache.errors import CollaboratorTimeoutError, CompressionValidationError
from context_cache.protocols import TextGenerator
from context_cache.utils import estimate_rounds_tokens, estimate_text_tokens

logger = logging.getLogger(__name__)

SUMMARIZER_SYSTEM_PROMPT = (
    "You are a professional conversation summarization assistant. You compress long "
    "conversations into concise but complete summaries."
)

PREVIOUS_CONTEXT_TAG = "[PREVIOUS_COMPRESSED_CONTEXT]"
ADDITIONAL_CONVERSATIONS_TAG = "[ADDITIONAL_CONVERSATIONS]"
CONVERSATION_HISTORY_TAG = "[CONVERSATION_HISTORY]"

# Summaries above this multiple of the target budget are retried once more.
OVER_BUDGET_FACTOR = 1.2

MIN_SUMMARY_LENGTH = 10

# Soft acceptance heuristic: a real summary of a dialogue mentions its
# participants or exchanges. This catches silent collaborator failures
# (refusals, empty boilerplate), not bad summaries.
TURN_KEYWORDS = (
    "user",
    "assistant",
    "question",
    "answer",
    "asked",
    "discuss",
    "用戶",
    "助手",
    "討論",
    "詢問",
    "回答",
    "技術",
    "問題",
)

_BASE_PROMPT = """Compress the conversation history below into a concise but complete summary of at most {target_tokens} tokens.

Requirements:
1. Keep key information: important questions, main answers, conclusions and solutions
2. Keep the flow of the conversation: topic changes, focal points, logical order
3. Record user preferences: tools, style, needs and constraints the user mentioned
4. Merge redundant content: combine similar questions and answers, drop repetition
5. Write in the third person, e.g. "The user asked ..., the assistant answered ..."
6. Stay objective and neutral: add no opinions or judgements"""

_MERGE_INSTRUCTIONS = f"""

Pay special attention:
- The input contains an earlier summary ({PREVIOUS_CONTEXT_TAG}) and newer conversation ({ADDITIONAL_CONVERSATIONS_TAG})
- Merge both into one coherent summary in chronological order
- Make the new conversation continue naturally from the earlier summary
- Where the new conversation revisits earlier topics, merge or extend those points"""

_FRESH_INSTRUCTIONS = """

Note:
- This is the first compression, make sure every important exchange is covered"""

_FORMAT_RULES = """

Format:
- Use a bulleted structure in chronological order
- Keep each point short and precise
- Preserve important technical details and concrete figures
- State the user's concrete needs and the assistant's recommendations explicitly

Conversation:
{conversation}

Write the compressed summary:"""


@dataclass(frozen=True)
class CompressionConfig:
    """Compaction policy settings.

    Attributes:
        target_tokens: Token budget for a summary
        trigger_rounds: Rounds that may accumulate beyond the preserved ones
        preserve_last_rounds: Most recent rounds always kept verbatim
        max_retries: Extra attempts after the first (1 => 2 attempts total)
        compression_model: Model name passed to the text generator, informational
        compression_version: Version stamped on produced summaries
        timeout: Seconds allowed for one summarization call
    """

    target_tokens: int = 2000
    trigger_rounds: int = 10
    preserve_last_rounds: int = 2
    max_retries: int = 1
    compression_model: str = "gpt-4o-mini"
    compression_version: str = "1.0"
    timeout: float = 60.0

    def __post_init__(self) -> None:
        """Validate config after initialization."""
        self.validate()

    def validate(self) -> None:
        """Raise ValueError for out-of-range values."""
        if self.target_tokens < 1:
            raise ValueError("target_tokens must be at least 1")
        if self.trigger_rounds < 0 or self.preserve_last_rounds < 0:
            raise ValueError("trigger_rounds and preserve_last_rounds must be >= 0")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompressionConfig":
        """Build the compaction policy from application settings."""
        return cls(
            target_tokens=settings.compaction_target_tokens,
            trigger_rounds=settings.compaction_trigger_rounds,
            preserve_last_rounds=settings.compaction_preserve_last_rounds,
            max_retries=settings.compaction_max_retries,
            compression_model=settings.compaction_model,
            compression_version=settings.compaction_version,
            timeout=settings.collaborator_timeout,
        )


class ChatCompactorService:
    """Decides when to compact and produces CompactContext summaries.

    State per call: Idle -> Triggered -> Compacting -> Succeeded | Retrying |
    Failed. Retries are sequential with no delay.

    Example:
        ```python
        compactor = ChatCompactorService(
            text_generator=OpenAITextGenerator.create(settings),
            config=CompressionConfig.from_settings(settings),
        )

        if compactor.should_trigger_compression(total_rounds):
            result = await compactor.compress_conversation_history(rounds, existing)
        ```
    """

    def __init__(self, text_generator: TextGenerator, config: CompressionConfig | None = None) -> None:
        """Initialize the compactor.

        Args:
            text_generator: Collaborator producing the summary text (required).
            config: Compaction policy. Defaults to CompressionConfig().
        """
        self._generator = text_generator
        self._config = config or CompressionConfig()

    def should_trigger_compression(self, total_rounds: int, has_existing_compact: bool = False) -> bool:
        """Check whether the conversation has outgrown its budget.

        The threshold is the same with or without an existing summary.

        Args:
            total_rounds: Complete rounds currently in the session history
            has_existing_compact: Whether the session already carries a summary

        Returns:
            True if total_rounds > trigger_rounds + preserve_last_rounds
        """
        threshold = self._config.trigger_rounds + self._config.preserve_last_rounds
        return total_rounds > threshold

    async def compress_conversation_history(
        self,
        rounds: Sequence[ConversationRound],
        existing_compact: CompactContext | None = None,
    ) -> CompressionResult:
        """Summarize rounds, folding in an existing summary if given.

        Never raises for collaborator or validation failures; those are
        retried up to ``max_retries`` times and then reported with
        ``success=False``. A summary over 1.2x the target budget is retried
        while retries remain and accepted afterwards.

        Args:
            rounds: Rounds to fold into the summary
            existing_compact: The session's current summary, if any

        Returns:
            CompressionResult carrying the new CompactContext on success
        """
        if not rounds:
            return CompressionResult(
                success=False,
                error="No conversation rounds to compress",
                retry_count=0,
                original_token_count=0,
                compressed_token_count=0,
            )

        original_token_count = estimate_rounds_tokens(rounds, existing_compact)
        compression_input = self.prepare_compression_input(rounds, existing_compact)
        prompt = self.generate_compression_prompt(compression_input, existing_compact is not None)
        max_retries = self._config.max_retries
        retry_count = 0

        while retry_count <= max_retries:
            try:
                content = await self._call_compression_llm(prompt)
                if not self.validate_compression_result(content):
                    raise CompressionValidationError("Compression result validation failed")
            except Exception as e:
                retry_count += 1
                logger.warning("Compression attempt %d failed: %s", retry_count, e)
                if retry_count > max_retries:
                    return CompressionResult(
                        success=False,
                        error=str(e) or type(e).__name__,
                        retry_count=retry_count,
                        original_token_count=original_token_count,
                        compressed_token_count=0,
                    )
                continue

            content = content.strip()
            compressed_token_count = estimate_text_tokens(content)

            if (
                compressed_token_count > self._config.target_tokens * OVER_BUDGET_FACTOR
                and retry_count < max_retries
            ):
                retry_count += 1
                logger.info(
                    "Summary over budget (%d > %d tokens), retrying",
                    compressed_token_count,
                    self._config.target_tokens,
                )
                continue

            previous_rounds = existing_compact.compressed_from_rounds if existing_compact else 0
            previous_messages = existing_compact.compressed_from_messages if existing_compact else 0

            compact_context = CompactContext(
                content=content,
                token_count=compressed_token_count,
                compressed_from_rounds=len(rounds) + previous_rounds,
                compressed_from_messages=len(rounds) * 2 + previous_messages,
                created_at=datetime.now(timezone.utc).isoformat(),
                version=self._config.compression_version,
            )

            return CompressionResult(
                success=True,
                compact_context=compact_context,
                retry_count=retry_count,
                original_token_count=original_token_count,
                compressed_token_count=compressed_token_count,
            )

        return CompressionResult(
            success=False,
            error="Max retries exceeded",
            retry_count=retry_count,
            original_token_count=original_token_count,
            compressed_token_count=0,
        )

    def prepare_compression_input(
        self,
        rounds: Sequence[ConversationRound],
        existing_compact: CompactContext | None = None,
    ) -> str:
        """Render the rounds (and any previous summary) as compaction input."""
        parts: list[str] = []

        if existing_compact is not None:
            parts.append(f"{PREVIOUS_CONTEXT_TAG}\n{existing_compact.content}\n")
            parts.append(ADDITIONAL_CONVERSATIONS_TAG)
        else:
            parts.append(CONVERSATION_HISTORY_TAG)

        for index, conversation_round in enumerate(rounds, start=1):
            number = conversation_round.round_number or index
            parts.append(
                f"Round {number}:\n"
                f"User: {conversation_round.user_message.content}\n"
                f"Assistant: {conversation_round.assistant_message.content}\n"
            )

        return "\n".join(parts).strip()

    def generate_compression_prompt(self, compression_input: str, has_existing_context: bool) -> str:
        """Build the summarization prompt for a fresh or merging compaction."""
        instructions = _MERGE_INSTRUCTIONS if has_existing_context else _FRESH_INSTRUCTIONS
        return (
            _BASE_PROMPT.format(target_tokens=self._config.target_tokens)
            + instructions
            + _FORMAT_RULES.format(conversation=compression_input)
        )

    def validate_compression_result(self, result: str | None) -> bool:
        """Apply the acceptance heuristic to a generated summary.

        Rejects empty text, text shorter than MIN_SUMMARY_LENGTH and text
        without any TURN_KEYWORDS entry. Approximate by nature: passing does
        not prove the summary is faithful.
        """
        if not result or not result.strip():
            return False

        stripped = result.strip()
        if len(stripped) < MIN_SUMMARY_LENGTH:
            return False

        lowered = stripped.lower()
        return any(keyword in lowered for keyword in TURN_KEYWORDS)

    async def _call_compression_llm(self, prompt: str) -> str:
        try:
            return await asyncio.wait_for(
                self._generator.generate(
                    system_prompt=SUMMARIZER_SYSTEM_PROMPT,
                    history=[],
                    message=prompt,
                ),
                timeout=self._config.timeout,
            )
        except asyncio.TimeoutError as e:
            raise CollaboratorTimeoutError(
                f"Summarization timed out after {self._config.timeout}s"
            ) from e

    def get_config(self) -> CompressionConfig:
        """Get the current compaction policy."""
        return self._config

    def update_config(self, **changes) -> CompressionConfig:
        """Replace policy values.

        Args:
            **changes: CompressionConfig fields to change

        Returns:
            The new (validated) policy
        """
        self._config = dataclasses.replace(self._config, **changes)
        return self._config
