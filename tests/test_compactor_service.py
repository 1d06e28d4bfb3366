"""
Tests for the conversation compaction policy.
"""

import asyncio

import pytest
from fakes import GOOD_SUMMARY, FakeTextGenerator, make_messages

from context_cache.entities import CompactContext
from context_cache.services import ChatCompactorService, CompressionConfig
from context_cache.services.compactor_service import (
    CONVERSATION_HISTORY_TAG,
    PREVIOUS_CONTEXT_TAG,
    SUMMARIZER_SYSTEM_PROMPT,
)
from context_cache.utils import estimate_text_tokens, group_messages_by_rounds


def rounds_of(count, prefix=""):
    return group_messages_by_rounds(make_messages(count, prefix))


def existing_context(rounds=10, messages=20):
    return CompactContext(
        content="The user asked about vacation rules earlier.",
        token_count=11,
        compressed_from_rounds=rounds,
        compressed_from_messages=messages,
        created_at="2024-01-01T00:00:00+00:00",
        version="1.0",
    )


class SlowTextGenerator:
    model_name = "slow"

    async def generate(self, system_prompt, history, message):
        await asyncio.sleep(1)
        return GOOD_SUMMARY


@pytest.mark.parametrize("has_existing", [False, True])
def test_trigger_threshold(compactor, has_existing):
    assert compactor.should_trigger_compression(12, has_existing) is False
    assert compactor.should_trigger_compression(13, has_existing) is True


def test_trigger_follows_config():
    compactor = ChatCompactorService(
        FakeTextGenerator([GOOD_SUMMARY]),
        CompressionConfig(trigger_rounds=3, preserve_last_rounds=1),
    )
    assert compactor.should_trigger_compression(4) is False
    assert compactor.should_trigger_compression(5) is True


@pytest.mark.asyncio
async def test_fresh_compaction(compactor, text_generator):
    result = await compactor.compress_conversation_history(rounds_of(3))

    assert result.success is True
    assert result.retry_count == 0
    assert result.error is None
    context = result.compact_context
    assert context.content == GOOD_SUMMARY
    assert context.compressed_from_rounds == 3
    assert context.compressed_from_messages == 6
    assert context.version == "1.0"
    assert context.token_count == estimate_text_tokens(GOOD_SUMMARY)
    assert result.compressed_token_count == context.token_count
    assert result.original_token_count > 0

    system_prompt, history, prompt = text_generator.calls[0]
    assert system_prompt == SUMMARIZER_SYSTEM_PROMPT
    assert history == []
    assert CONVERSATION_HISTORY_TAG in prompt
    assert "question 3" in prompt


@pytest.mark.asyncio
async def test_merge_compaction_is_cumulative(compactor, text_generator):
    existing = existing_context(rounds=10, messages=20)

    result = await compactor.compress_conversation_history(rounds_of(3), existing)

    assert result.success is True
    assert result.compact_context.compressed_from_rounds == 13
    assert result.compact_context.compressed_from_messages == 26

    prompt = text_generator.calls[0][2]
    assert PREVIOUS_CONTEXT_TAG in prompt
    assert existing.content in prompt


@pytest.mark.asyncio
async def test_summary_is_stripped():
    compactor = ChatCompactorService(FakeTextGenerator([f"\n  {GOOD_SUMMARY}  \n"]))
    result = await compactor.compress_conversation_history(rounds_of(1))

    assert result.compact_context.content == GOOD_SUMMARY


@pytest.mark.asyncio
async def test_empty_rounds_fail_without_calling_generator(compactor, text_generator):
    result = await compactor.compress_conversation_history([])

    assert result.success is False
    assert result.retry_count == 0
    assert result.compact_context is None
    assert text_generator.calls == []


@pytest.mark.asyncio
async def test_over_budget_summary_retried_once_then_accepted():
    # 52 latin characters -> 13 tokens, 1.3x a 10 token budget
    summary = "The user asked about refunds." + "x" * 23
    assert estimate_text_tokens(summary) == 13
    generator = FakeTextGenerator([summary])
    compactor = ChatCompactorService(generator, CompressionConfig(target_tokens=10, max_retries=1))

    result = await compactor.compress_conversation_history(rounds_of(2))

    assert result.success is True
    assert result.retry_count == 1
    assert len(generator.calls) == 2
    assert result.compact_context.content == summary


@pytest.mark.asyncio
async def test_within_budget_summary_not_retried(compactor, text_generator):
    await compactor.compress_conversation_history(rounds_of(2))
    assert len(text_generator.calls) == 1


@pytest.mark.asyncio
async def test_invalid_summary_fails_after_retries():
    generator = FakeTextGenerator(["ok"])
    compactor = ChatCompactorService(generator, CompressionConfig(max_retries=1))

    result = await compactor.compress_conversation_history(rounds_of(2))

    assert result.success is False
    assert result.retry_count == 2
    assert result.compact_context is None
    assert result.error
    assert len(generator.calls) == 2


@pytest.mark.asyncio
async def test_generator_error_then_success():
    generator = FakeTextGenerator([RuntimeError("rate limited"), GOOD_SUMMARY])
    compactor = ChatCompactorService(generator)

    result = await compactor.compress_conversation_history(rounds_of(2))

    assert result.success is True
    assert result.retry_count == 1


@pytest.mark.asyncio
async def test_generator_error_reported():
    generator = FakeTextGenerator([RuntimeError("rate limited")])
    compactor = ChatCompactorService(generator, CompressionConfig(max_retries=0))

    result = await compactor.compress_conversation_history(rounds_of(2))

    assert result.success is False
    assert result.retry_count == 1
    assert "rate limited" in result.error


@pytest.mark.asyncio
async def test_generator_timeout_reported():
    compactor = ChatCompactorService(SlowTextGenerator(), CompressionConfig(max_retries=0, timeout=0.01))

    result = await compactor.compress_conversation_history(rounds_of(1))

    assert result.success is False
    assert "timed out" in result.error


@pytest.mark.parametrize(
    "text,expected",
    [
        ("", False),
        ("   ", False),
        ("user ok", False),
        ("This text is long enough but irrelevant.", False),
        ("The assistant explained the refund window.", True),
        ("THE USER ASKED ABOUT PRICING", True),
        ("用戶詢問了年假規定的細節", True),
    ],
)
def test_validate_compression_result(compactor, text, expected):
    assert compactor.validate_compression_result(text) is expected


def test_generate_prompt_variants(compactor):
    fresh = compactor.generate_compression_prompt("INPUT", has_existing_context=False)
    merge = compactor.generate_compression_prompt("INPUT", has_existing_context=True)

    assert "2000 tokens" in fresh
    assert "INPUT" in fresh
    assert "first compression" in fresh
    assert "Merge both" in merge
    assert "first compression" not in merge


def test_update_config(compactor):
    updated = compactor.update_config(target_tokens=500)

    assert updated.target_tokens == 500
    assert compactor.get_config().target_tokens == 500
    assert updated.trigger_rounds == 10


def test_update_config_rejects_invalid_values(compactor):
    with pytest.raises(ValueError):
        compactor.update_config(max_retries=-1)
    assert compactor.get_config().max_retries == 1
