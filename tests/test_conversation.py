"""
Tests for round accounting over chat message lists.
"""

from fakes import make_messages

from context_cache.entities import MODEL_ROLE, SYSTEM_ROLE, USER_ROLE, ChatMessage
from context_cache.utils import (
    count_conversation_rounds,
    get_incomplete_round,
    get_last_n_rounds,
    group_messages_by_rounds,
    reconstruct_history,
)
from context_cache.utils.conversation import COMPRESSED_CONTEXT_MARKER


def user(text):
    return ChatMessage(role=USER_ROLE, content=text)


def model(text):
    return ChatMessage(role=MODEL_ROLE, content=text)


def test_count_complete_rounds():
    assert count_conversation_rounds(make_messages(3)) == 3


def test_count_ignores_trailing_user_message():
    messages = make_messages(2) + [user("pending")]
    assert count_conversation_rounds(messages) == 2


def test_count_empty():
    assert count_conversation_rounds([]) == 0


def test_count_absorbs_consecutive_user_messages():
    messages = [user("a"), user("b"), model("reply")]
    assert count_conversation_rounds(messages) == 1


def test_count_ignores_leading_model_message():
    messages = [model("greeting"), user("hi"), model("hello")]
    assert count_conversation_rounds(messages) == 1


def test_group_pairs_first_pending_user_message():
    messages = [user("a"), user("b"), model("reply"), model("extra")]
    rounds = group_messages_by_rounds(messages)

    assert len(rounds) == 1
    assert rounds[0].user_message.content == "a"
    assert rounds[0].assistant_message.content == "reply"
    assert rounds[0].round_number == 1


def test_group_numbers_rounds_from_one():
    rounds = group_messages_by_rounds(make_messages(3))
    assert [r.round_number for r in rounds] == [1, 2, 3]


def test_last_n_rounds():
    messages = make_messages(5)
    last = get_last_n_rounds(messages, 2)

    assert [m.content for m in last] == ["question 4", "answer 4", "question 5", "answer 5"]


def test_last_n_rounds_zero_or_negative():
    assert get_last_n_rounds(make_messages(3), 0) == []
    assert get_last_n_rounds(make_messages(3), -1) == []


def test_last_n_rounds_more_than_available():
    assert len(get_last_n_rounds(make_messages(2), 10)) == 4


def test_incomplete_round_returns_trailing_user_message():
    messages = make_messages(2) + [user("unanswered")]
    assert get_incomplete_round(messages).content == "unanswered"


def test_incomplete_round_none_when_complete():
    assert get_incomplete_round(make_messages(2)) is None
    assert get_incomplete_round([]) is None


def test_reconstruct_history_with_summary():
    rounds = group_messages_by_rounds(make_messages(2))
    history = reconstruct_history("summary text", rounds, user("next"))

    assert history[0].role == SYSTEM_ROLE
    assert history[0].content == f"{COMPRESSED_CONTEXT_MARKER} summary text"
    assert [m.content for m in history[1:]] == ["question 1", "answer 1", "question 2", "answer 2", "next"]


def test_reconstruct_history_without_summary():
    rounds = group_messages_by_rounds(make_messages(1))
    history = reconstruct_history(None, rounds)

    assert [m.role for m in history] == [USER_ROLE, MODEL_ROLE]
