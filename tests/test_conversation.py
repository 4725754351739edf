"""Tests for per-connection conversation history."""

import pytest

from speechstream.schemas.chat import ChatMessage
from speechstream.services.conversation import ConversationState


def test_starts_with_single_system_turn() -> None:
    state = ConversationState("Be helpful.", history_limit=3)

    snapshot = state.snapshot()

    assert len(snapshot) == 1
    assert snapshot[0] == ChatMessage(role="system", content="Be helpful.")


def test_trim_keeps_system_turn_and_most_recent_turns() -> None:
    state = ConversationState("Be helpful.", history_limit=3)
    for index in range(7):
        state.append_user(f"question {index}")
        state.append_assistant(f"answer {index}")

    dropped = state.trim()
    snapshot = state.snapshot()

    assert dropped == 11
    assert len(snapshot) == 1 + 3
    assert snapshot[0].role == "system"
    assert snapshot[0].content == "Be helpful."
    assert [turn.content for turn in snapshot[1:]] == [
        "answer 5",
        "question 6",
        "answer 6",
    ]


def test_trim_within_limit_is_a_no_op() -> None:
    state = ConversationState("sys", history_limit=5)
    state.append_user("hi")

    assert state.trim() == 0
    assert len(state) == 2


def test_trim_accepts_explicit_limit() -> None:
    state = ConversationState("sys", history_limit=10)
    for index in range(4):
        state.append_user(str(index))

    state.trim(0)

    assert [turn.role for turn in state.snapshot()] == ["system"]


def test_rejects_additional_system_turns() -> None:
    state = ConversationState("sys")

    with pytest.raises(ValueError):
        state.append(ChatMessage(role="system", content="another"))


def test_snapshot_is_detached_from_later_appends() -> None:
    state = ConversationState("sys")
    snapshot = state.snapshot()

    state.append_user("later")

    assert len(snapshot) == 1
    assert len(state.snapshot()) == 2


def test_turns_are_immutable() -> None:
    turn = ChatMessage(role="user", content="hello")

    with pytest.raises(Exception):
        turn.content = "changed"  # type: ignore[misc]
