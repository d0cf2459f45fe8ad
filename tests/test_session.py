"""Tests for the conversation log."""

from __future__ import annotations

import pytest

from lifebook.conversation.session import ConversationLog, TurnFrozenError
from lifebook.events import EventBus, TurnRecorded


def test_ask_and_record_answer_publish_events():
    bus: EventBus = EventBus()
    events: list[TurnRecorded] = []
    bus.subscribe(TurnRecorded, events.append)
    log = ConversationLog(event_bus=bus)

    log.ask("어머니는 어떤 분이셨나요?", topic_tag="family")
    assert log.pending is not None
    turn = log.record_answer("다정한 분이셨어요")

    assert turn.answer == "다정한 분이셨어요"
    assert turn.topic_tag == "family"
    assert log.pending is None
    assert [(event.index, event.answered) for event in events] == [(0, False), (0, True)]


def test_answered_turn_is_frozen():
    log = ConversationLog()
    log.ask("첫 질문")
    log.record_answer("첫 대답")

    with pytest.raises(TurnFrozenError):
        log.record_answer("다른 대답")
    assert log.turns[0].answer == "첫 대답"


def test_record_answer_validates_state():
    log = ConversationLog()
    with pytest.raises(IndexError):
        log.record_answer("대답")

    log.ask("질문")
    with pytest.raises(IndexError):
        log.record_answer("대답", index=3)
    with pytest.raises(ValueError):
        log.ask("   ")


def test_recent_returns_trailing_turns_in_order():
    log = ConversationLog()
    for number in range(10):
        log.ask(f"질문 {number}")
        log.record_answer(f"대답 {number}")

    recent = log.recent(3)

    assert [turn.question for turn in recent] == ["질문 7", "질문 8", "질문 9"]
    assert log.recent(0) == []
    assert len(log.recent(50)) == 10


def test_snapshot_round_trip_preserves_turns():
    log = ConversationLog()
    log.ask("질문", topic_tag="values")
    log.record_answer("대답")
    log.ask("열린 질문")

    restored = ConversationLog.from_snapshot(log.snapshot())

    assert restored.turns == log.turns
    assert restored.pending is not None


def test_from_snapshot_skips_malformed_entries():
    restored = ConversationLog.from_snapshot(
        {"turns": [{"question": "q", "answer": "a", "topicTag": "family"}, "garbage"]}
    )

    assert len(restored) == 1
    assert restored.turns[0].topic_tag == "family"

    with pytest.raises(TypeError):
        ConversationLog.from_snapshot({"turns": "nope"})


def test_blank_answer_is_rejected_and_restored_answers_stay_frozen():
    log = ConversationLog()
    log.ask("첫 질문")

    with pytest.raises(ValueError):
        log.record_answer("   ")
    assert log.pending is not None

    restored = ConversationLog.from_snapshot({"turns": [{"question": "첫 질문", "answer": "  "}]})
    with pytest.raises(TurnFrozenError):
        restored.record_answer("real answer")
