"""Unit tests for the per-call conversation session."""

from __future__ import annotations

import pytest

from app.pipelines.intake import ConversationSession, InvalidSessionState, Speaker
from app.services.response_contract import EmergencyRecord
from conftest import MEDICAL_RECORD


def test_append_turn_grows_history_by_one_and_keeps_prior_turns():
    clock_values = iter(float(i) for i in range(100))
    session = ConversationSession.start(clock=lambda: next(clock_values))
    texts = ["help", "", "   ", "there is smoke", "second floor"]

    for index, text in enumerate(texts):
        before = session.history
        speaker = Speaker.CALLER if index % 2 == 0 else Speaker.DISPATCHER
        session.append_turn(speaker, text)
        after = session.history
        assert len(after) == len(before) + 1
        assert after[: len(before)] == before
        assert after[-1].speaker is speaker
        assert after[-1].text == text


def test_history_is_ordered_by_append_not_timestamp():
    clock_values = iter([5.0, 1.0])
    session = ConversationSession.start(clock=lambda: next(clock_values))
    session.append_turn(Speaker.CALLER, "first")
    session.append_turn(Speaker.DISPATCHER, "second")

    assert [turn.text for turn in session.history] == ["first", "second"]


def test_context_window_returns_most_recent_turns_flattened():
    session = ConversationSession.start()
    for number in range(12):
        speaker = Speaker.CALLER if number % 2 == 0 else Speaker.DISPATCHER
        session.append_turn(speaker, f"line {number}")

    window = session.context_window()
    lines = window.splitlines()

    assert len(lines) == 10
    assert lines[0] == "Caller: line 2"
    assert lines[-1] == "Dispatcher: line 11"
    assert session.context_window(2) == "Caller: line 10\nDispatcher: line 11"
    assert session.context_window(0) == ""


def test_replace_record_and_call_id():
    session = ConversationSession.start()
    record = EmergencyRecord.model_validate(MEDICAL_RECORD)

    session.replace_record(record)
    session.assign_call_id("abc")
    session.mark_processed(3.0)

    assert session.current_record == record
    assert session.call_id == "abc"
    assert session.last_processed_at == 3.0


def test_ended_session_rejects_operations_but_reports_liveness():
    session = ConversationSession.start("call-1")
    session.append_turn(Speaker.CALLER, "hello")

    session.end()

    assert session.is_active is False
    assert session.session_id == "call-1"
    with pytest.raises(InvalidSessionState):
        session.append_turn(Speaker.CALLER, "still there?")
    with pytest.raises(InvalidSessionState):
        session.context_window()
    with pytest.raises(InvalidSessionState):
        _ = session.current_record
    with pytest.raises(InvalidSessionState):
        session.end()
