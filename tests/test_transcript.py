"""Tests for recognizer fragment accumulation."""

from __future__ import annotations

from app.pipelines.intake import RecognizerFragment, TranscriptAccumulator


def test_interim_fragments_replace_each_other():
    accumulator = TranscriptAccumulator()

    assert accumulator.push(RecognizerFragment(is_final=False, text="there")) is None
    assert accumulator.push(RecognizerFragment(is_final=False, text="there is a")) is None

    assert accumulator.interim == "there is a"
    assert accumulator.transcript == "there is a"


def test_final_fragment_returns_utterance_and_clears_interim():
    accumulator = TranscriptAccumulator()
    accumulator.push(RecognizerFragment(is_final=False, text="there is a"))

    utterance = accumulator.push(RecognizerFragment(is_final=True, text="  there is a fire  "))

    assert utterance == "there is a fire"
    assert accumulator.interim == ""
    assert accumulator.transcript == "there is a fire"


def test_empty_final_is_dropped():
    accumulator = TranscriptAccumulator()

    assert accumulator.push(RecognizerFragment(is_final=True, text="   ")) is None
    assert accumulator.transcript == ""


def test_repeated_final_for_same_result_index_is_dropped():
    accumulator = TranscriptAccumulator()

    first = accumulator.push(RecognizerFragment(is_final=True, text="send help", result_index=0))
    again = accumulator.push(RecognizerFragment(is_final=True, text="send help", result_index=0))
    late_interim = accumulator.push(RecognizerFragment(is_final=False, text="send", result_index=0))
    nxt = accumulator.push(RecognizerFragment(is_final=True, text="hurry", result_index=1))

    assert first == "send help"
    assert again is None
    assert late_interim is None
    assert nxt == "hurry"
    assert accumulator.transcript == "send help hurry"


def test_reset_stream_allows_indexes_to_restart():
    accumulator = TranscriptAccumulator()
    accumulator.push(RecognizerFragment(is_final=True, text="one", result_index=0))
    accumulator.push(RecognizerFragment(is_final=False, text="tw"))

    accumulator.reset_stream()

    assert accumulator.interim == ""
    assert accumulator.push(RecognizerFragment(is_final=True, text="two", result_index=0)) == "two"
