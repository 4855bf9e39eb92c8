"""End-to-end turn processing tests for one call, with in-memory collaborators."""

from __future__ import annotations

import asyncio

from app.pipelines.intake import (
    FALLBACK_REPLY,
    ExtractionOutcome,
    RecognizerFragment,
    Speaker,
)
from app.services.geocoding import GeoPoint
from app.services.response_contract import EmergencyRecord, EmergencyType, Severity
from conftest import (
    FIRE_RECORD,
    MEDICAL_RECORD,
    FakeGateway,
    FakeGeocoder,
    FakeLlm,
    LlmInvocationError,
    build_harness,
    model_reply,
)


def _final(text: str, index: int | None = None) -> RecognizerFragment:
    return RecognizerFragment(is_final=True, text=text, result_index=index)


def test_utterances_half_a_second_apart_trigger_one_extraction():
    async def scenario():
        h = build_harness(FakeLlm(model_reply(None, "What is your address?")))
        assert h.pipeline.accept_fragment(_final("my husband fell"), now=10.0) is True
        assert h.pipeline.accept_fragment(_final("he is not moving"), now=10.5) is False
        await h.pipeline.wait_idle()
        return h

    h = asyncio.run(scenario())

    assert len(h.llm.calls) == 1
    caller_turns = [t.text for t in h.session.history if t.speaker is Speaker.CALLER]
    assert caller_turns == ["my husband fell", "he is not moving"]
    assert h.pipeline.snapshot().pending_utterances == 1


def test_utterances_three_seconds_apart_trigger_two_extractions():
    async def scenario():
        h = build_harness(FakeLlm(model_reply(None, "What is your address?")))
        assert h.pipeline.accept_fragment(_final("my husband fell"), now=10.0) is True
        await h.pipeline.wait_idle()
        assert h.pipeline.accept_fragment(_final("he is not moving"), now=13.0) is True
        await h.pipeline.wait_idle()
        return h

    h = asyncio.run(scenario())

    assert len(h.llm.calls) == 2


def test_coalesced_utterance_is_folded_into_the_next_processed_one():
    async def scenario():
        h = build_harness(FakeLlm(model_reply(None)))
        h.pipeline.accept_fragment(_final("my husband fell"), now=0.0)
        h.pipeline.accept_fragment(_final("he is not moving"), now=0.5)
        h.pipeline.accept_fragment(_final("please hurry"), now=3.0)
        await h.pipeline.wait_idle()
        return h

    h = asyncio.run(scenario())

    assert len(h.llm.calls) == 2
    assert "Newest caller message: he is not moving please hurry" in h.llm.calls[1]["user_prompt"]


def test_stream_end_flushes_held_utterances_once_window_elapsed():
    async def scenario():
        h = build_harness(FakeLlm(model_reply(None)))
        h.pipeline.accept_fragment(_final("hello"), now=0.0)
        h.pipeline.accept_fragment(_final("is anyone there"), now=1.0)
        assert h.pipeline.flush(now=1.5) is False
        assert h.pipeline.flush(now=2.5) is True
        await h.pipeline.wait_idle()
        return h

    h = asyncio.run(scenario())

    assert len(h.llm.calls) == 2


def test_manual_text_bypasses_debounce():
    async def scenario():
        h = build_harness(FakeLlm(model_reply(None)))
        h.pipeline.accept_fragment(_final("hello"), now=0.0)
        outcome = await h.pipeline.submit_text("I smell gas", now=0.1)
        await h.pipeline.wait_idle()
        return h, outcome

    h, outcome = asyncio.run(scenario())

    assert outcome.applied is True
    assert len(h.llm.calls) == 2


def test_fire_report_creates_exactly_one_call_record():
    geocoder = FakeGeocoder(forward={"12 Elm Street": GeoPoint(latitude=40.71, longitude=-74.0)})

    async def scenario():
        h = build_harness(
            FakeLlm(model_reply(FIRE_RECORD, "Get everyone out of the house now.")),
            geocoder=geocoder,
        )
        outcome = await h.pipeline.submit_text("There's a fire at 12 Elm Street, one person hurt")
        await h.pipeline.wait_idle()
        return h, outcome

    h, outcome = asyncio.run(scenario())

    assert outcome.extraction.outcome is ExtractionOutcome.PARSED
    record = h.session.current_record
    assert record.type is EmergencyType.FIRE
    assert record.casualties == 1
    assert "Elm Street" in record.location
    assert (record.latitude, record.longitude) == (40.71, -74.0)
    assert len(h.gateway.creates) == 1
    assert h.gateway.updates == []
    created = h.gateway.creates[0]
    assert created.type is EmergencyType.FIRE
    assert "There's a fire at 12 Elm Street" in created.transcript
    assert h.session.call_id is not None
    assert h.delivered == ["Get everyone out of the house now."]


def test_repeated_information_triggers_no_additional_writes():
    geocoder = FakeGeocoder(forward={"5 Oak Avenue": GeoPoint(latitude=34.05, longitude=-118.24)})

    async def scenario():
        h = build_harness(
            FakeLlm(
                model_reply(MEDICAL_RECORD, "Is he breathing?"),
                model_reply(MEDICAL_RECORD, "Help is being arranged; stay on the line."),
            ),
            geocoder=geocoder,
        )
        await h.pipeline.submit_text("My father collapsed at 5 Oak Avenue")
        await h.pipeline.wait_idle()
        record_before = h.session.current_record
        outcome = await h.pipeline.submit_text("Like I said, he collapsed at 5 Oak Avenue")
        await h.pipeline.wait_idle()
        return h, record_before, outcome

    h, record_before, outcome = asyncio.run(scenario())

    assert outcome.record_changed is False
    assert h.session.current_record == record_before
    assert len(h.gateway.creates) == 1
    assert h.gateway.updates == []
    assert geocoder.forward_calls == ["5 Oak Avenue"]


def test_malformed_model_output_keeps_record_and_speaks_fallback():
    async def scenario():
        h = build_harness(FakeLlm(model_reply(MEDICAL_RECORD), "{oops"))
        await h.pipeline.submit_text("My father collapsed")
        await h.pipeline.wait_idle()
        record_before = h.session.current_record
        writes_before = len(h.gateway.creates) + len(h.gateway.updates)
        outcome = await h.pipeline.submit_text("he is on the kitchen floor")
        await h.pipeline.wait_idle()
        return h, record_before, writes_before, outcome

    h, record_before, writes_before, outcome = asyncio.run(scenario())

    assert outcome.extraction.outcome is ExtractionOutcome.FALLBACK
    assert h.session.current_record == record_before
    assert len(h.gateway.creates) + len(h.gateway.updates) == writes_before
    assert h.delivered[-1] == FALLBACK_REPLY
    assert h.session.history[-1].text == FALLBACK_REPLY


def test_malformed_first_answer_writes_nothing():
    async def scenario():
        h = build_harness(FakeLlm("not json at all"))
        await h.pipeline.submit_text("help")
        await h.pipeline.wait_idle()
        return h

    h = asyncio.run(scenario())

    assert h.session.current_record is None
    assert h.gateway.creates == []
    assert h.delivered == [FALLBACK_REPLY]


def test_material_change_replaces_record_exactly_and_updates_by_id():
    corrected = dict(MEDICAL_RECORD, severity="CRITICAL", casualties=2, description="Two people down")

    async def scenario():
        h = build_harness(FakeLlm(model_reply(MEDICAL_RECORD), model_reply(corrected)))
        await h.pipeline.submit_text("My father collapsed")
        await h.pipeline.wait_idle()
        outcome = await h.pipeline.submit_text("Now my mother fainted too")
        await h.pipeline.wait_idle()
        return h, outcome

    h, outcome = asyncio.run(scenario())

    assert outcome.record_changed is True
    assert h.session.current_record == EmergencyRecord.model_validate(corrected)
    assert len(h.gateway.creates) == 1
    assert len(h.gateway.updates) == 1
    call_id, payload = h.gateway.updates[0]
    assert call_id == h.session.call_id
    assert payload.severity is Severity.CRITICAL
    assert payload.auto_escalated is True
    assert payload.human_takeover is True


def test_transport_failure_produces_no_reply_and_no_write():
    async def scenario():
        h = build_harness(FakeLlm(LlmInvocationError("timeout")))
        outcome = await h.pipeline.submit_text("help")
        await h.pipeline.wait_idle()
        return h, outcome

    h, outcome = asyncio.run(scenario())

    assert outcome.extraction.outcome is ExtractionOutcome.TRANSPORT_FAILED
    assert h.delivered == []
    assert h.gateway.creates == []
    assert [t.speaker for t in h.session.history] == [Speaker.CALLER]


def test_failed_create_is_retried_on_next_material_change():
    changed = dict(MEDICAL_RECORD, casualties=2)

    async def scenario():
        h = build_harness(
            FakeLlm(model_reply(MEDICAL_RECORD), model_reply(changed)),
            gateway=FakeGateway(fail_first=True),
        )
        await h.pipeline.submit_text("My father collapsed")
        await h.pipeline.wait_idle()
        assert h.session.call_id is None
        await h.pipeline.submit_text("My brother too")
        await h.pipeline.wait_idle()
        return h

    h = asyncio.run(scenario())

    assert len(h.gateway.creates) == 1
    assert h.gateway.creates[0].casualties == 2
    assert h.session.call_id is not None


def test_results_arriving_after_end_are_dropped():
    llm = FakeLlm(model_reply(FIRE_RECORD, "Get out now."))

    async def scenario():
        h = build_harness(llm)
        llm.gate = asyncio.Event()
        turn = asyncio.ensure_future(h.pipeline.submit_text("fire!"))
        await llm.started.wait()
        h.pipeline.end()
        llm.gate.set()
        outcome = await turn
        await h.pipeline.wait_idle()
        return h, outcome

    h, outcome = asyncio.run(scenario())

    assert outcome.applied is False
    assert h.session.is_active is False
    assert h.gateway.creates == []
    assert h.delivered == []
    assert h.tts.synthesized == []


def test_greeting_is_spoken_first_and_recorded():
    async def scenario():
        h = build_harness(FakeLlm(model_reply(None, "Where are you?")))
        h.pipeline.greet()
        await h.pipeline.submit_text("there's been an accident")
        await h.pipeline.wait_idle()
        return h

    h = asyncio.run(scenario())

    assert h.delivered == ["911, what is your emergency?", "Where are you?"]
    assert h.session.history[0].speaker is Speaker.DISPATCHER


def test_location_hint_reaches_the_prompt_and_the_record():
    async def scenario():
        h = build_harness(FakeLlm(model_reply(FIRE_RECORD)))
        h.pipeline.set_location_hint(48.85, 2.35)
        await h.pipeline.submit_text("fire in my kitchen")
        await h.pipeline.wait_idle()
        return h

    h = asyncio.run(scenario())

    assert "48.850000" in h.llm.calls[0]["system_prompt"]
    record = h.session.current_record
    assert (record.latitude, record.longitude) == (48.85, 2.35)


def test_recognizer_faults_switch_to_manual_text():
    async def scenario():
        h = build_harness(FakeLlm(model_reply(None)))
        soft = h.pipeline.report_recognizer_error("no-speech")
        hard = h.pipeline.report_recognizer_error("not-allowed")
        return soft, hard

    soft, hard = asyncio.run(scenario())

    assert soft.available is True and soft.listening is True
    assert hard.available is False and hard.listening is False
    assert "type your message" in hard.message


def test_corrected_address_is_geocoded_instead_of_keeping_old_coordinates():
    geocoder = FakeGeocoder(
        forward={
            "5 Oak Avenue": GeoPoint(latitude=34.05, longitude=-118.24),
            "20 Main Street": GeoPoint(latitude=40.0, longitude=-75.0),
        }
    )
    echoed = dict(MEDICAL_RECORD, location="20 Main Street", latitude=34.05, longitude=-118.24)

    async def scenario():
        h = build_harness(
            FakeLlm(model_reply(MEDICAL_RECORD), model_reply(echoed)),
            geocoder=geocoder,
        )
        await h.pipeline.submit_text("My father collapsed at 5 Oak Avenue")
        await h.pipeline.wait_idle()
        outcome = await h.pipeline.submit_text("Sorry, we are at 20 Main Street")
        await h.pipeline.wait_idle()
        return h, outcome

    h, outcome = asyncio.run(scenario())

    record = h.session.current_record
    assert outcome.record_changed is True
    assert record.location == "20 Main Street"
    assert (record.latitude, record.longitude) == (40.0, -75.0)
    assert geocoder.forward_calls == ["5 Oak Avenue", "20 Main Street"]
    _, payload = h.gateway.updates[-1]
    assert (payload.latitude, payload.longitude) == (40.0, -75.0)


def test_older_extraction_finishing_last_does_not_replace_newer_record():
    newer = dict(MEDICAL_RECORD, casualties=2, description="Two people down")
    llm = FakeLlm(
        model_reply(MEDICAL_RECORD, "Is he breathing?"),
        model_reply(newer, "Help is being sent."),
        delays=(0.2,),
    )

    async def scenario():
        h = build_harness(llm)
        assert h.pipeline.accept_fragment(_final("my father collapsed"), now=0.0) is True
        await llm.started.wait()
        outcome = await h.pipeline.submit_text("my brother collapsed too", now=0.5)
        await h.pipeline.wait_idle()
        return h, outcome

    h, outcome = asyncio.run(scenario())

    assert outcome.record_changed is True
    assert h.session.current_record == EmergencyRecord.model_validate(newer)
    assert len(h.gateway.creates) == 1
    assert h.gateway.creates[0].casualties == 2
    assert h.gateway.updates == []
    assert sorted(h.delivered) == ["Help is being sent.", "Is he breathing?"]
