from __future__ import annotations

import asyncio

import pytest

from conftest import FakeDiagnosis
from intake_core import (
    Author,
    ConditionScore,
    ConversationSession,
    DiagnosisResult,
    Evidence,
    SessionClosedError,
    Stage,
    Urgency,
)
from intake_core.responses import (
    ANALYSIS_FALLBACK,
    ANALYSIS_IN_PROGRESS,
    ANALYSIS_PLACEHOLDER,
    OPENING_GREETING,
    REPHRASE_FALLBACK,
)

FIRST_TURN = "I'm 34 years old male and I have a headache"


def _texts(session: ConversationSession) -> list[str]:
    return [message.text for message in session.get_transcript()]


def _session(diagnosis, responses, **kwargs) -> ConversationSession:
    return ConversationSession(user_id="user-a", diagnosis=diagnosis, responses=responses, **kwargs)


def test_session_opens_with_greeting(fake_diagnosis, responses):
    session = _session(fake_diagnosis, responses)
    transcript = session.get_transcript()
    assert len(transcript) == 1
    assert transcript[0].author == Author.ASSISTANT
    assert transcript[0].text == OPENING_GREETING
    assert session.get_state().stage == Stage.GREETING


def test_end_to_end_placeholder_precedes_analysis(fake_diagnosis, responses):
    async def scenario():
        session = _session(fake_diagnosis, responses)
        await session.send_user_message(FIRST_TURN)

        state = session.get_state()
        assert state.stage == Stage.SYMPTOM_GATHERING
        assert (state.user_profile.age, state.user_profile.sex) == (34, "male")
        assert state.symptoms == ["headache"]

        await session.send_user_message("yes")
        assert session.get_state().stage == Stage.ANALYSIS
        assert _texts(session)[-1] == ANALYSIS_PLACEHOLDER
        assert session.analysis_pending

        await session.wait_for_analysis()
        return session

    session = asyncio.run(scenario())
    transcript = session.get_transcript()
    texts = [message.text for message in transcript]

    placeholder_index = texts.index(ANALYSIS_PLACEHOLDER)
    assert placeholder_index == len(texts) - 2
    analysis = transcript[-1]
    assert analysis.author == Author.ASSISTANT
    assert analysis.metadata is not None
    assert analysis.metadata.urgency == Urgency.SCHEDULE_SOON
    assert "**Tension headache** (55% likelihood)" in analysis.text
    assert session.get_state().stage == Stage.RECOMMENDATION
    assert fake_diagnosis.calls == [([Evidence("headache", 3)], 34, "male")]


def test_diagnosis_failure_leaves_single_fallback(failing_diagnosis, responses):
    async def scenario():
        session = _session(failing_diagnosis, responses)
        await session.send_user_message(FIRST_TURN)
        await session.send_user_message("yes")
        await session.wait_for_analysis()
        return session

    session = asyncio.run(scenario())
    transcript = session.get_transcript()
    assert transcript[-1].text == ANALYSIS_FALLBACK
    assert transcript[-1].metadata is None
    assert _texts(session).count(ANALYSIS_FALLBACK) == 1
    assert session.get_state().stage == Stage.ANALYSIS


def test_slow_diagnosis_times_out_as_failure(responses):
    diagnosis = FakeDiagnosis(delay=1.0)

    async def scenario():
        session = _session(diagnosis, responses, timeout_seconds=0.05)
        await session.send_user_message(FIRST_TURN)
        await session.send_user_message("yes")
        await session.wait_for_analysis()
        return session

    session = asyncio.run(scenario())
    assert _texts(session)[-1] == ANALYSIS_FALLBACK
    assert session.get_state().stage == Stage.ANALYSIS


def test_close_discards_pending_analysis(responses):
    async def scenario():
        gate = asyncio.Event()
        diagnosis = FakeDiagnosis(gate=gate)
        session = _session(diagnosis, responses)
        await session.send_user_message(FIRST_TURN)
        await session.send_user_message("yes")
        await asyncio.sleep(0)
        session.close()
        gate.set()
        await asyncio.sleep(0.01)
        return session

    session = asyncio.run(scenario())
    assert session.closed
    assert _texts(session)[-1] == ANALYSIS_PLACEHOLDER
    assert not session.analysis_pending
    with pytest.raises(SessionClosedError):
        asyncio.run(session.send_user_message("hello?"))


def test_reset_starts_fresh_and_drops_late_result(responses):
    async def scenario():
        gate = asyncio.Event()
        diagnosis = FakeDiagnosis(gate=gate)
        session = _session(diagnosis, responses)
        await session.send_user_message(FIRST_TURN)
        await session.send_user_message("yes")
        generation = session.generation
        session.reset()
        gate.set()
        await asyncio.sleep(0.01)
        return session, generation

    session, generation = asyncio.run(scenario())
    assert session.generation == generation + 1
    assert _texts(session) == [OPENING_GREETING]
    state = session.get_state()
    assert state.stage == Stage.GREETING
    assert state.symptoms == []
    assert state.user_profile.age is None


def test_only_one_analysis_in_flight(responses):
    async def scenario():
        gate = asyncio.Event()
        diagnosis = FakeDiagnosis(gate=gate)
        session = _session(diagnosis, responses)
        await session.send_user_message(FIRST_TURN)
        await session.send_user_message("yes")
        await asyncio.sleep(0)
        await session.send_user_message("is it ready?")
        assert _texts(session)[-1] == ANALYSIS_IN_PROGRESS
        gate.set()
        await session.wait_for_analysis()
        return session, diagnosis

    session, diagnosis = asyncio.run(scenario())
    assert len(diagnosis.calls) == 1
    assert session.get_transcript()[-1].metadata is not None


def test_clarification_answer_triggers_new_analysis(responses):
    diagnosis = FakeDiagnosis(
        DiagnosisResult(
            conditions=[ConditionScore("Migraine", 0.45)],
            question="Is the pain on one side of your head?",
            confidence=0.5,
        )
    )

    async def scenario():
        session = _session(diagnosis, responses)
        await session.send_user_message(FIRST_TURN)
        await session.send_user_message("yes")
        await session.wait_for_analysis()
        assert session.get_state().stage == Stage.CLARIFICATION

        await session.send_user_message("hard to say")
        assert session.get_state().stage == Stage.CLARIFICATION

        diagnosis.result = DiagnosisResult(conditions=[ConditionScore("Migraine", 0.8)], confidence=0.9)
        await session.send_user_message("yes")
        await session.wait_for_analysis()
        return session

    session = asyncio.run(scenario())
    state = session.get_state()
    assert state.stage == Stage.RECOMMENDATION
    assert state.context["answers"] == [
        {"question": "Is the pain on one side of your head?", "answer": "yes"}
    ]
    assert state.context["urgency"] == Urgency.SEEK_IMMEDIATE_CARE.value
    assert len(diagnosis.calls) == 2


def test_blank_messages_are_ignored(fake_diagnosis, responses):
    session = _session(fake_diagnosis, responses)
    asyncio.run(session.send_user_message("   "))
    assert _texts(session) == [OPENING_GREETING]


def test_turn_errors_become_rephrase_prompt(fake_diagnosis, responses, monkeypatch):
    session = _session(fake_diagnosis, responses)

    def boom(*args, **kwargs):
        raise RuntimeError("extractor exploded")

    monkeypatch.setattr(session._manager, "handle_turn", boom)
    asyncio.run(session.send_user_message("hello"))
    assert _texts(session)[-2:] == ["hello", REPHRASE_FALLBACK]


def test_transcript_and_state_are_read_only_copies(fake_diagnosis, responses):
    session = _session(fake_diagnosis, responses)
    asyncio.run(session.send_user_message(FIRST_TURN))

    session.get_transcript().clear()
    session.get_state().symptoms.append("tampered")

    assert len(session.get_transcript()) == 3
    assert session.get_state().symptoms == ["headache"]
