from __future__ import annotations

import pytest

from intake_core import ConditionScore, DiagnosisResult, DocumentRecord, Urgency, UserProfile
from intake_core.responses import (
    ANALYSIS_FALLBACK,
    DISCLAIMER,
    GREETING_PROMPTS,
    NO_DOCUMENTS_MESSAGE,
    ResponseGenerator,
    join_symptoms,
)
from intake_core.urgency import (
    RECOMMENDATION_TEXT,
    analysis_urgency,
    red_flags,
    urgency_from_conditions,
    urgency_from_symptoms,
)


def test_red_flag_symptoms_escalate_to_immediate_care():
    assert urgency_from_symptoms(["headache", "chest pain"]) == Urgency.SEEK_IMMEDIATE_CARE
    assert red_flags(["Severe chest pain", "cough"]) == ["Severe chest pain"]


def test_partial_words_are_not_red_flags():
    assert red_flags(["pain", "fever"]) == []
    assert urgency_from_symptoms(["fever"]) == Urgency.SCHEDULE_SOON


@pytest.mark.parametrize(
    ("probabilities", "expected"),
    [
        ([0.75, 0.1], Urgency.SEEK_IMMEDIATE_CARE),
        ([0.7], Urgency.SCHEDULE_SOON),
        ([0.2, 0.45], Urgency.SCHEDULE_SOON),
        ([0.4], Urgency.ROUTINE),
        ([], Urgency.ROUTINE),
    ],
)
def test_condition_probability_thresholds(probabilities, expected):
    conditions = [ConditionScore(f"c{i}", p) for i, p in enumerate(probabilities)]
    assert urgency_from_conditions(conditions) == expected


def test_red_flags_override_low_probabilities():
    conditions = [ConditionScore("Costochondritis", 0.1)]
    assert analysis_urgency(["chest pain"], conditions) == Urgency.SEEK_IMMEDIATE_CARE
    assert analysis_urgency(["cough"], conditions) == Urgency.ROUTINE


def test_join_symptoms():
    assert join_symptoms([]) == ""
    assert join_symptoms(["cough"]) == "cough"
    assert join_symptoms(["cough", "fever"]) == "cough and fever"
    assert join_symptoms(["cough", "fever", "chills"]) == "cough, fever, and chills"


def test_pooled_prompts_use_injected_chooser():
    picked = []

    def choose(options):
        picked.append(options)
        return options[-1]

    generator = ResponseGenerator(choose=choose)
    assert generator.greeting() == GREETING_PROMPTS[-1]
    assert picked == [GREETING_PROMPTS]


def test_need_more_detail_names_known_symptoms(responses):
    assert "headache and nausea" in responses.need_more_detail(["headache", "nausea"])
    assert "{symptoms}" not in responses.need_more_detail([])


def test_request_missing_lists_only_missing_fields(responses):
    text = responses.request_missing(UserProfile(age=30), ["cough"])
    assert "cough" in text
    assert "your sex" in text
    assert "your age" not in text


def test_render_analysis_lists_top_three_with_follow_up(responses):
    result = DiagnosisResult(
        conditions=[
            ConditionScore("Migraine", 0.62),
            ConditionScore("Tension headache", 0.31),
            ConditionScore("Sinusitis", 0.12),
            ConditionScore("Cluster headache", 0.05),
        ],
        question="Do you feel nauseous?",
        confidence=0.8,
    )
    text, metadata = responses.render_analysis(result, ["headache"])

    assert "1. **Migraine** (62% likelihood)" in text
    assert "3. **Sinusitis** (12% likelihood)" in text
    assert "Cluster headache" not in text
    assert "Do you feel nauseous?" in text
    assert text.endswith(DISCLAIMER)
    assert metadata.urgency == Urgency.SCHEDULE_SOON
    assert metadata.follow_up_question == "Do you feel nauseous?"
    assert len(metadata.conditions) == 4
    assert metadata.as_dict()["follow_up_question"] == "Do you feel nauseous?"


def test_render_analysis_without_question_gives_recommendation(responses):
    result = DiagnosisResult(
        conditions=[ConditionScore("Common cold", 0.2)],
        question="Ignored because the service stopped",
        confidence=0.5,
        should_stop=True,
    )
    text, metadata = responses.render_analysis(result, ["cough"])

    assert metadata.follow_up_question is None
    assert "follow_up_question" not in metadata.as_dict()
    assert RECOMMENDATION_TEXT[Urgency.ROUTINE] in text


def test_document_summary(responses):
    assert responses.document_summary([]) == NO_DOCUMENTS_MESSAGE
    text = responses.document_summary(
        [
            DocumentRecord("CBC panel", "lab_report", "2026-03-02", description="Normal white cell count."),
            DocumentRecord("Chest X-ray", "imaging_report"),
        ]
    )
    assert text.startswith("I found 2 records")
    assert "1. **CBC panel** (lab report, 2026-03-02)" in text
    assert "Normal white cell count." in text
    assert "2. **Chest X-ray** (imaging report)" in text


def test_fixed_fallback_texts(responses):
    assert responses.analysis_fallback() == ANALYSIS_FALLBACK
    assert "healthcare professional" in responses.analysis_fallback()
