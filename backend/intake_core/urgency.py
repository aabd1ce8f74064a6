from __future__ import annotations

from typing import Iterable

from .models import ConditionScore, Urgency

RED_FLAG_SYMPTOMS = (
    "chest pain",
    "difficulty breathing",
    "severe pain",
    "high fever",
    "bleeding",
    "confusion",
    "severe headache",
)

IMMEDIATE_CARE_THRESHOLD = 0.7
SCHEDULE_SOON_THRESHOLD = 0.4

RECOMMENDATION_TEXT = {
    Urgency.SEEK_IMMEDIATE_CARE: (
        "Important: Based on your symptoms, I recommend seeking immediate medical attention. "
        "Please consider visiting an emergency room or urgent care center."
    ),
    Urgency.SCHEDULE_SOON: (
        "Recommendation: You should schedule an appointment with your healthcare provider "
        "within the next few days to discuss these symptoms."
    ),
    Urgency.ROUTINE: (
        "Recommendation: Keep monitoring your symptoms. If they worsen or persist, consider "
        "scheduling a routine appointment with your healthcare provider."
    ),
}


def red_flags(symptoms: Iterable[str]) -> list[str]:
    flagged: list[str] = []
    for symptom in symptoms:
        lowered = symptom.strip().lower()
        if not lowered:
            continue
        if any(flag in lowered for flag in RED_FLAG_SYMPTOMS):
            flagged.append(symptom)
    return flagged


def urgency_from_symptoms(symptoms: Iterable[str]) -> Urgency:
    return Urgency.SEEK_IMMEDIATE_CARE if red_flags(symptoms) else Urgency.SCHEDULE_SOON


def urgency_from_conditions(conditions: Iterable[ConditionScore]) -> Urgency:
    probabilities = [condition.probability for condition in conditions]
    if not probabilities:
        return Urgency.ROUTINE
    highest = max(probabilities)
    if highest > IMMEDIATE_CARE_THRESHOLD:
        return Urgency.SEEK_IMMEDIATE_CARE
    if highest > SCHEDULE_SOON_THRESHOLD:
        return Urgency.SCHEDULE_SOON
    return Urgency.ROUTINE


def analysis_urgency(symptoms: Iterable[str], conditions: Iterable[ConditionScore]) -> Urgency:
    # Red flags escalate regardless of what the condition probabilities say.
    if red_flags(symptoms):
        return Urgency.SEEK_IMMEDIATE_CARE
    return urgency_from_conditions(conditions)


def recommendation_text(urgency: Urgency) -> str:
    return RECOMMENDATION_TEXT.get(urgency, RECOMMENDATION_TEXT[Urgency.ROUTINE])
