from __future__ import annotations

import random
from typing import Callable, Sequence

from .diagnosis import DiagnosisResult, DocumentRecord
from .models import AnalysisMetadata, UserProfile
from .urgency import analysis_urgency, recommendation_text

Chooser = Callable[[Sequence[str]], str]

OPENING_GREETING = (
    "Hello! I'm your health assistant. I can help you make sense of your symptoms and "
    "point you toward the right kind of care. To get started, could you tell me your age, "
    "your sex, and how you're feeling today?"
)

GREETING_PROMPTS = (
    "I'm here to help with any health concerns you might have. Please describe any symptoms "
    "you're experiencing, along with your age and sex.",
    "Hi there! Tell me what's bothering you today, and let me know your age and sex so I can "
    "give you better guidance.",
    "Hello! How are you feeling? Describe your symptoms and share your age and sex, and we'll "
    "go through them together.",
    "Thanks for reaching out. What symptoms have you noticed? It also helps to know your age "
    "and sex.",
)

NEED_DETAIL_PROMPTS = (
    "Could you tell me more about your {symptoms}? For example, where exactly do you feel it "
    "and how long has it been going on?",
    "I'd like to understand your {symptoms} a bit better. When did it start, and is it getting "
    "better or worse?",
    "Can you describe your {symptoms} in more detail? Is it constant, or does it come and go?",
    "Tell me a little more about your {symptoms}. How severe is it, and have you noticed "
    "anything that makes it better or worse?",
)

NEED_DETAIL_EMPTY_PROMPTS = (
    "Could you provide more details about your symptoms? For example, where exactly do you feel "
    "discomfort, and how long have you been experiencing this?",
    "I didn't quite catch a symptom there. What are you feeling right now?",
    "Can you describe what's bothering you? For example, \"I have a headache\" or \"my back hurts\".",
    "What symptoms are you experiencing? Please describe them in your own words.",
)

CONTEXTUAL_ACKNOWLEDGMENTS = (
    "Thanks for letting me know. If anything changes or new symptoms appear, tell me and we can "
    "look at them again.",
    "I understand. Please keep an eye on how you feel, and reach out to a healthcare provider if "
    "things get worse.",
    "Noted. Is there anything else about your health you'd like to talk through?",
    "Got it. Remember that this is informational guidance only, so check in with a healthcare "
    "professional about anything that worries you.",
)

ANALYSIS_PLACEHOLDER = "Let me analyze your symptoms using medical AI..."
ANALYSIS_IN_PROGRESS = "I'm currently analyzing your symptoms. Please wait a moment..."
ANALYSIS_FALLBACK = (
    "I'm having trouble analyzing your symptoms right now. Based on what you've told me, I'd "
    "recommend consulting with a healthcare professional, especially if your symptoms persist "
    "or worsen."
)
REPHRASE_FALLBACK = (
    "I apologize, but I'm having trouble processing your message. Could you please rephrase "
    "your concern? If you're worried about your health, please consult a healthcare professional."
)
NO_DOCUMENTS_MESSAGE = (
    "I don't see any documents or health records uploaded yet. You can add records to your "
    "profile and I'll be able to reference them here."
)
DISCLAIMER = (
    "This is informational guidance only and should not replace professional medical advice."
)

_FIELD_LABELS = {"age": "your age", "sex": "your sex (male or female)"}
_TOP_CONDITIONS = 3
_EXCERPT_LENGTH = 160


def join_symptoms(symptoms: Sequence[str]) -> str:
    items = list(symptoms)
    if len(items) <= 1:
        return "".join(items)
    if len(items) == 2:
        return f"{items[0]} and {items[1]}"
    return f"{', '.join(items[:-1])}, and {items[-1]}"


def _describe_profile(profile: UserProfile) -> str:
    parts: list[str] = []
    if profile.age is not None:
        parts.append(f"{profile.age}-year-old")
    if profile.sex:
        parts.append(profile.sex)
    return " ".join(parts)


def _excerpt(text: str) -> str:
    flattened = " ".join(text.split())
    if len(flattened) <= _EXCERPT_LENGTH:
        return flattened
    return flattened[: _EXCERPT_LENGTH - 3].rstrip() + "..."


class ResponseGenerator:
    def __init__(self, choose: Chooser | None = None) -> None:
        self._choose = choose or random.choice

    def greeting(self) -> str:
        return self._choose(GREETING_PROMPTS)

    def contextual_acknowledgment(self) -> str:
        return self._choose(CONTEXTUAL_ACKNOWLEDGMENTS)

    def need_more_detail(self, symptoms: Sequence[str]) -> str:
        if not symptoms:
            return self._choose(NEED_DETAIL_EMPTY_PROMPTS)
        return self._choose(NEED_DETAIL_PROMPTS).format(symptoms=join_symptoms(symptoms))

    def request_missing(self, profile: UserProfile, symptoms: Sequence[str]) -> str:
        missing = [_FIELD_LABELS[name] for name in profile.missing_fields()]
        lead = ""
        if symptoms:
            lead = f"I understand you're experiencing {join_symptoms(symptoms)}. "
        elif profile.has_any():
            lead = f"Thanks, I've noted that you're a {_describe_profile(profile)}. "
        if missing:
            return (
                f"{lead}To give you better guidance, could you tell me {' and '.join(missing)}?"
            )
        return f"{lead}What symptoms are you experiencing today?"

    def acknowledge_intake(self, profile: UserProfile, symptoms: Sequence[str], duration: str | None) -> str:
        since = f" {duration}" if duration else ""
        return (
            f"Thank you. I've noted that you're a {_describe_profile(profile)} experiencing "
            f"{join_symptoms(symptoms)}{since}. That sounds uncomfortable. How severe does it feel "
            "(mild, moderate or severe), and are you having any other symptoms?"
        )

    def noted_symptoms(self, added: Sequence[str]) -> str:
        return (
            f"I've noted {join_symptoms(added)} as well. Are there any other symptoms you'd like "
            "to mention? If not, just say yes and I'll analyze what you've told me so far."
        )

    def clarification_reprompt(self, question: str | None) -> str:
        if question:
            return f"To continue, please answer yes or no: {question}"
        return "Could you answer with a yes or no, or tell me a bit more about how you're feeling?"

    def analysis_placeholder(self) -> str:
        return ANALYSIS_PLACEHOLDER

    def analysis_in_progress(self) -> str:
        return ANALYSIS_IN_PROGRESS

    def analysis_fallback(self) -> str:
        return ANALYSIS_FALLBACK

    def rephrase_fallback(self) -> str:
        return REPHRASE_FALLBACK

    def render_analysis(self, result: DiagnosisResult, symptoms: Sequence[str]) -> tuple[str, AnalysisMetadata]:
        urgency = analysis_urgency(symptoms, result.conditions)
        question = result.follow_up_question
        metadata = AnalysisMetadata(
            conditions=list(result.conditions),
            urgency=urgency,
            confidence=min(1.0, max(0.0, result.confidence)),
            follow_up_question=question,
        )

        lines: list[str] = []
        top = result.conditions[:_TOP_CONDITIONS]
        if top:
            lines.append("Based on my analysis of your symptoms, here are the most likely conditions:")
            lines.append("")
            for index, condition in enumerate(top, start=1):
                lines.append(
                    f"{index}. **{condition.name}** ({round(condition.probability * 100)}% likelihood)"
                )
        else:
            lines.append("I couldn't match your symptoms to specific conditions with confidence.")
        lines.append("")
        if question:
            lines.append(
                f"I have a follow-up question to better understand your condition: {question}"
            )
        else:
            lines.append(recommendation_text(urgency))
        lines.append("")
        lines.append(DISCLAIMER)
        return "\n".join(lines), metadata

    def document_summary(self, documents: Sequence[DocumentRecord]) -> str:
        if not documents:
            return NO_DOCUMENTS_MESSAGE
        noun = "record" if len(documents) == 1 else "records"
        lines = [f"I found {len(documents)} {noun} in your health history:", ""]
        for index, document in enumerate(documents, start=1):
            label = document.record_type.replace("_", " ")
            if document.date_recorded:
                label = f"{label}, {document.date_recorded}"
            lines.append(f"{index}. **{document.title}** ({label})")
            detail = document.description or document.extracted_text
            if detail:
                lines.append(f"   {_excerpt(detail)}")
        lines.append("")
        lines.append(
            "Let me know if you'd like to discuss any of these alongside your current symptoms."
        )
        return "\n".join(lines)
