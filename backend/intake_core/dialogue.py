"""Stage transitions for the symptom-intake conversation.

The manager never holds conversation data itself: every call receives the
session's ``ConversationState`` and mutates it in place. Starting the
diagnosis call is left to the caller; a turn only reports that analysis
should begin via ``TurnOutcome.start_analysis``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from . import patterns
from .diagnosis import DiagnosisResult, DocumentFetchError, DocumentSource
from .extractor import extract, normalize_text
from .models import AnalysisMetadata, ConversationState, ExtractionResult, Intent, Stage
from .responses import ResponseGenerator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TurnOutcome:
    reply: str
    start_analysis: bool = False


StageHandler = Callable[[ConversationState, ExtractionResult, bool], TurnOutcome]


def mentions_documents(text: str) -> bool:
    return bool(patterns.DOCUMENT_PATTERN.search(normalize_text(text)))


class DialogueManager:
    def __init__(
        self,
        responses: ResponseGenerator | None = None,
        documents: DocumentSource | None = None,
    ) -> None:
        self.responses = responses or ResponseGenerator()
        self.documents = documents
        self._handlers: dict[Stage, StageHandler] = {
            Stage.GREETING: self._handle_greeting,
            Stage.SYMPTOM_GATHERING: self._handle_symptom_gathering,
            Stage.ANALYSIS: self._handle_analysis,
            Stage.CLARIFICATION: self._handle_clarification,
            Stage.RECOMMENDATION: self._handle_recommendation,
        }

    def handle_turn(
        self,
        state: ConversationState,
        text: str,
        *,
        user_id: str,
        analysis_in_flight: bool = False,
    ) -> TurnOutcome:
        state.remember_utterance(text)
        if mentions_documents(text):
            return TurnOutcome(self._document_reply(user_id))

        extraction = extract(text)
        handler = self._handlers[state.stage]
        logger.debug(
            "turn stage=%s intent=%s symptoms=%s",
            state.stage.value,
            extraction.intent.value,
            extraction.symptoms,
        )
        return handler(state, extraction, analysis_in_flight)

    def apply_analysis(self, state: ConversationState, result: DiagnosisResult) -> tuple[str, AnalysisMetadata]:
        text, metadata = self.responses.render_analysis(result, state.symptoms)
        if metadata.follow_up_question:
            state.stage = Stage.CLARIFICATION
            state.context["pending_question"] = metadata.follow_up_question
        else:
            state.stage = Stage.RECOMMENDATION
            state.context.pop("pending_question", None)
        state.context["urgency"] = metadata.urgency.value
        return text, metadata

    # -- helpers ---------------------------------------------------------------

    def _document_reply(self, user_id: str) -> str:
        if self.documents is None:
            return self.responses.document_summary([])
        try:
            documents = self.documents.fetch_documents(user_id)
        except DocumentFetchError as exc:
            logger.warning("document fetch failed for %s: %s", user_id, exc)
            return self.responses.analysis_fallback()
        return self.responses.document_summary(documents)

    def _absorb(self, state: ConversationState, extraction: ExtractionResult) -> list[str]:
        state.user_profile.merge(extraction.age, extraction.sex)
        if extraction.severity_stated or "severity" not in state.context:
            state.context["severity"] = extraction.severity.value
        if extraction.duration:
            state.context["duration"] = extraction.duration
        return state.add_symptoms(extraction.symptoms)

    def _begin_analysis(self, state: ConversationState, analysis_in_flight: bool) -> TurnOutcome:
        if not state.symptoms or not state.user_profile.is_complete():
            state.stage = Stage.SYMPTOM_GATHERING
            if not state.symptoms and state.user_profile.is_complete():
                return TurnOutcome(self.responses.need_more_detail(state.symptoms))
            return TurnOutcome(self.responses.request_missing(state.user_profile, state.symptoms))
        state.stage = Stage.ANALYSIS
        if analysis_in_flight:
            return TurnOutcome(self.responses.analysis_in_progress())
        return TurnOutcome(self.responses.analysis_placeholder(), start_analysis=True)

    # -- stage handlers --------------------------------------------------------

    def _handle_greeting(
        self, state: ConversationState, extraction: ExtractionResult, analysis_in_flight: bool
    ) -> TurnOutcome:
        self._absorb(state, extraction)
        profile = state.user_profile
        if profile.is_complete() and state.symptoms:
            state.stage = Stage.SYMPTOM_GATHERING
            return TurnOutcome(
                self.responses.acknowledge_intake(profile, state.symptoms, state.context.get("duration"))
            )
        if state.symptoms or profile.has_any():
            return TurnOutcome(self.responses.request_missing(profile, state.symptoms))
        return TurnOutcome(self.responses.greeting())

    def _handle_symptom_gathering(
        self, state: ConversationState, extraction: ExtractionResult, analysis_in_flight: bool
    ) -> TurnOutcome:
        added = self._absorb(state, extraction)
        if extraction.intent == Intent.CONFIRMATION:
            if state.symptoms and state.user_profile.is_complete():
                return self._begin_analysis(state, analysis_in_flight)
            if not state.user_profile.is_complete():
                return TurnOutcome(self.responses.request_missing(state.user_profile, state.symptoms))
        if added:
            return TurnOutcome(self.responses.noted_symptoms(added))
        return TurnOutcome(self.responses.need_more_detail(state.symptoms))

    def _handle_analysis(
        self, state: ConversationState, extraction: ExtractionResult, analysis_in_flight: bool
    ) -> TurnOutcome:
        self._absorb(state, extraction)
        return self._begin_analysis(state, analysis_in_flight)

    def _handle_clarification(
        self, state: ConversationState, extraction: ExtractionResult, analysis_in_flight: bool
    ) -> TurnOutcome:
        question = state.context.get("pending_question")
        if extraction.intent not in (Intent.CONFIRMATION, Intent.DENIAL):
            return TurnOutcome(self.responses.clarification_reprompt(question))
        answer = "yes" if extraction.intent == Intent.CONFIRMATION else "no"
        state.context.setdefault("answers", []).append({"question": question, "answer": answer})
        state.context.pop("pending_question", None)
        return self._begin_analysis(state, analysis_in_flight)

    def _handle_recommendation(
        self, state: ConversationState, extraction: ExtractionResult, analysis_in_flight: bool
    ) -> TurnOutcome:
        return TurnOutcome(self.responses.contextual_acknowledgment())
