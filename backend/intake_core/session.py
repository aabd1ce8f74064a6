from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from .dialogue import DialogueManager
from .diagnosis import DiagnosisAdapter, DiagnosisError, DocumentSource, build_evidence
from .models import AnalysisMetadata, Author, ConversationState, Message
from .responses import OPENING_GREETING, ResponseGenerator

logger = logging.getLogger(__name__)

DEFAULT_ANALYSIS_TIMEOUT_SECONDS = 10.0


class SessionClosedError(Exception):
    pass


@dataclass(frozen=True)
class AnalysisRequest:
    generation: int
    symptoms: list[str]
    severity: str | None
    age: int
    sex: str


class ConversationSession:
    """One user's conversation: state, transcript and the deferred analysis call.

    Turns run to completion without suspending, so two turns never
    interleave. The diagnosis call is the only suspension point; it runs as
    a task tagged with the current generation, and its result is dropped if
    the session was closed or reset in the meantime.
    """

    def __init__(
        self,
        *,
        user_id: str,
        diagnosis: DiagnosisAdapter,
        documents: DocumentSource | None = None,
        responses: ResponseGenerator | None = None,
        timeout_seconds: float = DEFAULT_ANALYSIS_TIMEOUT_SECONDS,
    ) -> None:
        self.user_id = user_id
        self.timeout_seconds = timeout_seconds
        self._diagnosis = diagnosis
        self._manager = DialogueManager(responses=responses, documents=documents)
        self._generation = 0
        self._pending: asyncio.Task[None] | None = None
        self._closed = False
        self._start_conversation()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def analysis_pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def get_transcript(self) -> list[Message]:
        return list(self._messages)

    def get_state(self) -> ConversationState:
        return self.state.snapshot()

    async def send_user_message(self, text: str) -> None:
        if self._closed:
            raise SessionClosedError("Conversation session has ended.")
        cleaned = (text or "").strip()
        if not cleaned:
            return
        self._append(Author.USER, cleaned)
        try:
            outcome = self._manager.handle_turn(
                self.state,
                cleaned,
                user_id=self.user_id,
                analysis_in_flight=self.analysis_pending,
            )
        except Exception:
            logger.exception("turn processing failed for user %s", self.user_id)
            self._append(Author.ASSISTANT, self._manager.responses.rephrase_fallback())
            return

        self._append(Author.ASSISTANT, outcome.reply)
        if outcome.start_analysis:
            self._start_analysis()

    async def wait_for_analysis(self) -> None:
        task = self._pending
        if task is None or task.done():
            return
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    def close(self) -> None:
        self._closed = True
        self._invalidate()

    def reset(self) -> None:
        self._invalidate()
        self._closed = False
        self._start_conversation()

    # -- internals -------------------------------------------------------------

    def _start_conversation(self) -> None:
        self.state = ConversationState()
        self._messages: list[Message] = []
        self._append(Author.ASSISTANT, OPENING_GREETING)

    def _invalidate(self) -> None:
        self._generation += 1
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    def _append(self, author: Author, text: str, metadata: AnalysisMetadata | None = None) -> Message:
        message = Message(author=author, text=text, metadata=metadata)
        self._messages.append(message)
        return message

    def _start_analysis(self) -> None:
        profile = self.state.user_profile
        request = AnalysisRequest(
            generation=self._generation,
            symptoms=list(self.state.symptoms),
            severity=self.state.context.get("severity"),
            age=profile.age,
            sex=profile.sex,
        )
        self._pending = asyncio.create_task(self._run_analysis(request))

    async def _run_analysis(self, request: AnalysisRequest) -> None:
        evidence = build_evidence(request.symptoms, request.severity)
        try:
            result = await asyncio.wait_for(
                self._diagnosis.analyze(evidence, request.age, request.sex),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("diagnosis timed out after %.1fs for user %s", self.timeout_seconds, self.user_id)
            self._deliver_failure(request)
            return
        except DiagnosisError as exc:
            logger.warning("diagnosis failed for user %s: %s", self.user_id, exc)
            self._deliver_failure(request)
            return
        except Exception:
            logger.exception("unexpected diagnosis error for user %s", self.user_id)
            self._deliver_failure(request)
            return

        if not self._is_current(request):
            logger.info("dropping stale analysis result (generation %s)", request.generation)
            return
        try:
            text, metadata = self._manager.apply_analysis(self.state, result)
        except Exception:
            logger.exception("rendering analysis failed for user %s", self.user_id)
            self._append(Author.ASSISTANT, self._manager.responses.analysis_fallback())
            return
        self._append(Author.ASSISTANT, text, metadata)

    def _deliver_failure(self, request: AnalysisRequest) -> None:
        if not self._is_current(request):
            return
        self._append(Author.ASSISTANT, self._manager.responses.analysis_fallback())

    def _is_current(self, request: AnalysisRequest) -> bool:
        return not self._closed and request.generation == self._generation
