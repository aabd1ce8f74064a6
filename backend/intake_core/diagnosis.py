from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from .models import ConditionScore, Severity

# Numeric scale expected by the diagnosis service for each severity level.
EVIDENCE_SEVERITY = {Severity.LOW: 2, Severity.MEDIUM: 3, Severity.HIGH: 4}


class DiagnosisError(Exception):
    pass


class DocumentFetchError(Exception):
    pass


@dataclass(frozen=True)
class Evidence:
    name: str
    severity: int

    def as_payload(self) -> dict[str, Any]:
        return {"symptom_name": self.name, "severity": self.severity}


@dataclass(frozen=True)
class DiagnosisResult:
    conditions: list[ConditionScore] = field(default_factory=list)
    question: str | None = None
    confidence: float = 0.0
    should_stop: bool = False

    @property
    def follow_up_question(self) -> str | None:
        if self.should_stop:
            return None
        return self.question


@dataclass(frozen=True)
class DocumentRecord:
    title: str
    record_type: str
    date_recorded: str | None = None
    description: str | None = None
    extracted_text: str | None = None


class DiagnosisAdapter(Protocol):
    async def analyze(self, symptoms: list[Evidence], age: int, sex: str) -> DiagnosisResult: ...


class DocumentSource(Protocol):
    def fetch_documents(self, user_id: str) -> list[DocumentRecord]: ...


def build_evidence(symptoms: list[str], severity: Severity | str | None) -> list[Evidence]:
    try:
        level = Severity(severity) if severity else Severity.MEDIUM
    except ValueError:
        level = Severity.MEDIUM
    score = EVIDENCE_SEVERITY[level]
    return [Evidence(name=symptom, severity=score) for symptom in symptoms]


def _clamp_unit(value: Any) -> float:
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return 0.0
    return min(1.0, max(0.0, numeric))


def parse_analysis_payload(payload: Any) -> DiagnosisResult:
    """Turn a ``{success, analysis}`` response body into a DiagnosisResult.

    Raises DiagnosisError when the service reports failure or the body does
    not have the expected shape.
    """
    if not isinstance(payload, dict):
        raise DiagnosisError("Diagnosis service returned a non-object body.")
    if not payload.get("success"):
        detail = payload.get("error") or "Diagnosis service reported failure."
        raise DiagnosisError(str(detail))
    analysis = payload.get("analysis")
    if not isinstance(analysis, dict):
        raise DiagnosisError("Diagnosis service response is missing the analysis.")

    conditions: list[ConditionScore] = []
    for raw in analysis.get("conditions") or []:
        if not isinstance(raw, dict):
            continue
        name = str(raw.get("name") or raw.get("common_name") or "").strip()
        if not name:
            continue
        conditions.append(ConditionScore(name=name, probability=_clamp_unit(raw.get("probability"))))

    question = analysis.get("question")
    question_text: str | None = None
    if isinstance(question, dict):
        question_text = str(question.get("text") or "").strip() or None
    elif isinstance(question, str):
        question_text = question.strip() or None

    return DiagnosisResult(
        conditions=conditions,
        question=question_text,
        confidence=_clamp_unit(analysis.get("confidence_score")),
        should_stop=bool(analysis.get("should_stop", False)),
    )
