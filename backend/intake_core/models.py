from __future__ import annotations

import copy
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from memory.time_utils import to_iso, utc_now

PREVIOUS_QUESTIONS_CAPACITY = 5


class Stage(str, Enum):
    GREETING = "greeting"
    SYMPTOM_GATHERING = "symptom_gathering"
    CLARIFICATION = "clarification"
    ANALYSIS = "analysis"
    RECOMMENDATION = "recommendation"


class Intent(str, Enum):
    GREETING = "greeting"
    CONFIRMATION = "confirmation"
    DENIAL = "denial"
    SEEKING_HELP = "seeking_help"
    SYMPTOM_REPORT = "symptom_report"
    PROFILE_INFO = "profile_info"
    GENERAL = "general"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Urgency(str, Enum):
    ROUTINE = "routine"
    SCHEDULE_SOON = "schedule_soon"
    SEEK_IMMEDIATE_CARE = "seek_immediate_care"


class Author(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class UserProfile:
    age: int | None = None
    sex: str | None = None

    def merge(self, age: int | None, sex: str | None) -> None:
        # A value is only ever replaced by another value, never cleared.
        if age is not None:
            self.age = age
        if sex is not None:
            self.sex = sex

    def missing_fields(self) -> list[str]:
        missing: list[str] = []
        if self.age is None:
            missing.append("age")
        if self.sex is None:
            missing.append("sex")
        return missing

    def is_complete(self) -> bool:
        return not self.missing_fields()

    def has_any(self) -> bool:
        return self.age is not None or self.sex is not None


@dataclass
class ExtractionResult:
    symptoms: list[str] = field(default_factory=list)
    severity: Severity = Severity.MEDIUM
    severity_stated: bool = False
    intent: Intent = Intent.GENERAL
    age: int | None = None
    sex: str | None = None
    duration: str | None = None


@dataclass(frozen=True)
class ConditionScore:
    name: str
    probability: float

    def as_dict(self) -> dict[str, Any]:
        return {"name": self.name, "probability": self.probability}


@dataclass(frozen=True)
class AnalysisMetadata:
    conditions: list[ConditionScore]
    urgency: Urgency
    confidence: float
    follow_up_question: str | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "conditions": [condition.as_dict() for condition in self.conditions],
            "urgency": self.urgency.value,
            "confidence": self.confidence,
        }
        if self.follow_up_question:
            payload["follow_up_question"] = self.follow_up_question
        return payload


@dataclass(frozen=True)
class Message:
    author: Author
    text: str
    metadata: AnalysisMetadata | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=utc_now)

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "author": self.author.value,
            "text": self.text,
            "timestamp": to_iso(self.timestamp),
        }
        if self.metadata is not None:
            payload["metadata"] = self.metadata.as_dict()
        return payload


@dataclass
class ConversationState:
    stage: Stage = Stage.GREETING
    symptoms: list[str] = field(default_factory=list)
    context: dict[str, Any] = field(default_factory=dict)
    previous_questions: deque[str] = field(
        default_factory=lambda: deque(maxlen=PREVIOUS_QUESTIONS_CAPACITY)
    )
    user_profile: UserProfile = field(default_factory=UserProfile)

    def add_symptoms(self, candidates: list[str]) -> list[str]:
        """Append symptoms not already present (case-insensitive); return the ones added."""
        known = {symptom.lower() for symptom in self.symptoms}
        added: list[str] = []
        for candidate in candidates:
            key = candidate.lower()
            if key in known:
                continue
            known.add(key)
            self.symptoms.append(candidate)
            added.append(candidate)
        return added

    def remember_utterance(self, text: str) -> None:
        self.previous_questions.append(text)

    def snapshot(self) -> ConversationState:
        return copy.deepcopy(self)

    def as_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "symptoms": list(self.symptoms),
            "context": copy.deepcopy(self.context),
            "previous_questions": list(self.previous_questions),
            "user_profile": {"age": self.user_profile.age, "sex": self.user_profile.sex},
        }
