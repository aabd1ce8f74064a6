from __future__ import annotations

import re
from typing import Callable

from . import patterns
from .intent import classify_intent
from .models import ExtractionResult, Severity

SymptomMatcher = Callable[[str], list[str]]

_WHITESPACE_RE = re.compile(r"\s+")
_EDGE_PUNCTUATION = " ,;:-'\""


def normalize_text(text: str) -> str:
    return (text or "").replace("’", "'").replace("‘", "'").strip().lower()


def extract_age(text: str) -> int | None:
    for pattern in patterns.AGE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        age = int(match.group(1))
        if patterns.MIN_AGE <= age <= patterns.MAX_AGE:
            return age
        return None
    return None


def extract_sex(text: str) -> str | None:
    for pattern in patterns.SEX_PATTERNS:
        match = pattern.search(text)
        if match:
            return patterns.SEX_ALIASES[match.group(1)]
    return None


def match_trigger_phrases(text: str) -> list[str]:
    return [match.group(0) for match in patterns.TRIGGER_PHRASE_PATTERN.finditer(text)]


def match_body_parts(text: str) -> list[str]:
    return [match.group(1) for match in patterns.BODY_PART_PATTERN.finditer(text)]


def match_vocabulary(text: str) -> list[str]:
    return [match.group(0) for match in patterns.VOCABULARY_PATTERN.finditer(text)]


SYMPTOM_MATCHERS: tuple[SymptomMatcher, ...] = (
    match_trigger_phrases,
    match_body_parts,
    match_vocabulary,
)


def clean_symptom_span(span: str) -> str:
    stripped = patterns.STRIP_PATTERN.sub(" ", span)
    return _WHITESPACE_RE.sub(" ", stripped).strip(_EDGE_PUNCTUATION)


def merge_symptom_spans(spans: list[str]) -> list[str]:
    symptoms: list[str] = []
    seen: set[str] = set()
    for span in spans:
        cleaned = clean_symptom_span(span)
        if len(cleaned) < patterns.MIN_SYMPTOM_LENGTH:
            continue
        key = cleaned.lower()
        if key in seen:
            continue
        seen.add(key)
        symptoms.append(cleaned)
    return symptoms


def extract_symptoms(text: str) -> list[str]:
    spans: list[str] = []
    for matcher in SYMPTOM_MATCHERS:
        spans.extend(matcher(text))
    return merge_symptom_spans(spans)


def match_severity(text: str) -> Severity | None:
    matched: Severity | None = None
    for level, pattern in patterns.SEVERITY_PATTERNS.items():
        if pattern.search(text):
            matched = level
    return matched


def extract_severity(text: str) -> Severity:
    return match_severity(text) or patterns.DEFAULT_SEVERITY


def extract_duration(text: str) -> str | None:
    match = patterns.DURATION_PATTERN.search(text)
    return match.group(0) if match else None


def detect_symptom_keywords(transcript: str) -> list[str]:
    lowered = (transcript or "").lower()
    return [keyword for keyword in patterns.VOICE_SYMPTOM_KEYWORDS if keyword in lowered]


def extract(text: str) -> ExtractionResult:
    """Run every matcher over one utterance.

    Absent fields come back as ``None``; odd input never raises here.
    """
    normalized = normalize_text(text)
    severity = match_severity(normalized)
    return ExtractionResult(
        symptoms=extract_symptoms(normalized),
        severity=severity or patterns.DEFAULT_SEVERITY,
        severity_stated=severity is not None,
        intent=classify_intent(normalized),
        age=extract_age(normalized),
        sex=extract_sex(normalized),
        duration=extract_duration(normalized),
    )
