"""Pattern tables for utterance extraction and intent classification.

Word lists live here as data so they can be audited in one place; the
matchers in ``extractor`` and ``intent`` only compile and apply them.
All patterns run against normalized (lower-cased) text.
"""

from __future__ import annotations

import re

from .models import Intent, Severity


def _alternation(words: tuple[str, ...]) -> str:
    ordered = sorted(words, key=len, reverse=True)
    return "|".join(re.escape(word) for word in ordered)


# -- profile -----------------------------------------------------------------

AGE_PATTERNS = (
    re.compile(r"\b(?:i am|i'm|age)\s*:?\s*(\d{1,3})\b"),
    re.compile(r"\b(\d{1,3})\s*(?:years?[\s-]old|yrs?\s+old|yo|y/o)\b"),
)
MIN_AGE = 1
MAX_AGE = 120

SEX_WORDS = ("male", "female", "man", "woman")
SEX_ALIASES = {"male": "male", "female": "female", "man": "male", "woman": "female"}
SEX_PATTERNS = (
    re.compile(r"\b(?:i am|i'm)\s+(?:an?\s+)?(" + _alternation(SEX_WORDS) + r")\b"),
    re.compile(r"\b(" + _alternation(SEX_WORDS) + r")\b"),
)

# -- symptoms ----------------------------------------------------------------

SYMPTOM_TRIGGERS = (
    "i've been having",
    "i have",
    "experiencing",
    "feeling",
    "suffering from",
)
POSSESSIVE_WORDS = ("my", "the")
SYMPTOM_VERBS = ("hurts", "aches", "pains", "is sore", "feels", "bothers")
ARTICLES = ("a", "an")

TRIGGER_PHRASE_PATTERN = re.compile(
    r"\b(?:" + _alternation(SYMPTOM_TRIGGERS) + r")\s+([^.!?]*)"
)
BODY_PART_PATTERN = re.compile(
    r"\b(?:" + _alternation(POSSESSIVE_WORDS) + r")\s+([^.!?]*?)\s+(?:"
    + _alternation(SYMPTOM_VERBS)
    + r")\b"
)

SYMPTOM_VOCABULARY = (
    "headache",
    "migraine",
    "fever",
    "cough",
    "nausea",
    "vomiting",
    "diarrhea",
    "dizziness",
    "dizzy",
    "fatigue",
    "tired",
    "chills",
    "rash",
    "congestion",
    "insomnia",
    "chest pain",
    "stomach ache",
    "back pain",
    "sore throat",
    "runny nose",
    "shortness of breath",
    "joint pain",
)
VOCABULARY_PATTERN = re.compile(r"\b(?:" + _alternation(SYMPTOM_VOCABULARY) + r")\b")

# Shared cleanup table: every captured span loses these words.
STRIP_PATTERN = re.compile(
    r"\b(?:"
    + _alternation(SYMPTOM_TRIGGERS + POSSESSIVE_WORDS + SYMPTOM_VERBS + ARTICLES)
    + r")\b"
)
MIN_SYMPTOM_LENGTH = 3

# Keywords spotted in free speech transcripts, in reporting order.
VOICE_SYMPTOM_KEYWORDS = (
    "pain",
    "ache",
    "headache",
    "fever",
    "cough",
    "nausea",
    "dizzy",
    "tired",
    "fatigue",
)

# -- severity / duration -----------------------------------------------------

# Iteration order matters: the last matching set wins, so the most urgent
# level is tested last.
SEVERITY_KEYWORDS: dict[Severity, tuple[str, ...]] = {
    Severity.LOW: ("mild", "slight", "minor", "little", "light"),
    Severity.MEDIUM: ("moderate", "noticeable", "bothersome", "uncomfortable", "bad"),
    Severity.HIGH: (
        "severe",
        "terrible",
        "excruciating",
        "unbearable",
        "intense",
        "sharp",
        "extreme",
        "worst",
    ),
}
SEVERITY_PATTERNS = {
    level: re.compile(r"\b(?:" + _alternation(words) + r")\b")
    for level, words in SEVERITY_KEYWORDS.items()
}
DEFAULT_SEVERITY = Severity.MEDIUM

DURATION_PATTERN = re.compile(r"(?:for\s+)?\d+\s+(?:hour|day|week|month|minute)s?\b")

# -- intent ------------------------------------------------------------------

INTENT_RULES: tuple[tuple[Intent, re.Pattern[str]], ...] = (
    (Intent.GREETING, re.compile(r"\b(?:hello|hi|hey|good morning|good afternoon|good evening)\b")),
    (
        Intent.CONFIRMATION,
        re.compile(r"\b(?:yes|yeah|yep|correct|that's right|sure|ok|okay|go ahead)\b"),
    ),
    (Intent.DENIAL, re.compile(r"\b(?:no|nope|incorrect|wrong|not really)\b")),
    (Intent.SEEKING_HELP, re.compile(r"\b(?:help|what should i do|advice|recommend)")),
    (Intent.SYMPTOM_REPORT, re.compile(r"\b(?:pain|hurt|ache|sick|ill|symptom)")),
)

# -- documents ---------------------------------------------------------------

DOCUMENT_KEYWORDS = (
    "document",
    "record",
    "history",
    "report",
    "past",
    "previous",
    "uploaded",
    "file",
)
DOCUMENT_PATTERN = re.compile(r"\b(?:" + _alternation(DOCUMENT_KEYWORDS) + r")")
