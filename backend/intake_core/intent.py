from __future__ import annotations

from . import patterns
from .models import Intent


def _mentions_profile(text: str) -> bool:
    return any(pattern.search(text) for pattern in patterns.AGE_PATTERNS + patterns.SEX_PATTERNS)


def classify_intent(text: str) -> Intent:
    """Map normalized text to an intent; the first rule that matches wins."""
    for intent, pattern in patterns.INTENT_RULES:
        if pattern.search(text):
            return intent
    if _mentions_profile(text):
        return Intent.PROFILE_INFO
    return Intent.GENERAL
