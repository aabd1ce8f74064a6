from __future__ import annotations

import re


class MemoryPolicyError(Exception):
    pass


class MemoryPolicyGuard:
    _RECORD_TYPES = {
        "lab_report",
        "imaging_report",
        "prescription",
        "clinical_note",
        "discharge_summary",
        "vaccination",
        "other",
    }
    _SYMPTOM_SOURCES = {"manual", "voice", "chat"}
    _DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")

    def ensure_user_id(self, user_id: str) -> None:
        if not user_id or len(user_id) > 128:
            raise MemoryPolicyError("Invalid user scope.")

    def normalize_record_type(self, record_type: str | None) -> str:
        normalized = (record_type or "other").strip().lower().replace(" ", "_")
        if normalized not in self._RECORD_TYPES:
            raise MemoryPolicyError(f"Unsupported record type: {record_type}")
        return normalized

    def ensure_record_date(self, date_recorded: str | None) -> None:
        if date_recorded and not self._DATE_RE.match(date_recorded):
            raise MemoryPolicyError("date_recorded must start with YYYY-MM-DD.")

    def ensure_symptom(self, symptom_name: str, severity: int, source: str) -> None:
        if not symptom_name.strip():
            raise MemoryPolicyError("Symptom name is required.")
        if not (1 <= severity <= 5):
            raise MemoryPolicyError("Severity must be between 1 and 5.")
        if source not in self._SYMPTOM_SOURCES:
            raise MemoryPolicyError("Invalid source.")
