from __future__ import annotations

from typing import Any

from .database import SQLiteMemoryDB
from .memory_policy_guard import MemoryPolicyError, MemoryPolicyGuard
from .record_store import RecordStore

DOCUMENT_FETCH_LIMIT = 10


class MemoryService:
    def __init__(self, db: SQLiteMemoryDB) -> None:
        self.db = db
        self.guard = MemoryPolicyGuard()
        self.records = RecordStore(db)

    def add_record(
        self,
        *,
        user_id: str,
        title: str,
        record_type: str | None,
        description: str | None = None,
        extracted_text: str | None = None,
        file_name: str | None = None,
        date_recorded: str | None = None,
    ) -> dict[str, Any]:
        self.guard.ensure_user_id(user_id)
        cleaned_title = (title or "").strip()
        if not cleaned_title:
            raise MemoryPolicyError("Record title is required.")
        normalized_type = self.guard.normalize_record_type(record_type)
        self.guard.ensure_record_date(date_recorded)
        return self.records.create_record(
            user_id=user_id,
            title=cleaned_title,
            record_type=normalized_type,
            description=description,
            extracted_text=extracted_text,
            file_name=file_name,
            date_recorded=date_recorded,
        )

    def fetch_documents(self, user_id: str, limit: int = DOCUMENT_FETCH_LIMIT) -> list[dict[str, Any]]:
        self.guard.ensure_user_id(user_id)
        return self.records.list_records(user_id, min(limit, DOCUMENT_FETCH_LIMIT))

    def log_symptom(
        self,
        *,
        user_id: str,
        symptom_name: str,
        severity: int,
        source: str = "manual",
        description: str | None = None,
        duration: str | None = None,
        recorded_at: str | None = None,
    ) -> dict[str, Any]:
        self.guard.ensure_user_id(user_id)
        self.guard.ensure_symptom(symptom_name, severity, source)
        return self.records.log_symptom(
            user_id=user_id,
            symptom_name=symptom_name.strip(),
            severity=severity,
            source=source,
            description=description,
            duration=duration,
            recorded_at=recorded_at,
        )

    def symptom_logs(self, user_id: str, limit: int = 20) -> list[dict[str, Any]]:
        self.guard.ensure_user_id(user_id)
        return self.records.get_symptom_logs(user_id, limit)
