from __future__ import annotations

import uuid
from typing import Any

from .database import SQLiteMemoryDB
from .time_utils import to_iso, utc_now


class RecordStore:
    def __init__(self, db: SQLiteMemoryDB) -> None:
        self._db = db

    def create_record(
        self,
        *,
        user_id: str,
        title: str,
        record_type: str,
        description: str | None = None,
        extracted_text: str | None = None,
        file_name: str | None = None,
        date_recorded: str | None = None,
    ) -> dict[str, Any]:
        now = to_iso(utc_now())
        record_id = f"rec_{uuid.uuid4().hex}"
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO medical_records (
                  id, user_id, title, record_type, description, extracted_text,
                  file_name, date_recorded, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record_id,
                    user_id,
                    title,
                    record_type,
                    description,
                    extracted_text,
                    file_name,
                    date_recorded,
                    now,
                    now,
                ),
            )
        return {
            "id": record_id,
            "title": title,
            "record_type": record_type,
            "description": description,
            "extracted_text": extracted_text,
            "file_name": file_name,
            "date_recorded": date_recorded,
            "created_at": now,
        }

    def list_records(self, user_id: str, limit: int = 10) -> list[dict[str, Any]]:
        with self._db.connection() as conn:
            return [
                dict(row)
                for row in conn.execute(
                    """
                    SELECT id, title, record_type, description, extracted_text,
                           file_name, date_recorded, created_at
                    FROM medical_records
                    WHERE user_id = ?
                    ORDER BY created_at DESC, rowid DESC
                    LIMIT ?
                    """,
                    (user_id, max(1, limit)),
                ).fetchall()
            ]

    def log_symptom(
        self,
        *,
        user_id: str,
        symptom_name: str,
        severity: int,
        source: str,
        description: str | None = None,
        duration: str | None = None,
        recorded_at: str | None = None,
    ) -> dict[str, Any]:
        now = to_iso(utc_now())
        log_id = f"sym_{uuid.uuid4().hex}"
        recorded = recorded_at or now
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO symptom_logs (
                  id, user_id, symptom_name, description, severity, duration, source, recorded_at, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (log_id, user_id, symptom_name, description, severity, duration, source, recorded, now),
            )
        return {
            "id": log_id,
            "symptom_name": symptom_name,
            "description": description,
            "severity": severity,
            "duration": duration,
            "source": source,
            "recorded_at": recorded,
        }

    def get_symptom_logs(self, user_id: str, limit: int = 20) -> list[dict[str, Any]]:
        with self._db.connection() as conn:
            return [
                dict(row)
                for row in conn.execute(
                    """
                    SELECT id, symptom_name, description, severity, duration, source, recorded_at
                    FROM symptom_logs
                    WHERE user_id = ?
                    ORDER BY recorded_at DESC, rowid DESC
                    LIMIT ?
                    """,
                    (user_id, max(1, limit)),
                ).fetchall()
            ]
