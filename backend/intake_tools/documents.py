from __future__ import annotations

import sqlite3
from typing import Any

from intake_core.diagnosis import DocumentFetchError, DocumentRecord
from memory import MemoryPolicyError, MemoryService


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class MemoryDocumentSource:
    def __init__(self, memory: MemoryService) -> None:
        self.memory = memory

    def fetch_documents(self, user_id: str) -> list[DocumentRecord]:
        try:
            rows = self.memory.fetch_documents(user_id)
        except MemoryPolicyError as exc:
            raise DocumentFetchError(str(exc)) from exc
        except sqlite3.Error as exc:
            raise DocumentFetchError(f"Record lookup failed: {exc}") from exc
        return [
            DocumentRecord(
                title=row.get("title") or "Untitled record",
                record_type=row.get("record_type") or "other",
                date_recorded=_optional_text(row.get("date_recorded")),
                description=_optional_text(row.get("description")),
                extracted_text=_optional_text(row.get("extracted_text")),
            )
            for row in rows
        ]
