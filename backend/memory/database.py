from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


class SQLiteMemoryDB:
    def __init__(self, db_path: str) -> None:
        self._path = Path(db_path).expanduser().resolve()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_schema()

    @property
    def path(self) -> str:
        return str(self._path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._path), timeout=30.0, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._lock, self.connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS medical_records (
                  id TEXT PRIMARY KEY,
                  user_id TEXT NOT NULL,
                  title TEXT NOT NULL,
                  record_type TEXT NOT NULL,
                  description TEXT,
                  extracted_text TEXT,
                  file_name TEXT,
                  date_recorded TEXT,
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS symptom_logs (
                  id TEXT PRIMARY KEY,
                  user_id TEXT NOT NULL,
                  symptom_name TEXT NOT NULL,
                  description TEXT,
                  severity INTEGER NOT NULL,
                  duration TEXT,
                  source TEXT NOT NULL,
                  recorded_at TEXT NOT NULL,
                  created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_medical_records_user_created
                  ON medical_records(user_id, created_at DESC);
                CREATE INDEX IF NOT EXISTS idx_symptom_logs_user_recorded
                  ON symptom_logs(user_id, recorded_at DESC);
                """
            )
