from __future__ import annotations

import hashlib
import logging
import os
import re
import uuid
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from intake_core import ConversationSession, SessionClosedError, detect_symptom_keywords
from intake_core.extractor import extract_duration, extract_severity, normalize_text
from intake_core.diagnosis import EVIDENCE_SEVERITY
from intake_tools import HttpDiagnosisClient, MemoryDocumentSource
from memory import MemoryPolicyError, MemoryService, SQLiteMemoryDB

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _load_local_env_file(path: Path) -> None:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not _ENV_KEY_RE.fullmatch(key):
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        os.environ.setdefault(key, value)


def _bootstrap_local_env() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    candidates = [
        repo_root / ".env",
        repo_root / "backend/.env",
    ]
    for candidate in candidates:
        if candidate.exists():
            _load_local_env_file(candidate)


_bootstrap_local_env()

logging.basicConfig(
    level=os.getenv("INTAKE_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _float_env(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("ignoring invalid %s=%r", name, raw)
        return default
    return value if value > 0 else default


class CreateSessionRequest(BaseModel):
    session_key: str | None = None


class ChatMessageRequest(BaseModel):
    message: str


class RecordPayload(BaseModel):
    title: str
    record_type: str = "other"
    description: str | None = None
    extracted_text: str | None = None
    file_name: str | None = None
    date_recorded: str | None = None


class SymptomPayload(BaseModel):
    symptom_text: str
    severity: int
    duration: str | None = None
    notes: str | None = None


class VoiceTranscriptPayload(BaseModel):
    transcript: str = Field(min_length=1)


class IntakeApp:
    def __init__(self) -> None:
        db_path = os.getenv(
            "INTAKE_DB_PATH",
            str((Path(__file__).resolve().parent / "intake.sqlite")),
        )
        self.db = SQLiteMemoryDB(db_path)
        self.memory = MemoryService(self.db)
        self.documents = MemoryDocumentSource(self.memory)
        self.analysis_timeout_seconds = _float_env("DIAGNOSIS_TIMEOUT_SECONDS", 10.0)
        self.diagnosis = HttpDiagnosisClient(
            url=os.getenv("DIAGNOSIS_API_URL"),
            api_key=os.getenv("DIAGNOSIS_API_KEY"),
            timeout_seconds=self.analysis_timeout_seconds,
        )
        self._sessions: dict[tuple[str, str], ConversationSession] = {}

    def open_session(self, user_id: str, session_key: str | None) -> tuple[str, ConversationSession]:
        key = session_key or f"chat-{uuid.uuid4().hex[:16]}"
        existing = self._sessions.get((user_id, key))
        if existing is not None and not existing.closed:
            return key, existing
        session = ConversationSession(
            user_id=user_id,
            diagnosis=self.diagnosis,
            documents=self.documents,
            timeout_seconds=self.analysis_timeout_seconds,
        )
        self._sessions[(user_id, key)] = session
        logger.info("opened chat session %s for %s", key, user_id)
        return key, session

    def get_session(self, user_id: str, session_key: str) -> ConversationSession:
        session = self._sessions.get((user_id, session_key))
        if session is None or session.closed:
            raise HTTPException(status_code=404, detail="Chat session not found.")
        return session

    def end_session(self, user_id: str, session_key: str) -> None:
        session = self._sessions.pop((user_id, session_key), None)
        if session is None:
            raise HTTPException(status_code=404, detail="Chat session not found.")
        session.close()
        logger.info("closed chat session %s for %s", session_key, user_id)


container = IntakeApp()
app = FastAPI(title="Symptom Intake Backend")

allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in allowed_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


_TRUSTED_USER_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._:@-]{1,63}$")
_SESSION_KEY_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._:-]{0,127}$")


def _validated_trusted_user_id(x_user_id: str) -> str:
    candidate = x_user_id.strip()
    if not candidate:
        raise HTTPException(status_code=400, detail="Invalid X-User-Id")
    if not _TRUSTED_USER_ID_RE.fullmatch(candidate):
        raise HTTPException(status_code=400, detail="Invalid X-User-Id")
    return candidate


def get_user_id(auth_header: str | None) -> str:
    if not auth_header:
        if os.getenv("ALLOW_ANON", "false").lower() == "true":
            return "demo-user"
        raise HTTPException(status_code=401, detail="Missing Authorization")
    raw = auth_header.replace("Bearer", "", 1).strip()
    if not raw:
        if os.getenv("ALLOW_ANON", "false").lower() == "true":
            return "demo-user"
        raise HTTPException(status_code=401, detail="Missing Authorization")
    # Bearer tokens are opaque identifiers here; long ones are hashed down.
    if len(raw) > 96:
        return f"token_{hashlib.sha256(raw.encode('utf-8')).hexdigest()[:24]}"
    return raw


def resolve_user_id(authorization: str | None, x_user_id: str | None) -> str:
    if x_user_id is not None:
        return _validated_trusted_user_id(x_user_id)
    return get_user_id(authorization)


def _validated_session_key(session_key: str | None) -> str | None:
    if session_key is None:
        return None
    candidate = session_key.strip()
    if not _SESSION_KEY_RE.fullmatch(candidate):
        raise HTTPException(status_code=400, detail="Invalid session key")
    return candidate


def _session_view(session_key: str, session: ConversationSession) -> dict[str, Any]:
    return {
        "session_key": session_key,
        "transcript": [message.as_dict() for message in session.get_transcript()],
        "state": session.get_state().as_dict(),
        "analysis_pending": session.analysis_pending,
    }


@app.post("/chat/sessions")
def create_session(
    payload: CreateSessionRequest | None = None,
    authorization: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_id)
    requested = _validated_session_key(payload.session_key if payload else None)
    key, session = container.open_session(user_id, requested)
    return _session_view(key, session)


@app.post("/chat/sessions/{session_key}/messages")
async def post_message(
    session_key: str,
    payload: ChatMessageRequest,
    wait: bool = False,
    authorization: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_id)
    session = container.get_session(user_id, session_key)
    if not payload.message.strip():
        raise HTTPException(status_code=400, detail="Message is empty.")
    try:
        await session.send_user_message(payload.message)
        if wait:
            await session.wait_for_analysis()
    except SessionClosedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _session_view(session_key, session)


@app.get("/chat/sessions/{session_key}/transcript")
def get_transcript(
    session_key: str,
    authorization: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_id)
    session = container.get_session(user_id, session_key)
    return {"items": [message.as_dict() for message in session.get_transcript()]}


@app.get("/chat/sessions/{session_key}/state")
def get_state(
    session_key: str,
    authorization: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_id)
    session = container.get_session(user_id, session_key)
    return session.get_state().as_dict() | {"analysis_pending": session.analysis_pending}


@app.post("/chat/sessions/{session_key}/reset")
async def reset_session(
    session_key: str,
    authorization: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_id)
    session = container.get_session(user_id, session_key)
    session.reset()
    return _session_view(session_key, session)


@app.delete("/chat/sessions/{session_key}")
async def delete_session(
    session_key: str,
    authorization: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_id)
    container.end_session(user_id, session_key)
    return {"ok": True}


@app.post("/records")
def create_record(
    payload: RecordPayload,
    authorization: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_id)
    try:
        record = container.memory.add_record(
            user_id=user_id,
            title=payload.title,
            record_type=payload.record_type,
            description=payload.description,
            extracted_text=payload.extracted_text,
            file_name=payload.file_name,
            date_recorded=payload.date_recorded,
        )
    except MemoryPolicyError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return record


@app.get("/records")
def list_records(
    authorization: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_id)
    return {"items": container.memory.fetch_documents(user_id)}


@app.post("/symptoms")
def post_symptoms(
    payload: SymptomPayload,
    authorization: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_id)
    try:
        entry = container.memory.log_symptom(
            user_id=user_id,
            symptom_name=payload.symptom_text,
            severity=payload.severity,
            source="manual",
            description=payload.notes,
            duration=payload.duration,
        )
    except MemoryPolicyError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"ok": True, "item": entry}


@app.post("/symptoms/voice")
def post_voice_symptoms(
    payload: VoiceTranscriptPayload,
    authorization: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_id)
    detected = detect_symptom_keywords(payload.transcript)
    normalized = normalize_text(payload.transcript)
    severity = EVIDENCE_SEVERITY[extract_severity(normalized)]
    duration = extract_duration(normalized)
    logged = [
        container.memory.log_symptom(
            user_id=user_id,
            symptom_name=symptom,
            severity=severity,
            source="voice",
            description=payload.transcript[:400],
            duration=duration,
        )
        for symptom in detected
    ]
    return {"detected": detected, "items": logged}


@app.get("/logs/symptoms")
def logs_symptoms(
    limit: int = 20,
    authorization: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
):
    user_id = resolve_user_id(authorization, x_user_id)
    return {"items": container.memory.symptom_logs(user_id, limit)}
