from __future__ import annotations

import asyncio
import importlib
import sys
from pathlib import Path
from typing import Callable

import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from intake_core import ConditionScore, DiagnosisError, DiagnosisResult, ResponseGenerator  # noqa: E402


class FakeDiagnosis:
    """Scripted stand-in for the diagnosis service; records every call."""

    def __init__(
        self,
        result: DiagnosisResult | None = None,
        *,
        error: Exception | None = None,
        delay: float = 0.0,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.result = result or DiagnosisResult(
            conditions=[
                ConditionScore("Tension headache", 0.55),
                ConditionScore("Migraine", 0.3),
            ],
            confidence=0.6,
        )
        self.error = error
        self.delay = delay
        self.gate = gate
        self.calls: list[tuple[list, int, str]] = []

    async def analyze(self, symptoms, age, sex):
        self.calls.append((list(symptoms), age, sex))
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


class FakeDocuments:
    def __init__(self, documents=None, *, error: Exception | None = None) -> None:
        self.documents = list(documents or [])
        self.error = error
        self.requested: list[str] = []

    def fetch_documents(self, user_id):
        self.requested.append(user_id)
        if self.error is not None:
            raise self.error
        return list(self.documents)


def first_choice(options):
    return options[0]


@pytest.fixture
def fake_diagnosis() -> FakeDiagnosis:
    return FakeDiagnosis()


@pytest.fixture
def failing_diagnosis() -> FakeDiagnosis:
    return FakeDiagnosis(error=DiagnosisError("provider unavailable"))


@pytest.fixture
def responses() -> ResponseGenerator:
    return ResponseGenerator(choose=first_choice)


@pytest.fixture
def backend_module(tmp_path, monkeypatch):
    db_path = tmp_path / "intake-test.sqlite"
    monkeypatch.setenv("INTAKE_DB_PATH", str(db_path))
    monkeypatch.setenv("ALLOW_ANON", "false")
    # Keep CI deterministic; tests that need a diagnosis swap in a fake.
    monkeypatch.setenv("DIAGNOSIS_API_URL", "")

    if "main" in sys.modules:
        module = importlib.reload(sys.modules["main"])
    else:
        module = importlib.import_module("main")
    return module


@pytest.fixture
def client(backend_module):
    with TestClient(backend_module.app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers() -> Callable[[str], dict[str, str]]:
    def _make(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {user_id}"}

    return _make
