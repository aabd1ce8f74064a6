#!/usr/bin/env python3
from __future__ import annotations

import importlib
import json
import os
import sys
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi.testclient import TestClient


@dataclass
class Scenario:
  name: str
  turns: list[str]
  expected_stage: str
  expected_urgency: str | None = None
  records: list[dict[str, Any]] = field(default_factory=list)


class ScriptedDiagnosis:
  """Offline diagnosis stand-in so smoke runs never leave the machine."""

  def __init__(self, intake_core: Any) -> None:
    self._core = intake_core

  async def analyze(self, symptoms, age, sex):
    names = [item.name for item in symptoms]
    top = 0.35 if len(names) == 1 else 0.5
    return self._core.DiagnosisResult(
      conditions=[
        self._core.ConditionScore("Viral infection", top),
        self._core.ConditionScore("Tension headache", 0.2),
      ],
      confidence=0.6,
    )


def run() -> int:
  repo_root = Path(__file__).resolve().parents[1]
  backend_dir = repo_root / "backend"
  if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

  # Smoke runs use a throwaway database unless one is configured.
  os.environ.setdefault("INTAKE_DB_PATH", str(Path(tempfile.mkdtemp()) / "intake-smoke.sqlite"))

  backend_module = importlib.import_module("main")
  backend_module = importlib.reload(backend_module)
  intake_core = importlib.import_module("intake_core")
  use_live_diagnosis = os.getenv("INTAKE_SMOKE_LIVE_DIAGNOSIS", "false").lower() == "true"
  if not use_live_diagnosis:
    backend_module.container.diagnosis = ScriptedDiagnosis(intake_core)

  run_id = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
  headers = {"Authorization": "Bearer smoke-user"}

  scenarios = [
    Scenario(
      name="Single Turn Intake Then Confirmation",
      turns=["I'm 34 years old male and I have a headache", "yes"],
      expected_stage="recommendation",
      expected_urgency="routine",
    ),
    Scenario(
      name="Profile Collected Across Turns",
      turns=["hello", "I'm 52", "female", "I have a cough", "also a fever", "yes"],
      expected_stage="recommendation",
      expected_urgency="schedule_soon",
    ),
    Scenario(
      name="Red Flag Escalation",
      turns=["I'm 60 male with chest pain", "yes"],
      expected_stage="recommendation",
      expected_urgency="seek_immediate_care",
    ),
    Scenario(
      name="Record Lookup Mid Conversation",
      turns=["I'm 45 female and I have nausea", "can you check my previous records?"],
      expected_stage="symptom_gathering",
      records=[
        {
          "title": "Metabolic panel",
          "record_type": "lab_report",
          "date_recorded": "2026-02-11",
          "description": "Electrolytes within range.",
        }
      ],
    ),
  ]

  results: list[dict[str, Any]] = []

  with TestClient(backend_module.app) as client:
    for index, scenario in enumerate(scenarios):
      session_key = f"smoke-{run_id}-{index}"
      scenario_result: dict[str, Any] = {"name": scenario.name, "session_key": session_key}

      for record in scenario.records:
        created = client.post("/records", headers=headers, json=record)
        if created.status_code != 200:
          scenario_result["pass"] = False
          scenario_result["error"] = f"/records returned {created.status_code}"
          break
      if scenario_result.get("error"):
        results.append(scenario_result)
        continue

      opened = client.post("/chat/sessions", headers=headers, json={"session_key": session_key})
      if opened.status_code != 200:
        scenario_result["pass"] = False
        scenario_result["error"] = f"/chat/sessions returned {opened.status_code}"
        results.append(scenario_result)
        continue

      payload: dict[str, Any] = opened.json()
      for turn in scenario.turns:
        response = client.post(
          f"/chat/sessions/{session_key}/messages",
          headers=headers,
          params={"wait": "true"},
          json={"message": turn},
        )
        if response.status_code != 200:
          scenario_result["error"] = f"turn {turn!r} returned {response.status_code}"
          break
        payload = response.json()

      state = payload.get("state") or {}
      transcript = payload.get("transcript") or []
      analysis = next(
        (item for item in reversed(transcript) if isinstance(item.get("metadata"), dict)),
        None,
      )
      urgency = analysis["metadata"].get("urgency") if analysis else None

      scenario_result["stage"] = state.get("stage")
      scenario_result["urgency"] = urgency
      scenario_result["symptoms"] = state.get("symptoms")
      scenario_result["last_reply"] = (transcript[-1]["text"] if transcript else "")[:240]
      scenario_result["pass"] = (
        not scenario_result.get("error")
        and state.get("stage") == scenario.expected_stage
        and (scenario.expected_urgency is None or urgency == scenario.expected_urgency)
      )
      if not scenario_result["pass"] and not scenario_result.get("error"):
        scenario_result["error"] = (
          f"Expected stage {scenario.expected_stage!r}/urgency {scenario.expected_urgency!r}, "
          f"got {state.get('stage')!r}/{urgency!r}"
        )
      results.append(scenario_result)

  passed = sum(1 for item in results if item.get("pass"))
  failed = len(results) - passed
  timestamp = datetime.now(timezone.utc).isoformat()

  report_lines = [
    "# Symptom Intake Smoke Report",
    "",
    f"- Timestamp (UTC): `{timestamp}`",
    f"- Live diagnosis: `{use_live_diagnosis}`",
    f"- Total scenarios: `{len(results)}`",
    f"- Passed: `{passed}`",
    f"- Failed: `{failed}`",
    "",
    "## Scenario Results",
    "",
  ]

  for item in results:
    status = "PASS" if item.get("pass") else "FAIL"
    report_lines.append(f"### {status} - {item['name']}")
    report_lines.append(f"- Final stage: `{item.get('stage')}`")
    report_lines.append(f"- Urgency: `{item.get('urgency')}`")
    if item.get("error"):
      report_lines.append(f"- Error: `{item['error']}`")
    report_lines.append("- Symptoms:")
    report_lines.append("```json")
    report_lines.append(json.dumps(item.get("symptoms"), indent=2, ensure_ascii=True))
    report_lines.append("```")
    preview = item.get("last_reply") or ""
    if preview:
      report_lines.append(f"- Last reply: `{preview}`")
    report_lines.append("")

  report_path = repo_root / "INTAKE_SMOKE_REPORT.md"
  report_path.write_text("\n".join(report_lines), encoding="utf-8")
  print(f"Wrote report: {report_path}")
  print(f"Passed {passed}/{len(results)} scenarios.")

  return 0 if failed == 0 else 1


if __name__ == "__main__":
  raise SystemExit(run())
