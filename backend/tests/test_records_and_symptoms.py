from __future__ import annotations

import pytest

from intake_core import DocumentFetchError
from intake_tools import MemoryDocumentSource
from memory import MemoryPolicyError


def test_records_are_newest_first_and_capped(backend_module):
    memory = backend_module.container.memory
    for index in range(12):
        memory.add_record(user_id="user-a", title=f"Record {index}", record_type="clinical_note")
    memory.add_record(user_id="user-b", title="Other user", record_type="other")

    rows = memory.fetch_documents("user-a")
    assert len(rows) == 10
    assert [row["title"] for row in rows[:2]] == ["Record 11", "Record 10"]
    assert all(row["title"] != "Other user" for row in rows)


def test_record_validation(backend_module):
    memory = backend_module.container.memory
    with pytest.raises(MemoryPolicyError, match="title"):
        memory.add_record(user_id="user-a", title="  ", record_type="other")
    with pytest.raises(MemoryPolicyError, match="record type"):
        memory.add_record(user_id="user-a", title="Scan", record_type="selfie")
    with pytest.raises(MemoryPolicyError, match="YYYY-MM-DD"):
        memory.add_record(user_id="user-a", title="Scan", record_type="other", date_recorded="May 4")


def test_document_source_maps_rows_and_errors(backend_module):
    memory = backend_module.container.memory
    memory.add_record(
        user_id="user-a",
        title="Discharge letter",
        record_type="discharge summary",
        extracted_text="  Patient stable on discharge.  ",
    )
    source = MemoryDocumentSource(memory)

    [record] = source.fetch_documents("user-a")
    assert record.title == "Discharge letter"
    assert record.record_type == "discharge_summary"
    assert record.extracted_text == "Patient stable on discharge."
    assert record.description is None

    with pytest.raises(DocumentFetchError):
        source.fetch_documents("")


def test_records_endpoint_rejects_bad_payload(client, auth_headers):
    response = client.post(
        "/records",
        headers=auth_headers("user-a"),
        json={"title": "X-ray", "record_type": "polaroid"},
    )
    assert response.status_code == 400


def test_manual_symptom_logging(client, auth_headers):
    headers = auth_headers("user-a")
    response = client.post(
        "/symptoms",
        headers=headers,
        json={"symptom_text": "knee pain", "severity": 4, "duration": "2 days", "notes": "after running"},
    )
    assert response.status_code == 200
    item = response.json()["item"]
    assert item["id"].startswith("sym_")
    assert item["source"] == "manual"

    bad = client.post("/symptoms", headers=headers, json={"symptom_text": "knee pain", "severity": 9})
    assert bad.status_code == 400

    logs = client.get("/logs/symptoms", headers=headers).json()["items"]
    assert [log["symptom_name"] for log in logs] == ["knee pain"]


def test_voice_transcript_logs_detected_keywords(client, auth_headers):
    headers = auth_headers("user-a")
    response = client.post(
        "/symptoms/voice",
        headers=headers,
        json={"transcript": "I've had a severe headache and a cough for 2 days"},
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["detected"] == ["ache", "headache", "cough"]
    assert {item["severity"] for item in payload["items"]} == {4}
    assert {item["duration"] for item in payload["items"]} == {"for 2 days"}
    assert {item["source"] for item in payload["items"]} == {"voice"}

    logs = client.get("/logs/symptoms", headers=headers).json()["items"]
    assert len(logs) == 3


def test_voice_transcript_without_keywords_logs_nothing(client, auth_headers):
    response = client.post(
        "/symptoms/voice",
        headers=auth_headers("user-a"),
        json={"transcript": "Feeling great today"},
    )
    assert response.json() == {"detected": [], "items": []}
