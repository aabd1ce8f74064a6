from __future__ import annotations

import logging
from typing import Any

import httpx

from intake_core.diagnosis import DiagnosisError, DiagnosisResult, Evidence, parse_analysis_payload

logger = logging.getLogger(__name__)


def _provider_error_message(response: httpx.Response) -> str:
    message = response.text.strip()
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        err = payload.get("error")
        if isinstance(err, dict):
            msg = err.get("message")
            if isinstance(msg, str) and msg.strip():
                return msg.strip()
        if isinstance(err, str) and err.strip():
            return err.strip()
        msg = payload.get("message")
        if isinstance(msg, str) and msg.strip():
            return msg.strip()
    return message or f"HTTP {response.status_code}"


class HttpDiagnosisClient:
    """Calls the diagnosis service that fronts the third-party symptom checker."""

    def __init__(
        self,
        *,
        url: str | None,
        api_key: str | None = None,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = (url or "").strip()
        self.api_key = (api_key or "").strip()
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def build_payload(self, symptoms: list[Evidence], age: int, sex: str) -> dict[str, Any]:
        return {
            "symptoms": [item.as_payload() for item in symptoms],
            "age": age,
            "sex": sex,
        }

    async def analyze(self, symptoms: list[Evidence], age: int, sex: str) -> DiagnosisResult:
        if not self.url:
            raise DiagnosisError("Diagnosis API URL is not configured.")
        if not symptoms:
            raise DiagnosisError("No symptoms provided.")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = self.build_payload(symptoms, age, sex)

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds, connect=8.0),
                transport=self._transport,
            ) as client:
                response = await client.post(self.url, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            raise DiagnosisError("Diagnosis provider timed out.") from exc
        except httpx.HTTPError as exc:
            raise DiagnosisError("Failed to reach diagnosis provider.") from exc

        if response.status_code >= 400:
            raise DiagnosisError(f"Diagnosis failed: {_provider_error_message(response)}")
        try:
            body = response.json()
        except ValueError as exc:
            raise DiagnosisError("Diagnosis provider returned invalid JSON.") from exc

        result = parse_analysis_payload(body)
        logger.info(
            "diagnosis returned %d conditions (question=%s)",
            len(result.conditions),
            bool(result.question),
        )
        return result
