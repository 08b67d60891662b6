from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from .intents import IDENTIFIER_RE
from .utils import mask_identifier

logger = logging.getLogger("fixology.device_status")

CHECK_MODE = "full"


@dataclass
class DeviceStatusResult:
    """Outcome of one device-status lookup."""
    success: bool
    analysis: Optional[Dict[str, Any]] = None
    summary: Optional[Any] = None
    error: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def overall_status(self) -> Optional[str]:
        if not self.success or not isinstance(self.analysis, dict):
            return None
        status = self.analysis.get("overallStatus")
        return str(status) if status else None

    def to_dict(self) -> Dict[str, Any]:
        """Return the service payload verbatim, or the failure envelope."""
        if not self.success:
            return {"success": False, "error": self.error}
        data = dict(self.payload)
        data["success"] = True
        return data

    @classmethod
    def failure(cls, error: str) -> "DeviceStatusResult":
        return cls(success=False, error=error)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "DeviceStatusResult":
        """Purpose: Normalize a verification-service body into a result.
        Inputs/Outputs: Input is the decoded JSON dict; output is a DeviceStatusResult.
        Side Effects / State: None.
        Dependencies: Used by DeviceStatusClient.verify.
        Failure Modes: An explicit `success: false` in the body becomes a failure.
        If Removed: Callers must dig through raw service payloads.
        Testing Notes: A body with analysis.summary only still exposes a summary.
        """
        # A 2xx body counts as success unless it says otherwise.
        if payload.get("success") is False:
            message = payload.get("error") or payload.get("message") or "Device status check failed"
            return cls.failure(str(message))
        analysis = payload.get("analysis")
        if not isinstance(analysis, dict):
            analysis = None
        summary = payload.get("summary")
        if summary is None and analysis is not None:
            summary = analysis.get("summary")
        return cls(success=True, analysis=analysis, summary=summary, payload=payload)


def extract_identifier(message: str) -> Optional[str]:
    """Return the first 14-17 digit run in the message, without checksum validation."""
    match = IDENTIFIER_RE.search(message or "")
    return match.group(0) if match else None


class DeviceStatusClient:
    """Adapter over the external device verification endpoint."""

    def __init__(self, endpoint: str, http_client: Optional[httpx.AsyncClient] = None) -> None:
        """Purpose: Configure the verification endpoint and optional HTTP client.
        Inputs/Outputs: Inputs are the endpoint URL and an optional shared client.
        Side Effects / State: Stores the configuration.
        Dependencies: Uses httpx.AsyncClient for the outbound POST.
        Failure Modes: None at init.
        If Removed: IMEI requests cannot reach the verification service.
        Testing Notes: Pass a client built on httpx.MockTransport.
        """
        # The injected client is owned by the caller and never closed here.
        self._endpoint = endpoint
        self._http_client = http_client

    async def verify(self, identifier: str) -> DeviceStatusResult:
        """Purpose: Run one device-status lookup for an identifier.
        Inputs/Outputs: Input is the identifier; output is a DeviceStatusResult.
        Side Effects / State: Issues exactly one POST request; no retries.
        Dependencies: Uses httpx and DeviceStatusResult.from_payload.
        Failure Modes: Non-2xx status, transport errors, and bad JSON are converted to
            a failed result; this method never raises for them.
        If Removed: The assistant cannot report blacklist or lock status.
        Testing Notes: Stub a 503 and verify success is False with no exception.
        """
        # Fixed request shape expected by the verification service.
        body = {"imei": identifier, "mode": CHECK_MODE}
        masked = mask_identifier(identifier)
        logger.info("device_status check imei=%s mode=%s", masked, CHECK_MODE)
        try:
            if self._http_client is not None:
                response = await self._http_client.post(self._endpoint, json=body)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(self._endpoint, json=body)
            if response.status_code < 200 or response.status_code >= 300:
                raise RuntimeError(f"Device status API returned {response.status_code}")
            payload = response.json()
            if not isinstance(payload, dict):
                raise ValueError("Device status API returned a non-object body")
        except (httpx.HTTPError, RuntimeError, ValueError) as exc:
            logger.warning("device_status check failed imei=%s error=%s", masked, exc)
            return DeviceStatusResult.failure(str(exc))

        result = DeviceStatusResult.from_payload(payload)
        logger.info(
            "device_status result imei=%s success=%s status=%s",
            masked,
            result.success,
            result.overall_status,
        )
        return result
