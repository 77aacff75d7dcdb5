"""Signed status callbacks to the controlling system."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from sheet_importer.security import serialize_payload, sign

logger = logging.getLogger(__name__)

CALLBACK_PREFIX = "wp-json/aoikumo-importer/v1/"
DEFAULT_TIMEOUT_SECONDS = 10.0
HEALTH_TIMEOUT_SECONDS = 5.0


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class StatusReporter:
    """Posts job events to the controller.

    Every call signs its own body. Delivery failures are logged and reported
    as ``False``; they never raise into the job.
    """

    def __init__(
        self,
        base_url: Optional[str],
        secret: Optional[str],
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/" if base_url else None
        self.secret = secret
        self.timeout = timeout
        self._transport = transport

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}{CALLBACK_PREFIX}{endpoint}"

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> bool:
        if not self.base_url or not self.secret:
            logger.warning("[REPORT] Callback not configured, dropping %s for job %s", endpoint, payload.get("jobId"))
            return False

        body = serialize_payload(payload)
        headers = {"Content-Type": "application/json", **sign(body, self.secret)}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self._url(endpoint), content=body, headers=headers)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("[REPORT] Failed to deliver %s for job %s: %s", endpoint, payload.get("jobId"), e)
            return False

        logger.debug("[REPORT] Delivered %s for job %s (%d)", endpoint, payload.get("jobId"), response.status_code)
        return True

    async def report_status(self, job_id: str, status: str, progress: Optional[int] = None) -> bool:
        payload = {"jobId": job_id, "status": status, "progress": progress, "timestamp": _now_iso()}
        return await self._post("job-status", payload)

    async def report_progress(
        self,
        job_id: str,
        current_row: int,
        total_rows: int,
        success_count: int,
        error_count: int,
    ) -> bool:
        payload = {
            "jobId": job_id,
            "currentRow": current_row,
            "totalRows": total_rows,
            "successCount": success_count,
            "errorCount": error_count,
            "timestamp": _now_iso(),
        }
        return await self._post("job-progress", payload)

    async def report_log(self, job_id: str, row_number: int, status: str, message: str) -> bool:
        payload = {
            "jobId": job_id,
            "rowNumber": row_number,
            "status": status,
            "message": message,
            "timestamp": _now_iso(),
        }
        return await self._post("job-log", payload)

    async def report_completion(self, job_id: str, results: dict[str, Any]) -> bool:
        payload = {"jobId": job_id, "status": "completed", "results": results, "timestamp": _now_iso()}
        delivered = await self._post("job-complete", payload)
        logger.info("[REPORT] Job %s completed: %s", job_id, results)
        return delivered

    async def report_failure(
        self,
        job_id: str,
        error: Any,
        failed_rows: Optional[list[dict[str, Any]]] = None,
    ) -> bool:
        payload = {
            "jobId": job_id,
            "status": "failed",
            "error": str(error),
            "failedRows": failed_rows or [],
            "timestamp": _now_iso(),
        }
        return await self._post("job-failed", payload)

    async def test_connection(self) -> dict[str, Any]:
        """Unsigned GET against the controller's health endpoint."""
        if not self.base_url:
            return {"success": False, "error": "Callback URL not configured"}
        try:
            async with httpx.AsyncClient(timeout=HEALTH_TIMEOUT_SECONDS, transport=self._transport) as client:
                response = await client.get(self._url("health"))
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            return {"success": False, "error": str(e), "status": e.response.status_code}
        except httpx.HTTPError as e:
            return {"success": False, "error": str(e)}
        return {"success": True, "status": response.status_code, "message": "Connection successful"}
