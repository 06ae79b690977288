"""HTTP client implementation of RestoreClient.

Thin wrapper around httpx that talks to the restore server API. Every
endpoint is a JSON POST answered with an envelope of the form
``{"success": bool, "result": ..., "message": str}``. Transport problems
raise TransportFailure and ``success=false`` raises ProtocolFailure, never
typer.Exit, so the client is reusable for scripts and tests.
"""

import json
import logging
from typing import Any

import httpx

from restorectl.cli.protocol import JobSummary, StatusUpdate
from restorectl.errors import ProtocolFailure, TransportFailure

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class HttpClient:
    """RestoreClient implementation that talks to the server over HTTP."""

    def __init__(self, base_url: str = "http://127.0.0.1:8080", timeout: float = 30.0):
        """Initialize with server base URL.

        Args:
            base_url: The restore server's HTTP base URL.
            timeout: Per-request timeout in seconds.
        """
        self._base_url = base_url
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self):
        """Open httpx async client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Close httpx async client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _call(self, endpoint: str, payload: dict[str, Any] | None = None) -> Any:
        """POST to an API endpoint and unwrap the response envelope.

        Args:
            endpoint: Path below /api/v1, e.g. "/status".
            payload: JSON body, or None for an empty request.

        Returns:
            The envelope's ``result`` value.

        Raises:
            TransportFailure: Network error, non-2xx status, or a body that
                is not a JSON envelope.
            ProtocolFailure: The envelope reports success=false.
        """
        if self._client is None:
            raise TransportFailure("client is not open; use 'async with'")

        url = f"{API_PREFIX}{endpoint}"
        try:
            if payload is None:
                resp = await self._client.post(url)
            else:
                resp = await self._client.post(url, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("POST %s failed: %s", url, exc)
            raise TransportFailure(str(exc) or type(exc).__name__) from exc

        if resp.status_code >= 400:
            logger.warning("POST %s returned HTTP %s", url, resp.status_code)
            raise TransportFailure(
                f"HTTP {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )

        try:
            envelope = resp.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise TransportFailure(f"invalid JSON from {url}: {exc}") from exc
        if not isinstance(envelope, dict) or "success" not in envelope:
            raise TransportFailure(f"unexpected response shape from {url}")

        if not envelope["success"]:
            message = envelope.get("message") or "Unknown server error"
            logger.warning("POST %s rejected: %s", url, message)
            raise ProtocolFailure(message)
        return envelope.get("result")

    async def submit_restore(self, request: dict[str, Any]) -> int:
        """Submit a restore via POST /api/v1/restore.

        Args:
            request: Payload produced by RestoreRequest.to_payload().

        Returns:
            The new job id.
        """
        result = await self._call("/restore", request)
        if isinstance(result, dict):
            jobid = result.get("jobid", result.get("job_id"))
        else:
            jobid = result
        if jobid is None:
            raise TransportFailure("restore response did not contain a job id")
        logger.info("Restore submitted as job %s", jobid)
        return int(jobid)

    async def poll_status(self, jobid: int, stdout_position: int,
                          stderr_position: int) -> StatusUpdate:
        """Fetch job status and output deltas via POST /api/v1/status."""
        result = await self._call("/status", {
            "jobid": jobid,
            "stdout_position": stdout_position,
            "stderr_position": stderr_position,
        })
        try:
            return StatusUpdate.from_api(result)
        except (KeyError, TypeError, ValueError) as exc:
            raise TransportFailure(f"malformed status response: {exc}") from exc

    async def abort_job(self, jobid: int) -> None:
        """Request cancellation via POST /api/v1/abort."""
        await self._call("/abort", {"jobid": jobid})
        logger.info("Abort accepted for job %s", jobid)

    async def list_destinations(self) -> list[Any]:
        """List destinations via POST /api/v1/destination."""
        result = await self._call("/destination")
        return list(result or [])

    async def list_jobs(self) -> list[JobSummary]:
        """List jobs via POST /api/v1/jobs, sorted by job id."""
        result = await self._call("/jobs")
        jobs = [JobSummary.from_api(j) for j in (result or [])]
        return sorted(jobs, key=lambda j: j.jobid)

    async def search_backups(self, query: str) -> list[str]:
        """Search backups via POST /api/v1/search."""
        result = await self._call("/search", {"query": query})
        return [str(item) for item in (result or [])]
