"""RestoreClient protocol and wire data models.

Defines the abstract interface the HTTP client implements and the job
monitor depends on. Tests substitute scripted fakes for the protocol
without touching the network.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol


class JobStatus(str, Enum):
    """Job lifecycle states.

    LOADING, IN_PROGRESS and the three terminal states come from the server.
    IDLE (no job selected) and STALLED (polling stopped after a transport or
    protocol failure) exist only on the client.
    """

    IDLE = "Idle"
    LOADING = "Loading"
    IN_PROGRESS = "InProgress"
    SUCCESS = "Success"
    ABORTED = "Aborted"
    FAILED = "Failed"
    STALLED = "Stalled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCESS, JobStatus.ABORTED, JobStatus.FAILED)


@dataclass
class StatusUpdate:
    """One poll response: output deltas plus the cursors to echo next time."""

    status: JobStatus
    stage: str
    stdout: str
    stderr: str
    stdout_position: int
    stderr_position: int
    database_name: str | None = None

    @classmethod
    def from_api(cls, data: dict) -> "StatusUpdate":
        """Construct from API JSON, tolerating extra fields."""
        return cls(
            status=JobStatus(data["status"]),
            stage=data.get("stage") or "",
            stdout=data.get("stdout") or "",
            stderr=data.get("stderr") or "",
            stdout_position=int(data.get("stdout_position", 0)),
            stderr_position=int(data.get("stderr_position", 0)),
            database_name=data.get("database_name"),
        )


@dataclass
class JobSummary:
    """Lightweight job data for list views."""

    jobid: int
    created: int
    status: str
    stage: str | None = None

    @classmethod
    def from_api(cls, data: dict) -> "JobSummary":
        """Construct from API JSON, tolerating extra fields."""
        return cls(
            jobid=data["jobid"],
            created=data.get("created", 0),
            status=data["status"],
            stage=data.get("stage"),
        )


class RestoreClient(Protocol):
    """Protocol defining the restore server operations used by the CLI.

    Failures raise TransportFailure (request did not complete) or
    ProtocolFailure (server answered success=false).
    """

    async def __aenter__(self) -> "RestoreClient":
        ...

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        ...

    async def submit_restore(self, request: dict[str, Any]) -> int:
        """Submit a restore request.

        Args:
            request: Payload produced by RestoreRequest.to_payload().

        Returns:
            The server-assigned job id.
        """
        ...

    async def poll_status(self, jobid: int, stdout_position: int,
                          stderr_position: int) -> StatusUpdate:
        """Fetch output produced since the given cursors."""
        ...

    async def abort_job(self, jobid: int) -> None:
        """Request cancellation of a running job."""
        ...

    async def list_destinations(self) -> Sequence[Any]:
        """Return the server's destination descriptors, index = destination id."""
        ...

    async def list_jobs(self) -> list[JobSummary]:
        """Return known jobs sorted by id."""
        ...

    async def search_backups(self, query: str) -> list[str]:
        """Return backup paths matching a free-text query."""
        ...
