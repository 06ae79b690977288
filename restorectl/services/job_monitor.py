"""Cursor-based polling of a running restore job.

The restore server keeps each job's stdout/stderr as growing streams.
Every poll sends the cursors received last time and gets back only the
new text plus updated cursors, so the client rebuilds the full output
without gaps or duplicates.

Polling is self-scheduling: the next poll is armed a fixed delay after a
response arrives, never on a fixed-rate timer, so a slow server slows the
client down. Each poll is tagged with the generation that was current
when it was dispatched. Switching jobs bumps the generation and cancels
the armed timer; a response that arrives for an older generation is
dropped without touching the new job's state.

Everything runs on one asyncio loop, so no locks are needed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from restorectl.cli.protocol import JobStatus, RestoreClient, StatusUpdate
from restorectl.errors import ProtocolFailure, TransportFailure
from restorectl.services.output_buffer import DEFAULT_MAX_OUTPUT_LENGTH, OutputBuffer

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0

# Terminal states and STALLED share the top rank: nothing moves past them.
_STATUS_RANK: dict[JobStatus, int] = {
    JobStatus.IDLE: 0,
    JobStatus.LOADING: 1,
    JobStatus.IN_PROGRESS: 2,
    JobStatus.SUCCESS: 3,
    JobStatus.ABORTED: 3,
    JobStatus.FAILED: 3,
    JobStatus.STALLED: 3,
}

Listener = Callable[["JobHandle", str, str], None]


@dataclass
class JobHandle:
    """Client-side state of one monitored job.

    Attributes:
        id: Server job id, or None when no job is selected.
        status: Current lifecycle state.
        stage: Human-readable step reported by the server.
        stdout_cursor: Position to echo back for the next stdout delta.
        stderr_cursor: Position to echo back for the next stderr delta.
        database_name: Target database reported by the server, if any.
        stdout: Bounded stdout text.
        stderr: Bounded stderr text.
        error: Failure message when polling stalled.
        abort_requested: True once the server accepted an abort request.
        poll_pending: True while a status request is in flight.
        finished: Set when polling for this handle has stopped for good.
    """

    id: int | None = None
    status: JobStatus = JobStatus.IDLE
    stage: str = ""
    stdout_cursor: int = 0
    stderr_cursor: int = 0
    database_name: str | None = None
    stdout: OutputBuffer = field(default_factory=OutputBuffer)
    stderr: OutputBuffer = field(default_factory=OutputBuffer)
    error: str | None = None
    abort_requested: bool = False
    abort_pending: bool = field(default=False, repr=False)
    poll_pending: bool = field(default=False, repr=False)
    finished: asyncio.Event = field(default_factory=asyncio.Event, repr=False, compare=False)

    @property
    def is_active(self) -> bool:
        return self.status in (JobStatus.LOADING, JobStatus.IN_PROGRESS)

    @property
    def can_abort(self) -> bool:
        return (
            self.id is not None
            and self.is_active
            and not self.abort_requested
            and not self.abort_pending
        )


def advance_status(handle: JobHandle, status: JobStatus) -> bool:
    """Move ``handle`` forward to ``status``; refuse backward or post-terminal moves.

    Returns:
        True if the status changed.
    """
    current = handle.status
    if current == status:
        return False
    if _STATUS_RANK[current] == _STATUS_RANK[JobStatus.STALLED]:
        logger.debug("Job %s: ignoring %s after final state %s", handle.id, status.value, current.value)
        return False
    if _STATUS_RANK[status] < _STATUS_RANK[current]:
        logger.debug("Job %s: ignoring backward move %s -> %s", handle.id, current.value, status.value)
        return False
    handle.status = status
    logger.info("Job %s: %s -> %s", handle.id, current.value, status.value)
    return True


class JobMonitor:
    """Drives status polling for one job at a time.

    Usage:
        async with HttpClient(url) as client, JobMonitor(client) as monitor:
            monitor.set_job(42)
            handle = await monitor.wait()
    """

    def __init__(
        self,
        client: RestoreClient,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_output_length: int = DEFAULT_MAX_OUTPUT_LENGTH,
        truncate_output: bool = True,
    ) -> None:
        self._client = client
        self._poll_interval = poll_interval
        self._max_output_length = max_output_length
        self._truncate_output = truncate_output
        self._generation = 0
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[Listener] = []
        self.handle = self._new_handle(None)

    async def __aenter__(self) -> "JobMonitor":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def generation(self) -> int:
        return self._generation

    def add_listener(self, listener: Listener) -> None:
        """Register a callable invoked as ``listener(handle, stdout_delta, stderr_delta)``."""
        self._listeners.append(listener)

    def _new_handle(self, job_id: int | None) -> JobHandle:
        return JobHandle(
            id=job_id,
            stdout=OutputBuffer(max_length=self._max_output_length, truncate=self._truncate_output),
            stderr=OutputBuffer(max_length=self._max_output_length, truncate=self._truncate_output),
        )

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def set_job(self, job_id: int | None) -> JobHandle:
        """Start monitoring ``job_id`` from scratch; None stops monitoring.

        Must be called from inside the running event loop. Any poll still in
        flight for the previous job is left to complete and then discarded.
        """
        self._generation += 1
        self._cancel_timer()
        self.handle.finished.set()

        self.handle = self._new_handle(job_id)
        if job_id is None:
            logger.debug("Monitor reset to idle (generation %d)", self._generation)
            return self.handle

        advance_status(self.handle, JobStatus.LOADING)
        logger.debug("Monitoring job %s (generation %d)", job_id, self._generation)
        self._dispatch(self._generation)
        return self.handle

    def _dispatch(self, generation: int) -> None:
        self._timer = None
        if generation != self._generation:
            return
        task = asyncio.get_running_loop().create_task(self._poll_in_background(generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _schedule(self, generation: int) -> None:
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().call_later(
            self._poll_interval, self._dispatch, generation,
        )

    async def _poll_in_background(self, generation: int) -> None:
        handle = self.handle
        try:
            await self.poll()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Unexpected error polling job %s: %s", handle.id, exc, exc_info=True)
            if generation == self._generation:
                self._stall(handle, str(exc))

    async def poll(self) -> JobHandle:
        """Run one poll cycle for the current job.

        Applies the response if it still belongs to the current generation,
        then either arms the next poll or stops on a terminal status. Does
        nothing when no job is selected, polling has stopped, or a poll is
        already in flight.
        """
        handle = self.handle
        generation = self._generation
        if handle.id is None or handle.poll_pending or handle.finished.is_set():
            return handle

        handle.poll_pending = True
        try:
            update = await self._client.poll_status(
                handle.id, handle.stdout_cursor, handle.stderr_cursor,
            )
        except (TransportFailure, ProtocolFailure) as exc:
            if generation != self._generation:
                logger.debug("Discarding stale failure for job %s: %s", handle.id, exc)
                return handle
            logger.warning("Polling job %s stopped: %s", handle.id, exc)
            self._stall(handle, exc.message)
            return handle
        finally:
            handle.poll_pending = False

        if generation != self._generation:
            logger.debug(
                "Discarding stale status for job %s (generation %d, current %d)",
                handle.id, generation, self._generation,
            )
            return handle

        self._apply(handle, update)
        if handle.status.is_terminal:
            self._cancel_timer()
            handle.finished.set()
        else:
            self._schedule(generation)
        return handle

    def _apply(self, handle: JobHandle, update: StatusUpdate) -> None:
        if (update.stdout_position < handle.stdout_cursor
                or update.stderr_position < handle.stderr_cursor):
            logger.warning(
                "Job %s: server cursors moved backwards (%d/%d -> %d/%d)",
                handle.id, handle.stdout_cursor, handle.stderr_cursor,
                update.stdout_position, update.stderr_position,
            )
        handle.stdout.append(update.stdout)
        handle.stderr.append(update.stderr)
        handle.stdout_cursor = update.stdout_position
        handle.stderr_cursor = update.stderr_position
        handle.stage = update.stage
        if update.database_name:
            handle.database_name = update.database_name
        advance_status(handle, update.status)

        for listener in self._listeners:
            listener(handle, update.stdout, update.stderr)

    def _stall(self, handle: JobHandle, message: str) -> None:
        handle.error = message
        advance_status(handle, JobStatus.STALLED)
        self._cancel_timer()
        handle.finished.set()
        for listener in self._listeners:
            listener(handle, "", "")

    async def abort(self, job_id: int | None = None) -> bool:
        """Ask the server to cancel a job.

        Runs independently of the polling loop. Success only disables
        further abort attempts; the Aborted status arrives through a later
        poll. A ``job_id`` other than the monitored one is aborted without
        touching any local state.

        Returns:
            True if the server accepted the request, False if abort is
            currently not allowed for the monitored job.

        Raises:
            TransportFailure, ProtocolFailure: The request failed; abort
                stays available for another attempt.
        """
        handle = self.handle
        if job_id is not None and job_id != handle.id:
            await self._client.abort_job(job_id)
            return True
        if not handle.can_abort:
            return False

        handle.abort_pending = True
        try:
            await self._client.abort_job(handle.id)
        finally:
            handle.abort_pending = False
        handle.abort_requested = True
        logger.info("Abort requested for job %s", handle.id)
        return True

    async def wait(self) -> JobHandle:
        """Wait until polling for the current job stops, then return its handle."""
        handle = self.handle
        if handle.id is None:
            return handle
        await handle.finished.wait()
        return handle

    async def close(self) -> None:
        """Stop polling and cancel anything still in flight."""
        self._generation += 1
        self._cancel_timer()
        self.handle.finished.set()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
