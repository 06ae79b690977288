"""Tests for JobMonitor: cursor polling, generations, abort and stalls."""

import asyncio

import pytest

from restorectl.cli.protocol import JobStatus, StatusUpdate
from restorectl.errors import ProtocolFailure, TransportFailure
from restorectl.services.job_monitor import JobHandle, JobMonitor, advance_status


def _update(status="InProgress", stdout="", stderr="", out_pos=0, err_pos=0,
            stage="", database_name=None) -> StatusUpdate:
    return StatusUpdate(
        status=JobStatus(status),
        stage=stage,
        stdout=stdout,
        stderr=stderr,
        stdout_position=out_pos,
        stderr_position=err_pos,
        database_name=database_name,
    )


class FakeRestoreClient:
    """Scripted poll_status/abort_job responses per job id."""

    def __init__(self):
        self.calls: list[tuple[int, int, int]] = []
        self.abort_calls: list[int] = []
        self.abort_error: Exception | None = None
        self._scripts: dict[int, list] = {}
        self._gates: dict[int, asyncio.Event] = {}

    def script(self, jobid: int, *items) -> None:
        self._scripts.setdefault(jobid, []).extend(items)

    def gate(self, jobid: int) -> asyncio.Event:
        """Hold poll responses for ``jobid`` until the returned event is set."""
        event = asyncio.Event()
        self._gates[jobid] = event
        return event

    async def poll_status(self, jobid, stdout_position, stderr_position):
        self.calls.append((jobid, stdout_position, stderr_position))
        gate = self._gates.get(jobid)
        if gate is not None:
            await gate.wait()
        script = self._scripts.get(jobid) or []
        if not script:
            raise TransportFailure(f"no scripted response for job {jobid}")
        item = script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def abort_job(self, jobid):
        self.abort_calls.append(jobid)
        if self.abort_error is not None:
            raise self.abort_error


async def _settle(rounds: int = 10) -> None:
    """Let scheduled callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class TestCursorPolling:
    """Tests for incremental output assembly."""

    @pytest.mark.asyncio
    async def test_echoes_cursors_and_reassembles_output(self):
        """Deltas at 0, 10, 25 rebuild the full stream with exact cursor echo."""
        client = FakeRestoreClient()
        client.script(
            1,
            _update(stdout="0123456789", out_pos=10, stderr="w1", err_pos=2),
            _update(stdout="abcdefghijklmno", out_pos=25, err_pos=2),
            _update(status="Success", stdout="XYZ", out_pos=28, stderr="w2", err_pos=4),
        )
        async with JobMonitor(client, poll_interval=0.001) as monitor:
            monitor.set_job(1)
            handle = await asyncio.wait_for(monitor.wait(), timeout=2)

        assert handle.stdout.content == "0123456789abcdefghijklmnoXYZ"
        assert handle.stderr.content == "w1w2"
        assert client.calls == [(1, 0, 0), (1, 10, 2), (1, 25, 2)]
        assert handle.status is JobStatus.SUCCESS
        assert (handle.stdout_cursor, handle.stderr_cursor) == (28, 4)

    @pytest.mark.asyncio
    async def test_terminal_status_stops_scheduling(self):
        """No poll is dispatched after Failed."""
        client = FakeRestoreClient()
        client.script(3, _update(status="Failed", stderr="boom", err_pos=4))
        async with JobMonitor(client, poll_interval=0.001) as monitor:
            monitor.set_job(3)
            handle = await asyncio.wait_for(monitor.wait(), timeout=2)
            await asyncio.sleep(0.02)

        assert handle.status is JobStatus.FAILED
        assert len(client.calls) == 1

    @pytest.mark.asyncio
    async def test_next_poll_waits_for_interval_after_response(self):
        """With a long interval only the initial poll has run."""
        client = FakeRestoreClient()
        client.script(4, _update(stage="Restoring data"), _update(status="Success"))
        async with JobMonitor(client, poll_interval=30) as monitor:
            monitor.set_job(4)
            await _settle()
            assert len(client.calls) == 1
            assert monitor.handle.status is JobStatus.IN_PROGRESS
            assert monitor.handle.stage == "Restoring data"

    @pytest.mark.asyncio
    async def test_updates_database_name(self):
        """database_name reported by the server lands on the handle."""
        client = FakeRestoreClient()
        client.script(5, _update(status="Success", database_name="shop"))
        async with JobMonitor(client, poll_interval=0.001) as monitor:
            monitor.set_job(5)
            handle = await asyncio.wait_for(monitor.wait(), timeout=2)
        assert handle.database_name == "shop"

    @pytest.mark.asyncio
    async def test_output_is_bounded_by_config(self):
        """max_output_length applies to both streams."""
        client = FakeRestoreClient()
        client.script(6, _update(status="Success", stdout="abcdefgh", out_pos=8))
        async with JobMonitor(client, poll_interval=0.001, max_output_length=5) as monitor:
            monitor.set_job(6)
            handle = await asyncio.wait_for(monitor.wait(), timeout=2)
        assert handle.stdout.content == "defgh"
        assert handle.stdout.truncated is True

    @pytest.mark.asyncio
    async def test_listeners_receive_deltas(self):
        """Listeners get the handle and each delta pair."""
        client = FakeRestoreClient()
        client.script(
            8,
            _update(stdout="a", out_pos=1),
            _update(status="Success", stdout="b", stderr="e", out_pos=2, err_pos=1),
        )
        seen = []
        async with JobMonitor(client, poll_interval=0.001) as monitor:
            monitor.add_listener(lambda h, out, err: seen.append((h.id, out, err)))
            monitor.set_job(8)
            await asyncio.wait_for(monitor.wait(), timeout=2)
        assert seen == [(8, "a", ""), (8, "b", "e")]


class TestGenerations:
    """Tests for job switching and stale responses."""

    @pytest.mark.asyncio
    async def test_stale_response_is_discarded(self):
        """A response for the previous job never reaches the new job's buffers."""
        client = FakeRestoreClient()
        gate = client.gate(1)
        client.script(1, _update(stdout="stale output", out_pos=12))
        client.script(2, _update(status="Success", stdout="fresh", out_pos=5))

        async with JobMonitor(client, poll_interval=0.001) as monitor:
            monitor.set_job(1)
            await _settle()
            assert client.calls == [(1, 0, 0)]

            handle = monitor.set_job(2)
            await asyncio.wait_for(monitor.wait(), timeout=2)
            gate.set()
            await _settle()

        assert handle.id == 2
        assert handle.stdout.content == "fresh"
        assert handle.stdout_cursor == 5
        assert [c for c in client.calls if c[0] == 1] == [(1, 0, 0)]

    @pytest.mark.asyncio
    async def test_set_job_resets_state(self):
        """A new job starts from zero cursors and empty buffers in Loading."""
        client = FakeRestoreClient()
        client.gate(9)
        async with JobMonitor(client) as monitor:
            first = monitor.set_job(9)
            first.stdout.append("old")
            second = monitor.set_job(9)
            assert second is not first
            assert second.status is JobStatus.LOADING
            assert second.stdout.content == ""
            assert (second.stdout_cursor, second.stderr_cursor) == (0, 0)
            assert first.finished.is_set()

    @pytest.mark.asyncio
    async def test_set_job_none_goes_idle(self):
        """Clearing the job dispatches nothing."""
        client = FakeRestoreClient()
        async with JobMonitor(client) as monitor:
            handle = monitor.set_job(None)
            await _settle()
            assert handle.status is JobStatus.IDLE
            assert await monitor.wait() is handle
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_single_outstanding_poll(self):
        """poll() while a request is in flight does not send another."""
        client = FakeRestoreClient()
        gate = client.gate(10)
        client.script(10, _update(status="Success"))
        async with JobMonitor(client, poll_interval=30) as monitor:
            monitor.set_job(10)
            await _settle()
            assert monitor.handle.poll_pending is True
            await monitor.poll()
            assert len(client.calls) == 1
            gate.set()
            await asyncio.wait_for(monitor.wait(), timeout=2)
        assert len(client.calls) == 1


class TestAbort:
    """Tests for out-of-band cancellation."""

    @pytest.mark.asyncio
    async def test_abort_does_not_change_status(self):
        """Only a later poll response moves the job to Aborted."""
        client = FakeRestoreClient()
        client.script(7, _update(stage="Restoring"), _update(status="Aborted"))
        async with JobMonitor(client, poll_interval=30) as monitor:
            handle = monitor.set_job(7)
            await _settle()
            assert handle.status is JobStatus.IN_PROGRESS

            assert await monitor.abort() is True
            assert handle.status is JobStatus.IN_PROGRESS
            assert handle.abort_requested is True
            assert handle.can_abort is False
            assert await monitor.abort() is False
            assert client.abort_calls == [7]

            await monitor.poll()
            assert handle.status is JobStatus.ABORTED

    @pytest.mark.asyncio
    async def test_failed_abort_can_be_retried(self):
        """A rejected abort leaves abort enabled."""
        client = FakeRestoreClient()
        client.script(11, _update())
        client.abort_error = ProtocolFailure("Failed to abort job")
        async with JobMonitor(client, poll_interval=30) as monitor:
            handle = monitor.set_job(11)
            await _settle()
            with pytest.raises(ProtocolFailure):
                await monitor.abort()
            assert handle.can_abort is True
            assert handle.status is JobStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_abort_other_job_leaves_handle_alone(self):
        """Aborting a job that is not monitored only calls the server."""
        client = FakeRestoreClient()
        client.gate(12)
        async with JobMonitor(client) as monitor:
            handle = monitor.set_job(12)
            assert await monitor.abort(99) is True
            assert client.abort_calls == [99]
            assert handle.abort_requested is False


class TestFailures:
    """Tests for transport and protocol failures."""

    @pytest.mark.asyncio
    async def test_transport_failure_stalls(self):
        """A transport error stops polling and records the reason."""
        client = FakeRestoreClient()
        client.script(20, _update(stdout="x", out_pos=1), TransportFailure("connection refused"))
        async with JobMonitor(client, poll_interval=0.001) as monitor:
            monitor.set_job(20)
            handle = await asyncio.wait_for(monitor.wait(), timeout=2)
            await asyncio.sleep(0.02)

        assert handle.status is JobStatus.STALLED
        assert "connection refused" in handle.error
        assert handle.stdout.content == "x"
        assert len(client.calls) == 2

    @pytest.mark.asyncio
    async def test_protocol_failure_surfaces_message(self):
        """success=false stops polling with the server's message."""
        client = FakeRestoreClient()
        client.script(21, ProtocolFailure("Job not found"))
        async with JobMonitor(client, poll_interval=0.001) as monitor:
            monitor.set_job(21)
            handle = await asyncio.wait_for(monitor.wait(), timeout=2)

        assert handle.status is JobStatus.STALLED
        assert handle.error == "Job not found"


class TestAdvanceStatus:
    """Tests for forward-only status transitions."""

    def test_forward_moves(self):
        handle = JobHandle(id=1, status=JobStatus.LOADING)
        assert advance_status(handle, JobStatus.IN_PROGRESS) is True
        assert advance_status(handle, JobStatus.SUCCESS) is True
        assert handle.status is JobStatus.SUCCESS

    def test_loading_can_jump_to_terminal(self):
        handle = JobHandle(id=1, status=JobStatus.LOADING)
        assert advance_status(handle, JobStatus.FAILED) is True

    def test_backward_move_ignored(self):
        handle = JobHandle(id=1, status=JobStatus.IN_PROGRESS)
        assert advance_status(handle, JobStatus.LOADING) is False
        assert handle.status is JobStatus.IN_PROGRESS

    @pytest.mark.parametrize("terminal", [JobStatus.SUCCESS, JobStatus.ABORTED, JobStatus.FAILED])
    def test_terminal_is_final(self, terminal):
        handle = JobHandle(id=1, status=terminal)
        for status in JobStatus:
            advance_status(handle, status)
        assert handle.status is terminal
