"""Unit tests for the Supervisor state machine."""

import asyncio

import pytest

from telemetry_uplink.core.event_logger import EventLogger
from telemetry_uplink.supervisor import ExitReason, Supervisor, SupervisorState
from telemetry_uplink.uplink.record import encode_record
from tests.infrastructure.helpers import make_fixes, wait_until
from tests.infrastructure.mocks import FakeTransport, ScriptedFixSource


class TestSupervisorRun:

    @pytest.mark.asyncio
    async def test_source_stopped_drains_and_terminates(self, make_session, monitor, transport):
        monitor.record_success("lte", 0.01)
        await transport.connect(monitor.best_path())
        fixes = make_fixes(3)
        supervisor = Supervisor(ScriptedFixSource(fixes), make_session(), drain_timeout=0.5)

        report = await supervisor.run()

        assert report.reason is ExitReason.SOURCE_STOPPED
        assert report.detail == "device session ended"
        assert report.fixes_received == 3
        assert report.results == {"sent": 3, "queued": 0, "dropped": 0}
        assert report.discarded == 0
        assert supervisor.state is SupervisorState.TERMINATED
        assert transport.records == [encode_record(f) for f in fixes]

    @pytest.mark.asyncio
    async def test_undeliverable_fixes_are_discarded_after_drain_timeout(self, make_session):
        supervisor = Supervisor(ScriptedFixSource(make_fixes(2)), make_session(), drain_timeout=0.05)

        report = await supervisor.run()

        assert report.results["queued"] == 2
        assert report.discarded == 2

    @pytest.mark.asyncio
    async def test_shutdown_abandons_pending_next(self, make_session):
        supervisor = Supervisor(ScriptedFixSource([], block_at_end=True), make_session(), drain_timeout=0.05)
        run = asyncio.ensure_future(supervisor.run())
        await asyncio.sleep(0.02)
        assert supervisor.state is SupervisorState.RUNNING

        supervisor.request_shutdown("test")
        report = await asyncio.wait_for(run, timeout=1.0)

        assert report.reason is ExitReason.SHUTDOWN_REQUESTED
        assert report.fixes_received == 0

    @pytest.mark.asyncio
    async def test_shutdown_never_interrupts_send(self, make_session, monitor):
        monitor.record_success("lte", 0.01)
        slow = FakeTransport(write_delay=0.1)
        await slow.connect(monitor.best_path())
        source = ScriptedFixSource(make_fixes(1), block_at_end=True)
        supervisor = Supervisor(source, make_session(transport=slow), drain_timeout=0.05)

        run = asyncio.ensure_future(supervisor.run())
        await wait_until(slow.write_started.is_set)
        supervisor.request_shutdown("test")
        report = await asyncio.wait_for(run, timeout=1.0)

        assert len(slow.records) == 1
        assert report.results["sent"] == 1
        assert report.reason is ExitReason.SHUTDOWN_REQUESTED

    @pytest.mark.asyncio
    async def test_run_twice_rejected(self, make_session):
        supervisor = Supervisor(ScriptedFixSource([]), make_session(), drain_timeout=0.01)
        await supervisor.run()
        with pytest.raises(RuntimeError):
            await supervisor.run()

    @pytest.mark.asyncio
    async def test_shutdown_event_logged(self, make_session, tmp_path):
        events = EventLogger(tmp_path / "events.csv")
        await events.initialize()
        supervisor = Supervisor(ScriptedFixSource([]), make_session(), drain_timeout=0.01, event_logger=events)

        await supervisor.run()

        assert "shutdown" in (tmp_path / "events.csv").read_text()

    def test_snapshot(self, make_session):
        supervisor = Supervisor(ScriptedFixSource([]), make_session())
        snap = supervisor.snapshot()
        assert snap["state"] == "running"
        assert snap["source"]["state"] == "idle"
