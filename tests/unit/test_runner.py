"""
tests/unit/test_runner.py — JobRunner Unit Tests

Covers:
  - success envelope carries the payload under its key
  - an exception in the body becomes status "error"; run() does not raise
  - the lock is released after success, error and cancellation
  - a second run while the first holds the lock is "skipped/already_running"
    and never calls the body
  - to_dict() shape of every envelope variant
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from speakerbot.proactive.locks import LockRegistry
from speakerbot.proactive.results import (
    SKIP_ALREADY_RUNNING,
    AnnouncementReport,
    JobStatus,
    ReminderReport,
)
from speakerbot.proactive.runner import JobRunner

T0 = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)


def _clock() -> datetime:
    return T0


def _make_runner() -> JobRunner:
    return JobRunner(locks=LockRegistry(clock=_clock), clock=_clock)


class TestJobRunnerSuccess:
    @pytest.mark.asyncio
    async def test_success_envelope(self):
        runner = _make_runner()

        async def body():
            return ReminderReport(tminus1_sent=2, day_of_sent=1)

        result = await runner.run("talk-reminders", body)
        assert result.status is JobStatus.SUCCESS
        assert result.succeeded
        assert result.job == "talk-reminders"
        assert result.timestamp == T0.isoformat()
        assert result.duration_ms >= 0

        d = result.to_dict()
        assert d["status"] == "success"
        assert d["reminders"] == {"tminus1_sent": 2, "day_of_sent": 1, "errors": []}
        assert "error" not in d
        assert "reason" not in d

    @pytest.mark.asyncio
    async def test_lock_released_after_success(self):
        runner = _make_runner()

        async def body():
            assert runner.locks.is_held("weekly-announcement")
            return AnnouncementReport(posted=True, talks_count=0, channel_id="-100")

        await runner.run("weekly-announcement", body)
        assert not runner.locks.is_held("weekly-announcement")


class TestJobRunnerError:
    @pytest.mark.asyncio
    async def test_exception_becomes_error_envelope(self):
        runner = _make_runner()

        async def body():
            raise RuntimeError("database unreachable")

        result = await runner.run("talk-reminders", body)
        assert result.status is JobStatus.ERROR
        assert result.error == "database unreachable"
        assert result.payload is None
        assert result.to_dict()["error"] == "database unreachable"
        assert not runner.locks.is_held("talk-reminders")

    @pytest.mark.asyncio
    async def test_cancellation_propagates_and_releases(self):
        runner = _make_runner()
        started = asyncio.Event()

        async def body():
            started.set()
            await asyncio.sleep(10)

        task = asyncio.create_task(runner.run("talk-reminders", body))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert not runner.locks.is_held("talk-reminders")


class TestJobRunnerContention:
    @pytest.mark.asyncio
    async def test_second_run_is_skipped_while_first_in_flight(self):
        runner = _make_runner()
        release = asyncio.Event()
        started = asyncio.Event()
        calls = 0

        async def body():
            nonlocal calls
            calls += 1
            started.set()
            await release.wait()
            return ReminderReport()

        first = asyncio.create_task(runner.run("talk-reminders", body))
        await started.wait()

        second = await runner.run("talk-reminders", body)
        assert second.status is JobStatus.SKIPPED
        assert second.reason == SKIP_ALREADY_RUNNING
        assert second.lock_acquired_at == T0
        assert second.payload is None

        release.set()
        result = await first
        assert result.status is JobStatus.SUCCESS
        assert calls == 1

    @pytest.mark.asyncio
    async def test_skipped_envelope_dict(self):
        runner = _make_runner()
        runner.locks.acquire("weekly-announcement")

        async def body():  # pragma: no cover - never called
            raise AssertionError("body must not run while the lock is held")

        d = (await runner.run("weekly-announcement", body)).to_dict()
        assert d["status"] == "skipped"
        assert d["reason"] == "already_running"
        assert d["lock_acquired_at"] == T0.isoformat()
        assert "announcement" not in d
        # The foreign holder keeps its lock.
        assert runner.locks.is_held("weekly-announcement")

    @pytest.mark.asyncio
    async def test_different_jobs_do_not_block_each_other(self):
        runner = _make_runner()
        release = asyncio.Event()

        async def slow():
            await release.wait()
            return ReminderReport()

        async def fast():
            return AnnouncementReport(posted=True, talks_count=1, channel_id="-100")

        slow_task = asyncio.create_task(runner.run("talk-reminders", slow))
        await asyncio.sleep(0)
        fast_result = await runner.run("weekly-announcement", fast)
        assert fast_result.succeeded
        release.set()
        assert (await slow_task).succeeded


class TestReportDicts:
    def test_skipped_reminder_report(self):
        d = ReminderReport(skipped=True, reason="disabled").to_dict()
        assert d == {
            "tminus1_sent": 0,
            "day_of_sent": 0,
            "errors": [],
            "skipped": True,
            "reason": "disabled",
        }

    def test_announcement_report_omits_unset_fields(self):
        d = AnnouncementReport(posted=False, error="no channel").to_dict()
        assert d == {"posted": False, "error": "no channel"}
