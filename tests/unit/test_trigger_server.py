"""
tests/unit/test_trigger_server.py — Internal HTTP trigger

Covers:
  - is_loopback() for IPv4, IPv6, IPv4-mapped and hostnames
  - non-loopback callers: refused without CRON_SECRET, refused with a wrong
    header, accepted with the right one
  - loopback callers need no header
  - endpoints return the job envelope; a held lock yields "skipped"
  - /health is open, /internal/proactive/status reports locks and scheduler
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from speakerbot.config.settings import ProactiveConfig
from speakerbot.gateway.trigger_server import (
    FORBIDDEN_BAD_SECRET,
    FORBIDDEN_NOT_LOOPBACK,
    build_trigger_server,
    create_trigger_app,
    is_loopback,
)
from speakerbot.notify.recording import RecordingNotifier
from speakerbot.proactive.results import JobResult, JobStatus, ReminderReport
from speakerbot.proactive.service import ProactiveService
from speakerbot.store.models import Talk
from speakerbot.store.sqlite_store import SqliteStore

NOW = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)


def _make_service() -> MagicMock:
    service = MagicMock()
    service.run_reminders = AsyncMock(return_value=JobResult(
        job="talk-reminders",
        status=JobStatus.SUCCESS,
        duration_ms=3.0,
        timestamp=NOW.isoformat(),
        payload=ReminderReport(tminus1_sent=1),
    ))
    service.run_weekly_summary = AsyncMock(return_value=JobResult(
        job="weekly-announcement",
        status=JobStatus.SKIPPED,
        duration_ms=0.1,
        timestamp=NOW.isoformat(),
        reason="already_running",
        lock_acquired_at=NOW,
    ))
    service.status.return_value = {"locks": {}}
    return service


class TestIsLoopback:
    @pytest.mark.parametrize("host", ["127.0.0.1", "127.1.2.3", "::1", "::ffff:127.0.0.1"])
    def test_loopback(self, host):
        assert is_loopback(host)

    @pytest.mark.parametrize("host", ["10.0.0.5", "::ffff:10.0.0.5", "2001:db8::1", "localhost", "testclient", "", None])
    def test_not_loopback(self, host):
        assert not is_loopback(host)


class TestAccessControl:
    # TestClient connects as host "testclient", i.e. not loopback.

    def test_no_secret_configured_refuses_remote(self):
        service = _make_service()
        client = TestClient(create_trigger_app(service, cron_secret=None))
        resp = client.post("/internal/proactive/check-reminders")
        assert resp.status_code == 403
        assert resp.json() == {"error": FORBIDDEN_NOT_LOOPBACK}
        service.run_reminders.assert_not_called()

    def test_wrong_secret_refused(self):
        client = TestClient(create_trigger_app(_make_service(), cron_secret="s3cret"))
        resp = client.post("/internal/proactive/check-reminders", headers={"X-Cron-Secret": "nope"})
        assert resp.status_code == 403
        assert resp.json() == {"error": FORBIDDEN_BAD_SECRET}

    def test_missing_secret_refused(self):
        client = TestClient(create_trigger_app(_make_service(), cron_secret="s3cret"))
        resp = client.post("/internal/proactive/weekly-announcement")
        assert resp.status_code == 403
        assert resp.json() == {"error": FORBIDDEN_BAD_SECRET}

    def test_status_is_guarded(self):
        client = TestClient(create_trigger_app(_make_service(), cron_secret=None))
        assert client.get("/internal/proactive/status").status_code == 403

    def test_health_is_open(self):
        client = TestClient(create_trigger_app(_make_service(), cron_secret=None))
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestEndpoints:
    def _client(self, service) -> TestClient:
        client = TestClient(create_trigger_app(service, cron_secret="s3cret"))
        client.headers.update({"X-Cron-Secret": "s3cret"})
        return client

    def test_check_reminders_returns_envelope(self):
        service = _make_service()
        resp = self._client(service).post("/internal/proactive/check-reminders")
        assert resp.status_code == 200
        body = resp.json()
        assert body["job"] == "talk-reminders"
        assert body["status"] == "success"
        assert body["reminders"] == {"tminus1_sent": 1, "day_of_sent": 0, "errors": []}
        service.run_reminders.assert_awaited_once()

    def test_weekly_skipped_envelope(self):
        resp = self._client(_make_service()).post("/internal/proactive/weekly-announcement")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "skipped"
        assert body["reason"] == "already_running"
        assert body["lock_acquired_at"] == NOW.isoformat()

    def test_status_without_scheduler(self):
        resp = self._client(_make_service()).get("/internal/proactive/status")
        assert resp.json() == {"service": {"locks": {}}, "scheduler": None}

    def test_status_with_scheduler(self):
        scheduler = MagicMock()
        scheduler.status.return_value = {"running": True}
        app = create_trigger_app(_make_service(), cron_secret="s3cret", scheduler=scheduler)
        resp = TestClient(app).get("/internal/proactive/status", headers={"X-Cron-Secret": "s3cret"})
        assert resp.json()["scheduler"] == {"running": True}


class TestLoopbackEndToEnd:
    @pytest.mark.asyncio
    async def test_loopback_caller_runs_real_job(self):
        store = SqliteStore(":memory:")
        await store.init()
        try:
            await store.add_talk(Talk("42", "Ada", "Generators", date(2026, 10, 20)))
            notifier = RecordingNotifier()
            service = ProactiveService(ProactiveConfig(), store, notifier, clock=lambda: NOW)
            app = create_trigger_app(service, cron_secret=None)

            transport = httpx.ASGITransport(app=app, client=("127.0.0.1", 40000))
            async with httpx.AsyncClient(transport=transport, base_url="http://localhost") as client:
                first = await client.post("/internal/proactive/check-reminders")
                second = await client.post("/internal/proactive/check-reminders")

            assert first.status_code == 200
            assert first.json()["reminders"]["tminus1_sent"] == 1
            assert second.json()["reminders"]["tminus1_sent"] == 0
            assert len(notifier.dms_for("42")) == 1
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_held_lock_returns_skipped(self):
        service = ProactiveService(ProactiveConfig(), AsyncMock(), RecordingNotifier(), clock=lambda: NOW)
        service.locks.acquire("talk-reminders")
        transport = httpx.ASGITransport(app=create_trigger_app(service), client=("::1", 40000))
        async with httpx.AsyncClient(transport=transport, base_url="http://localhost") as client:
            resp = await client.post("/internal/proactive/check-reminders")
        assert resp.json()["status"] == "skipped"
        assert resp.json()["reason"] == "already_running"


class TestBuildServer:
    def test_server_config(self):
        server = build_trigger_server(create_trigger_app(_make_service()), "127.0.0.1", 3999)
        assert server.config.host == "127.0.0.1"
        assert server.config.port == 3999
        assert server.should_exit is False
