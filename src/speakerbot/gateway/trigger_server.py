"""
gateway/trigger_server.py — Internal HTTP trigger for proactive jobs

Lets an external cron (or an operator with curl) run a job on demand:

    POST /internal/proactive/check-reminders      → talk-reminders envelope
    POST /internal/proactive/weekly-announcement  → weekly-announcement envelope
    GET  /internal/proactive/status               → locks + scheduler state
    GET  /health

Access to /internal/* is restricted: loopback callers pass, anyone else must
present X-Cron-Secret matching CRON_SECRET. With no secret configured,
non-loopback callers are always refused.

Jobs go through the same ProactiveService as the scheduler, so a trigger
that lands while the scheduled run is in flight gets the "skipped" envelope.
"""

from __future__ import annotations

import contextlib
import hmac
import ipaddress
from typing import Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from speakerbot.observability.logger import get_logger
from speakerbot.proactive.scheduler import ProactiveScheduler
from speakerbot.proactive.service import ProactiveService

log = get_logger(__name__)

CRON_SECRET_HEADER = "X-Cron-Secret"

FORBIDDEN_BAD_SECRET = "Forbidden: Invalid or missing X-Cron-Secret header"
FORBIDDEN_NOT_LOOPBACK = "Forbidden: Internal endpoints only accept loopback connections"


def is_loopback(host: Optional[str]) -> bool:
    """True for 127.0.0.0/8, ::1 and IPv4-mapped loopback. Hostnames are never trusted."""
    if not host:
        return False
    try:
        addr = ipaddress.ip_address(host)
    except ValueError:
        return False
    if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
        return addr.ipv4_mapped.is_loopback
    return addr.is_loopback


def _internal_guard(cron_secret: Optional[str]):
    async def guard(request: Request) -> None:
        host = request.client.host if request.client else None
        if is_loopback(host):
            return
        if cron_secret:
            provided = request.headers.get(CRON_SECRET_HEADER, "")
            if hmac.compare_digest(provided.encode(), cron_secret.encode()):
                return
            log.warning("trigger.forbidden", client=host, reason="bad_secret", path=request.url.path)
            raise HTTPException(status_code=403, detail=FORBIDDEN_BAD_SECRET)
        log.warning("trigger.forbidden", client=host, reason="not_loopback", path=request.url.path)
        raise HTTPException(status_code=403, detail=FORBIDDEN_NOT_LOOPBACK)

    return guard


def create_trigger_app(
    service: ProactiveService,
    cron_secret: Optional[str] = None,
    scheduler: Optional[ProactiveScheduler] = None,
) -> FastAPI:
    app = FastAPI(
        title="speakerbot proactive trigger",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @app.exception_handler(StarletteHTTPException)
    async def _error_body(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    internal = APIRouter(
        prefix="/internal/proactive",
        dependencies=[Depends(_internal_guard(cron_secret))],
    )

    @internal.post("/check-reminders")
    async def check_reminders() -> dict:
        result = await service.run_reminders()
        log.info("trigger.job_run", job=result.job, status=result.status.value)
        return result.to_dict()

    @internal.post("/weekly-announcement")
    async def weekly_announcement() -> dict:
        result = await service.run_weekly_summary()
        log.info("trigger.job_run", job=result.job, status=result.status.value)
        return result.to_dict()

    @internal.get("/status")
    async def status() -> dict:
        return {
            "service": service.status(),
            "scheduler": scheduler.status() if scheduler is not None else None,
        }

    app.include_router(internal)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    return app


class _TriggerServer(uvicorn.Server):
    """uvicorn server that leaves SIGINT/SIGTERM to the serve loop in main.py."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


def build_trigger_server(app: FastAPI, host: str, port: int) -> uvicorn.Server:
    """Run with `await server.serve()`; stop by setting `server.should_exit`."""
    config = uvicorn.Config(app, host=host, port=port, log_config=None, lifespan="off")
    return _TriggerServer(config)
