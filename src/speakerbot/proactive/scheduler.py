"""
proactive/scheduler.py — Proactive trigger evaluator

Wakes every tick_interval seconds (and once immediately on start), reads the
UTC wall clock, and fires each JobSchedule whose hour and minute (and
weekday, when set) match exactly.

Design
------
* Pure asyncio — one ticker Task, no threads, no cron daemon.
* Minute-window dedup: a job records the key "YYYY-MM-DD-HH-MM" of the
  minute it fired in; later ticks inside the same minute are ignored. The
  markers survive stop()/start(), so a restart within the matched minute
  does not fire twice.
* Jobs run as separate Tasks, so the ticker keeps its cadence while a slow
  job is in flight. Overlap of the same job is stopped by the JobRunner
  lock, not here.
* Fail-safe: a job that raises is logged and forgotten. It never stops the
  ticker.
* stop() cancels future ticks only. In-flight jobs run to completion;
  drain() waits for them during shutdown.

Usage::

    scheduler = service.build_scheduler()
    await scheduler.start()
    ...
    await scheduler.stop()
    await scheduler.drain()
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Mapping, Optional, Sequence

from speakerbot.observability.logger import get_logger
from speakerbot.proactive.results import JobResult
from speakerbot.store.models import to_utc_datetime, utc_now

log = get_logger(__name__)

JobTrigger = Callable[[], Awaitable[JobResult]]


# ─────────────────────────────────────────────────────────────────────────────
# Time matching
# ─────────────────────────────────────────────────────────────────────────────

def utc_weekday(dt: datetime) -> int:
    """0=Sunday … 6=Saturday."""
    return to_utc_datetime(dt).isoweekday() % 7


def window_key(dt: datetime) -> str:
    dt = to_utc_datetime(dt)
    return f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}-{dt.hour:02d}-{dt.minute:02d}"


@dataclass(frozen=True)
class JobSchedule:
    """
    job           Name of the job to fire (key into the scheduler's triggers).
    hour, minute  UTC time of day.
    day_of_week   0=Sunday … 6=Saturday; None = every day.
    """
    job: str
    hour: int
    minute: int
    day_of_week: Optional[int] = None

    def matches(self, now: datetime) -> bool:
        now = to_utc_datetime(now)
        if now.hour != self.hour or now.minute != self.minute:
            return False
        if self.day_of_week is not None and utc_weekday(now) != self.day_of_week:
            return False
        return True

    def describe(self) -> dict:
        return {
            "job": self.job,
            "hour": self.hour,
            "minute": self.minute,
            "day_of_week": self.day_of_week,
        }


class WindowMarkers:
    """Last fired minute-window key per job."""

    def __init__(self) -> None:
        self._last: dict[str, str] = {}

    def claim(self, job: str, key: str) -> bool:
        """Record key for job. False if job already fired in this window."""
        if self._last.get(job) == key:
            return False
        self._last[job] = key
        return True

    def last(self, job: str) -> Optional[str]:
        return self._last.get(job)

    def snapshot(self) -> dict[str, str]:
        return dict(self._last)


# ─────────────────────────────────────────────────────────────────────────────
# ProactiveScheduler
# ─────────────────────────────────────────────────────────────────────────────

class ProactiveScheduler:

    def __init__(
        self,
        triggers: Mapping[str, JobTrigger],
        schedules: Sequence[JobSchedule],
        tick_interval: float = 60.0,
        clock: Callable[[], datetime] = utc_now,
        markers: Optional[WindowMarkers] = None,
    ) -> None:
        self._triggers = dict(triggers)
        self._schedules = list(schedules)
        self._tick_interval = tick_interval
        self._clock = clock
        self.markers = markers if markers is not None else WindowMarkers()

        self._ticker: Optional[asyncio.Task] = None
        self._inflight: set[asyncio.Task] = set()
        self._running = False

        log.info(
            "scheduler.init",
            schedules=[s.describe() for s in self._schedules],
            tick_interval=tick_interval,
        )

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Install the tick loop; the first tick runs immediately. Non-blocking."""
        if self._running:
            log.warning("scheduler.already_running")
            return
        self._running = True
        self._ticker = asyncio.create_task(self._tick_loop(), name="scheduler:ticker")
        log.info("scheduler.started", tick_interval=self._tick_interval)

    async def stop(self) -> None:
        """Cancel future ticks. Jobs already running are left to finish."""
        if not self._running:
            return
        self._running = False
        if self._ticker:
            self._ticker.cancel()
            try:
                await self._ticker
            except asyncio.CancelledError:
                pass
            self._ticker = None
        log.info("scheduler.stopped", inflight=len(self._inflight))

    async def drain(self) -> None:
        """Wait for every in-flight job to settle."""
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    # ── Tick loop ─────────────────────────────────────────────────────────────

    async def _tick_loop(self) -> None:
        log.info("scheduler.tick_loop.started")
        while True:
            try:
                await self.tick()
            except Exception as e:
                log.error("scheduler.tick_loop.error", error=str(e), exc_info=True)
            await asyncio.sleep(self._tick_interval)

    async def tick(self) -> list[str]:
        """Evaluate every schedule once. Returns the names of the jobs fired."""
        now = to_utc_datetime(self._clock())
        fired: list[str] = []
        for schedule in self._schedules:
            if not schedule.matches(now):
                continue
            if not self.markers.claim(schedule.job, window_key(now)):
                log.debug("scheduler.window_already_fired", job=schedule.job)
                continue
            trigger = self._triggers.get(schedule.job)
            if trigger is None:
                log.error("scheduler.unknown_job", job=schedule.job)
                continue

            log.info("scheduler.tick.fired", job=schedule.job, at=now.isoformat())
            task = asyncio.create_task(
                self._run_job(schedule.job, trigger),
                name=f"scheduler:run:{schedule.job}",
            )
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            fired.append(schedule.job)
        return fired

    async def _run_job(self, job: str, trigger: JobTrigger) -> Optional[JobResult]:
        try:
            result = await trigger()
        except Exception as e:
            log.error("scheduler.job_crashed", job=job, error=str(e), error_type=type(e).__name__)
            return None
        log.info("scheduler.job_finished", job=job, result=result.to_dict())
        return result

    # ── Introspection ─────────────────────────────────────────────────────────

    def status(self) -> dict:
        return {
            "running": self._running,
            "tick_interval_seconds": self._tick_interval,
            "last_windows": self.markers.snapshot(),
            "inflight": sorted(t.get_name() for t in self._inflight),
            "schedules": [s.describe() for s in self._schedules],
        }
