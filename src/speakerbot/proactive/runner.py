"""
proactive/runner.py — Job orchestration wrapper

JobRunner.run(job_name, body) is the single path through which a proactive
job executes, whether it was fired by the scheduler, the HTTP trigger or the
CLI:

  1. try the per-job lock; if held → "skipped / already_running", body never runs
  2. await body()
  3. success → envelope with the payload; exception → envelope with the message
  4. release the lock on every exit path

A failing job never raises out of run(). CancelledError is the exception:
it propagates (after the lock is released) so shutdown still works.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Awaitable, Callable, Optional

from speakerbot.observability.logger import bind_job, clear_job, get_logger
from speakerbot.proactive.locks import LockRegistry
from speakerbot.proactive.results import (
    SKIP_ALREADY_RUNNING,
    JobPayload,
    JobResult,
    JobStatus,
)
from speakerbot.store.models import utc_now

log = get_logger(__name__)

JobBody = Callable[[], Awaitable[JobPayload]]


class JobRunner:

    def __init__(
        self,
        locks: Optional[LockRegistry] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.locks = locks if locks is not None else LockRegistry()
        self._clock = clock

    def _finish(self, job_name: str, status: JobStatus, started: float, **fields) -> JobResult:
        return JobResult(
            job=job_name,
            status=status,
            duration_ms=(time.monotonic() - started) * 1000,
            timestamp=self._clock().isoformat(),
            **fields,
        )

    async def run(self, job_name: str, body: JobBody) -> JobResult:
        started = time.monotonic()

        if not self.locks.acquire(job_name):
            held_since = self.locks.held_since(job_name)
            log.warning(
                "proactive.job.skipped",
                job=job_name,
                reason=SKIP_ALREADY_RUNNING,
                held_since=held_since.isoformat() if held_since else None,
            )
            return self._finish(
                job_name,
                JobStatus.SKIPPED,
                started,
                reason=SKIP_ALREADY_RUNNING,
                lock_acquired_at=held_since,
            )

        bind_job(job_name)
        try:
            log.info("proactive.job.start")
            try:
                payload = await body()
            except Exception as e:
                result = self._finish(job_name, JobStatus.ERROR, started, error=str(e))
                log.error(
                    "proactive.job.error",
                    error=str(e),
                    error_type=type(e).__name__,
                    duration_ms=round(result.duration_ms, 1),
                    exc_info=True,
                )
                return result

            result = self._finish(job_name, JobStatus.SUCCESS, started, payload=payload)
            log.info("proactive.job.complete", duration_ms=round(result.duration_ms, 1))
            return result
        finally:
            self.locks.release(job_name)
            clear_job()
