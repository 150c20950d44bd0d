"""
proactive/service.py — Proactive notification service

Wires the two jobs behind a single JobRunner so that every entry point
(scheduler, HTTP trigger, CLI) shares one LockRegistry. Two concurrent
callers of the same job therefore never both run it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from speakerbot.config.settings import ProactiveConfig
from speakerbot.notify.base import Notifier
from speakerbot.observability.logger import get_logger
from speakerbot.proactive.channels import ChannelResolver
from speakerbot.proactive.jobs.reminders import TalkReminderJob
from speakerbot.proactive.jobs.weekly import WeeklySummaryJob
from speakerbot.proactive.locks import LockRegistry
from speakerbot.proactive.results import JobName, JobResult
from speakerbot.proactive.runner import JobRunner
from speakerbot.proactive.scheduler import JobSchedule, ProactiveScheduler, WindowMarkers
from speakerbot.store.base import RecordStore
from speakerbot.store.models import utc_now

log = get_logger(__name__)


class ProactiveService:

    def __init__(
        self,
        config: ProactiveConfig,
        store: RecordStore,
        notifier: Notifier,
        locks: Optional[LockRegistry] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.config = config
        self._clock = clock
        self.runner = JobRunner(locks=locks, clock=clock)
        self.channels = ChannelResolver(
            store,
            community_id=config.community_id,
            fallback_channel_id=config.announcements_channel_id,
        )
        self.reminders = TalkReminderJob(
            store,
            notifier,
            enabled=config.reminders_enabled,
            clock=clock,
        )
        self.weekly = WeeklySummaryJob(
            store,
            notifier,
            self.channels,
            enabled=config.weekly_enabled,
            window_days=config.summary_window_days,
            clock=clock,
        )

    @property
    def locks(self) -> LockRegistry:
        return self.runner.locks

    async def run_reminders(self) -> JobResult:
        return await self.runner.run(JobName.REMINDERS.value, self.reminders.run)

    async def run_weekly_summary(self) -> JobResult:
        return await self.runner.run(JobName.WEEKLY_SUMMARY.value, self.weekly.run)

    def schedules(self) -> list[JobSchedule]:
        cfg = self.config
        return [
            JobSchedule(JobName.REMINDERS.value, cfg.reminders_hour, cfg.reminders_minute),
            JobSchedule(
                JobName.WEEKLY_SUMMARY.value,
                cfg.weekly_hour,
                cfg.weekly_minute,
                day_of_week=cfg.weekly_day_of_week,
            ),
        ]

    def build_scheduler(
        self,
        tick_interval: Optional[float] = None,
        markers: Optional[WindowMarkers] = None,
    ) -> ProactiveScheduler:
        return ProactiveScheduler(
            triggers={
                JobName.REMINDERS.value: self.run_reminders,
                JobName.WEEKLY_SUMMARY.value: self.run_weekly_summary,
            },
            schedules=self.schedules(),
            tick_interval=tick_interval if tick_interval is not None else self.config.check_interval_seconds,
            clock=self._clock,
            markers=markers,
        )

    def status(self) -> dict:
        cfg = self.config
        return {
            "reminders_enabled": cfg.reminders_enabled,
            "weekly_enabled": cfg.weekly_enabled,
            "community_id": cfg.community_id,
            "announcements_channel_id": cfg.announcements_channel_id,
            "locks": self.locks.snapshot(),
        }
