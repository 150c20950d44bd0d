"""
proactive/ — Proactive notification engine

Public API:
    from speakerbot.proactive import ProactiveService, JobResult

Component overview:
    LockRegistry        Per-job in-memory mutual exclusion
    JobRunner           Lock + timing + result envelope around a job body
    TalkReminderJob     Day-before and day-of speaker reminders
    WeeklySummaryJob    Upcoming-week schedule post
    ProactiveScheduler  UTC minute-window trigger evaluator
    ProactiveService    Wires all of the above behind one lock registry
"""

from speakerbot.proactive.locks import LockRegistry
from speakerbot.proactive.results import (
    AnnouncementReport,
    JobName,
    JobResult,
    JobStatus,
    ReminderError,
    ReminderReport,
)
from speakerbot.proactive.runner import JobRunner
from speakerbot.proactive.scheduler import JobSchedule, ProactiveScheduler, WindowMarkers
from speakerbot.proactive.service import ProactiveService

__all__ = [
    "LockRegistry",
    "JobRunner",
    "JobName",
    "JobResult",
    "JobStatus",
    "ReminderError",
    "ReminderReport",
    "AnnouncementReport",
    "JobSchedule",
    "ProactiveScheduler",
    "WindowMarkers",
    "ProactiveService",
]
