from speakerbot.proactive.jobs.reminders import TalkReminderJob, format_reminder
from speakerbot.proactive.jobs.weekly import WeeklySummaryJob, format_upcoming_schedule

__all__ = [
    "TalkReminderJob",
    "WeeklySummaryJob",
    "format_reminder",
    "format_upcoming_schedule",
]
