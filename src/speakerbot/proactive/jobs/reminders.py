"""
proactive/jobs/reminders.py — Speaker reminder job

Sends each speaker two reminders for their talk:
    tminus1 — the day before (talk date == tomorrow, UTC)
    day_of  — on the day     (talk date == today, UTC)

A reminder kind goes out for a talk only while its marker
(reminders.sent_tminus1_at / sent_day_of_at) is unset, and the marker is
saved immediately after a successful delivery. Re-running the job the same
day therefore sends nothing new. Talks whose delivery failed on every route
stay unmarked and are picked up again by the next run.
"""

from __future__ import annotations

import html
from datetime import datetime, timedelta
from typing import Callable

from speakerbot.exceptions import ReminderJobError
from speakerbot.notify.base import Notifier, shorten
from speakerbot.observability.logger import get_logger
from speakerbot.proactive.delivery import deliver, reminder_attempts
from speakerbot.proactive.results import SKIP_DISABLED, ReminderError, ReminderReport
from speakerbot.store.base import RecordStore
from speakerbot.store.models import ReminderKind, Talk, TalkFilter, to_utc_date, utc_now

log = get_logger(__name__)


def format_reminder(talk: Talk, kind: ReminderKind) -> str:
    name = html.escape(shorten(talk.speaker_name))
    topic = html.escape(shorten(talk.topic))
    day = talk.scheduled_date.isoformat()
    if kind is ReminderKind.TMINUS1:
        return (
            f"Hi {name}! This is a reminder that you're scheduled to speak "
            f"tomorrow ({day}) about \"{topic}\". Looking forward to your talk!"
        )
    return (
        f"Hi {name}! This is a reminder that you're speaking today "
        f"({day}) about \"{topic}\". See you soon!"
    )


class TalkReminderJob:

    def __init__(
        self,
        store: RecordStore,
        notifier: Notifier,
        enabled: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self.enabled = enabled
        self._clock = clock

    async def run(self) -> ReminderReport:
        if not self.enabled:
            log.info("reminders.disabled")
            return ReminderReport(skipped=True, reason=SKIP_DISABLED)

        today = to_utc_date(self._clock())
        tomorrow = today + timedelta(days=1)
        report = ReminderReport()

        try:
            tomorrow_talks = await self._store.find_talks(
                TalkFilter(scheduled_on=tomorrow, reminder_unsent=ReminderKind.TMINUS1)
            )
            today_talks = await self._store.find_talks(
                TalkFilter(scheduled_on=today, reminder_unsent=ReminderKind.DAY_OF)
            )
            log.info(
                "reminders.due",
                today=today.isoformat(),
                tminus1_due=len(tomorrow_talks),
                day_of_due=len(today_talks),
            )

            for talk in tomorrow_talks:
                if await self._remind(talk, ReminderKind.TMINUS1, report):
                    report.tminus1_sent += 1
            for talk in today_talks:
                if await self._remind(talk, ReminderKind.DAY_OF, report):
                    report.day_of_sent += 1
        except Exception as e:
            raise ReminderJobError(f"Talk reminders job failed: {e}") from e

        return report

    async def _remind(self, talk: Talk, kind: ReminderKind, report: ReminderReport) -> bool:
        """Deliver one reminder and persist its marker. False if every route failed."""
        delivery = await deliver(self._notifier, reminder_attempts(talk), format_reminder(talk, kind))
        if not delivery.delivered:
            log.warning(
                "reminders.delivery_failed",
                kind=kind.value,
                talk_id=talk.id,
                speaker_id=talk.speaker_id,
                detail=delivery.error_summary(),
            )
            report.errors.append(
                ReminderError(
                    kind=kind,
                    talk_id=talk.id,
                    speaker_id=talk.speaker_id,
                    message=f"Failed to send reminder: {delivery.error_summary()}",
                )
            )
            return False

        talk.reminders.mark_sent(kind, self._clock())
        await self._store.save_talk(talk)
        log.info(
            "reminders.sent",
            kind=kind.value,
            talk_id=talk.id,
            via=delivery.delivered_via.route.value,
        )
        return True
