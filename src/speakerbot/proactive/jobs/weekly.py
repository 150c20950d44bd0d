"""
proactive/jobs/weekly.py — Weekly schedule summary job

Posts the talks booked in [today, today + window_days) to the community's
announcements channel. An empty week is never silent: it posts a call for
volunteers instead.

Every failure (no channel configured, store error, channel not found, post
rejected) is returned inside the AnnouncementReport. This job does not
raise.
"""

from __future__ import annotations

import html
from datetime import datetime, timedelta
from typing import Callable, Sequence

from speakerbot.notify.base import Notifier, shorten
from speakerbot.observability.logger import get_logger
from speakerbot.proactive.channels import ChannelResolver
from speakerbot.proactive.results import SKIP_DISABLED, AnnouncementReport
from speakerbot.store.base import RecordStore
from speakerbot.store.models import Talk, TalkFilter, to_utc_date, utc_now

log = get_logger(__name__)

VOLUNTEER_CTA = (
    "No talks are scheduled for the coming week. "
    "Want to volunteer? Book a speaker slot and share what you're working on!"
)

CHANNEL_NOT_CONFIGURED = (
    "No announcements channel configured. Run /set_proactive_channel in the "
    "community chat or set PROACTIVE__ANNOUNCEMENTS_CHANNEL_ID."
)


def format_upcoming_schedule(talks: Sequence[Talk]) -> str:
    if not talks:
        return VOLUNTEER_CTA
    lines = ["<b>Upcoming Talks</b>", ""]
    for i, talk in enumerate(talks, start=1):
        lines.append(
            f"{i}. <b>{talk.scheduled_date.isoformat()}</b> — "
            f"{html.escape(shorten(talk.speaker_name))}: \"{html.escape(shorten(talk.topic))}\""
        )
    return "\n".join(lines)


class WeeklySummaryJob:

    def __init__(
        self,
        store: RecordStore,
        notifier: Notifier,
        channels: ChannelResolver,
        enabled: bool = True,
        window_days: int = 7,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._channels = channels
        self.enabled = enabled
        self.window_days = window_days
        self._clock = clock

    async def run(self) -> AnnouncementReport:
        if not self.enabled:
            log.info("weekly.disabled")
            return AnnouncementReport(skipped=True, reason=SKIP_DISABLED)

        channel_id = None
        try:
            channel_id = await self._channels.resolve()
            if not channel_id:
                log.warning("weekly.channel_not_configured", community_id=self._channels.community_id)
                return AnnouncementReport(posted=False, error=CHANNEL_NOT_CONFIGURED)

            today = to_utc_date(self._clock())
            end_of_window = today + timedelta(days=self.window_days)
            talks = await self._store.find_talks(
                TalkFilter(
                    scheduled_from=today,
                    scheduled_before=end_of_window,
                    exclude_completed=True,
                ),
                order_by_date=True,
            )

            channel = await self._notifier.resolve_channel(channel_id)
            await self._notifier.send_channel_message(channel, format_upcoming_schedule(talks))
        except Exception as e:
            log.error("weekly.post_failed", channel_id=channel_id, error=str(e))
            return AnnouncementReport(posted=False, channel_id=channel_id, error=str(e))

        log.info("weekly.posted", channel_id=channel_id, talks_count=len(talks))
        return AnnouncementReport(posted=True, talks_count=len(talks), channel_id=channel_id)
