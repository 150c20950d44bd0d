"""
store/models.py — Record Store Data Contracts

Talk           : one booked speaker slot, unique per calendar date
ReminderState  : per-talk idempotency markers for the two reminder kinds
ChannelOverride: per-community destination for the weekly summary
TalkFilter     : the query shapes the proactive jobs need from a store

Dates are calendar dates (datetime.date) in UTC. Anything carrying a time of
day is normalized through to_utc_date() before it reaches a query or a row.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc_datetime(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC; aware ones are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_utc_date(value: date | datetime) -> date:
    """Normalize a date or datetime to its UTC calendar date (midnight UTC)."""
    if isinstance(value, datetime):
        return to_utc_datetime(value).date()
    return value


class ReminderKind(str, Enum):
    TMINUS1 = "tminus1"
    DAY_OF = "day_of"


@dataclass
class ReminderState:
    sent_tminus1_at: Optional[datetime] = None
    sent_day_of_at: Optional[datetime] = None

    def sent_at(self, kind: ReminderKind) -> Optional[datetime]:
        if kind is ReminderKind.TMINUS1:
            return self.sent_tminus1_at
        return self.sent_day_of_at

    def mark_sent(self, kind: ReminderKind, at: datetime) -> bool:
        """
        Record delivery of a reminder kind. Returns False and leaves the
        state untouched if that kind was already marked.
        """
        if self.sent_at(kind) is not None:
            return False
        if kind is ReminderKind.TMINUS1:
            self.sent_tminus1_at = at
        else:
            self.sent_day_of_at = at
        return True


@dataclass
class Talk:
    speaker_id: str
    speaker_name: str
    topic: str
    scheduled_date: date
    id: Optional[str] = None
    booked_at: datetime = field(default_factory=utc_now)
    completed: bool = False
    thread_id: Optional[str] = None
    booked_by_id: Optional[str] = None
    booked_by_name: Optional[str] = None
    reminders: ReminderState = field(default_factory=ReminderState)

    def __post_init__(self) -> None:
        self.scheduled_date = to_utc_date(self.scheduled_date)


@dataclass
class ChannelOverride:
    community_id: str
    channel_id: Optional[str] = None
    updated_by: Optional[str] = None
    updated_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class TalkFilter:
    """
    Conjunction of optional conditions. Unset fields do not constrain.

    scheduled_on      equality on the calendar date
    scheduled_from    inclusive lower bound
    scheduled_before  exclusive upper bound
    reminder_unsent   only talks whose marker for this kind is unset
    exclude_completed drop talks flagged completed
    """
    scheduled_on: Optional[date] = None
    scheduled_from: Optional[date] = None
    scheduled_before: Optional[date] = None
    reminder_unsent: Optional[ReminderKind] = None
    exclude_completed: bool = False
