"""
store/ — Talk and channel-override persistence

Public API:
    from speakerbot.store import RecordStore, SqliteStore, Talk, TalkFilter
"""

from speakerbot.store.base import RecordStore
from speakerbot.store.models import (
    ChannelOverride,
    ReminderKind,
    ReminderState,
    Talk,
    TalkFilter,
    to_utc_date,
    utc_now,
)
from speakerbot.store.sqlite_store import SqliteStore

__all__ = [
    "RecordStore",
    "SqliteStore",
    "ChannelOverride",
    "ReminderKind",
    "ReminderState",
    "Talk",
    "TalkFilter",
    "to_utc_date",
    "utc_now",
]
