"""
store/base.py — RecordStore interface

The proactive jobs only ever talk to this interface. SqliteStore is the
shipped implementation; anything else (Mongo, Postgres) only has to honour
the same filter semantics and the monotonic reminder markers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from speakerbot.store.models import ChannelOverride, Talk, TalkFilter


class RecordStore(ABC):

    async def init(self) -> None:
        """Open connections / create schema. Default: nothing to do."""

    async def close(self) -> None:
        """Release resources. Default: nothing to do."""

    @abstractmethod
    async def find_talks(
        self,
        talk_filter: TalkFilter,
        order_by_date: bool = True,
        limit: Optional[int] = None,
    ) -> list[Talk]:
        """Return talks matching every condition in talk_filter."""

    @abstractmethod
    async def add_talk(self, talk: Talk) -> Talk:
        """
        Insert a new talk, assigning its id.
        Raises DuplicateTalkDateError if the date is already booked.
        """

    @abstractmethod
    async def save_talk(self, talk: Talk) -> None:
        """
        Persist an existing talk. Reminder markers that are already set in
        the store are never cleared or overwritten.
        """

    @abstractmethod
    async def find_channel_override(self, community_id: str) -> Optional[ChannelOverride]:
        ...

    @abstractmethod
    async def save_channel_override(self, override: ChannelOverride) -> None:
        """Insert or replace the override for override.community_id."""
