"""
proactive/channels.py — Weekly summary destination lookup

Resolution order:
  1. the channel override stored for the configured community
     (set with /set_proactive_channel)
  2. the static proactive.announcements_channel_id
  3. nothing → None; the summary job reports it as unconfigured
"""

from __future__ import annotations

from typing import Optional

from speakerbot.store.base import RecordStore


class ChannelResolver:

    def __init__(
        self,
        store: RecordStore,
        community_id: Optional[str] = None,
        fallback_channel_id: Optional[str] = None,
    ) -> None:
        self._store = store
        self.community_id = community_id
        self.fallback_channel_id = fallback_channel_id

    async def override_channel_id(self) -> Optional[str]:
        if not self.community_id:
            return None
        override = await self._store.find_channel_override(self.community_id)
        return override.channel_id if override else None

    async def resolve(self) -> Optional[str]:
        return (await self.override_channel_id()) or self.fallback_channel_id
