"""
notify/recording.py — In-process notifier for simulation and tests

Records every direct message and channel post instead of sending it, so the
proactive jobs can be exercised end to end without a Telegram bot.

    notifier = RecordingNotifier(unreachable_speakers={"42"})
    ...
    notifier.dms_for("7")            # [SentMessage(...), ...]
    notifier.channel_posts("-100")   # [SentMessage(...), ...]
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Optional

from speakerbot.exceptions import ChannelNotFoundError, DeliveryError
from speakerbot.notify.base import ChannelRef, Notifier, parse_channel_id
from speakerbot.store.models import utc_now


@dataclass(frozen=True)
class SentMessage:
    destination: str
    text: str
    sent_at: datetime = field(default_factory=utc_now)


class RecordingNotifier(Notifier):
    """
    Args:
        unreachable_speakers: speaker ids whose direct messages fail.
        failing_channels:     channel ids that resolve but reject posts.
        known_channels:       if given, only these channel ids resolve;
                              None means every channel id resolves.
        on_send:              optional callback (destination, text) for echoing.
    """

    def __init__(
        self,
        unreachable_speakers: Iterable[str] = (),
        failing_channels: Iterable[str] = (),
        known_channels: Optional[Iterable[str]] = None,
        on_send: Optional[Callable[[str, str], None]] = None,
    ):
        self.unreachable_speakers = set(unreachable_speakers)
        self.failing_channels = set(failing_channels)
        self.known_channels = set(known_channels) if known_channels is not None else None
        self._on_send = on_send
        self._dms: dict[str, list[SentMessage]] = defaultdict(list)
        self._posts: dict[str, list[SentMessage]] = defaultdict(list)

    async def send_direct_message(self, speaker_id: str, text: str) -> None:
        if speaker_id in self.unreachable_speakers:
            raise DeliveryError(speaker_id, f"User {speaker_id} does not accept direct messages.")
        self._dms[speaker_id].append(SentMessage(destination=speaker_id, text=text))
        if self._on_send:
            self._on_send(f"dm:{speaker_id}", text)

    async def resolve_channel(self, channel_id: str) -> ChannelRef:
        if self.known_channels is not None and channel_id not in self.known_channels:
            raise ChannelNotFoundError(channel_id)
        try:
            chat_id, thread_id = parse_channel_id(channel_id)
        except ValueError as e:
            raise ChannelNotFoundError(channel_id, str(e)) from e
        return ChannelRef(channel_id=channel_id, chat_id=chat_id, thread_id=thread_id)

    async def send_channel_message(self, channel: ChannelRef, text: str) -> None:
        if channel.channel_id in self.failing_channels:
            raise DeliveryError(channel.channel_id)
        self._posts[channel.channel_id].append(SentMessage(destination=channel.channel_id, text=text))
        if self._on_send:
            self._on_send(f"channel:{channel.channel_id}", text)

    # ── Inspection ────────────────────────────────────────────────────────────

    def dms_for(self, speaker_id: str) -> list[SentMessage]:
        return list(self._dms.get(speaker_id, []))

    def channel_posts(self, channel_id: str) -> list[SentMessage]:
        return list(self._posts.get(channel_id, []))

    @property
    def total_sent(self) -> int:
        return sum(len(v) for v in self._dms.values()) + sum(len(v) for v in self._posts.values())

    def clear(self) -> None:
        self._dms.clear()
        self._posts.clear()
