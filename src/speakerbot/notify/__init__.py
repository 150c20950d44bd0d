"""
notify/ — Outbound message delivery

    Notifier            abstract client (DM, channel post, channel lookup)
    TelegramNotifier    python-telegram-bot implementation
    RecordingNotifier   in-process recorder for simulation and tests
"""

from speakerbot.notify.base import ChannelRef, Notifier, parse_channel_id
from speakerbot.notify.recording import RecordingNotifier, SentMessage

__all__ = [
    "ChannelRef",
    "Notifier",
    "parse_channel_id",
    "RecordingNotifier",
    "SentMessage",
]
