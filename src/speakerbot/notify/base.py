"""
notify/base.py — Notification client interface

Three primitives are all the proactive jobs need:
    send_direct_message(speaker_id, text)
    resolve_channel(channel_id) -> ChannelRef
    send_channel_message(channel_ref, text)

Implementations raise DeliveryError (ChannelNotFoundError for resolution)
on failure and return None on success. Message text is HTML-formatted;
user-provided fields are capped with shorten() and escaped by the formatter
that built it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class ChannelRef:
    """A resolved, postable destination."""
    channel_id: str                  # the reference as configured / stored
    chat_id: str                     # the chat the message is posted to
    thread_id: Optional[int] = None  # forum topic inside chat_id, if any
    title: Optional[str] = None


def parse_channel_id(channel_id: str) -> tuple[str, Optional[int]]:
    """
    Split a stored channel reference into (chat_id, thread_id).

    "-1001234"      → ("-1001234", None)
    "-1001234:77"   → ("-1001234", 77)
    """
    chat_id, sep, thread = channel_id.strip().partition(":")
    if not chat_id:
        raise ValueError(f"Invalid channel reference: '{channel_id}'")
    if sep and thread:
        return chat_id, int(thread)
    return chat_id, None


# Longest user-provided field (speaker name, topic) put into a message.
MAX_FIELD_LEN = 300


def shorten(value: str, limit: int = MAX_FIELD_LEN) -> str:
    """Cap a plain-text field before it is HTML-escaped."""
    if len(value) <= limit:
        return value
    return value[: limit - 1].rstrip() + "…"


def chat_key(chat_id: str) -> Union[int, str]:
    """Numeric ids go to the API as int, @usernames as str."""
    return int(chat_id) if chat_id.lstrip("-").isdigit() else chat_id


class Notifier(ABC):

    @abstractmethod
    async def send_direct_message(self, speaker_id: str, text: str) -> None:
        ...

    @abstractmethod
    async def resolve_channel(self, channel_id: str) -> ChannelRef:
        ...

    @abstractmethod
    async def send_channel_message(self, channel: ChannelRef, text: str) -> None:
        ...
