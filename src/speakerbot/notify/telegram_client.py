"""
notify/telegram_client.py — Telegram notification client

Delivers proactive messages through the Telegram Bot API
(python-telegram-bot). Speaker ids are Telegram user ids; a direct message
only succeeds if the speaker has started a private chat with the bot, which
is exactly the failure the reminder fallback chain (DM → booking thread) is
there to cover.

Channel references are "<chat_id>" or "<chat_id>:<topic_id>" for forum
topics; "@publicchannel" usernames are accepted too.
"""

from __future__ import annotations

from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import BadRequest, Forbidden, TelegramError

from speakerbot.exceptions import ChannelNotFoundError, DeliveryError
from speakerbot.notify.base import ChannelRef, Notifier, chat_key, parse_channel_id
from speakerbot.observability.logger import get_logger

log = get_logger(__name__)

_MAX_MESSAGE_LEN = 4000  # Telegram limit is 4096 chars


def split_message(text: str, max_len: int = _MAX_MESSAGE_LEN) -> list[str]:
    """
    Split long messages into chunks at newline boundaries.

    Formatters cap each user field, so every line fits well under max_len
    and a chunk never ends inside an HTML tag or entity.
    """
    if len(text) <= max_len:
        return [text]

    chunks = []
    while len(text) > max_len:
        split_at = text.rfind("\n", 0, max_len)
        if split_at == -1:
            split_at = max_len
        chunks.append(text[:split_at])
        text = text[split_at:].lstrip("\n")
    if text:
        chunks.append(text)
    return chunks


class TelegramNotifier(Notifier):

    def __init__(self, bot: Bot):
        self._bot = bot

    async def send_direct_message(self, speaker_id: str, text: str) -> None:
        try:
            for chunk in split_message(text):
                await self._bot.send_message(
                    chat_id=chat_key(speaker_id),
                    text=chunk,
                    parse_mode=ParseMode.HTML,
                )
        except Forbidden as e:
            # User never opened a private chat with the bot, or blocked it.
            raise DeliveryError(speaker_id, f"Direct message to {speaker_id} refused: {e}") from e
        except TelegramError as e:
            raise DeliveryError(speaker_id, f"Direct message to {speaker_id} failed: {e}") from e
        log.debug("telegram.dm_sent", speaker_id=speaker_id)

    async def resolve_channel(self, channel_id: str) -> ChannelRef:
        try:
            chat_id, thread_id = parse_channel_id(channel_id)
        except ValueError as e:
            raise ChannelNotFoundError(channel_id, str(e)) from e
        try:
            chat = await self._bot.get_chat(chat_key(chat_id))
        except (BadRequest, Forbidden) as e:
            raise ChannelNotFoundError(channel_id, f"Channel '{channel_id}' not found: {e}") from e
        except TelegramError as e:
            raise DeliveryError(channel_id, f"Could not resolve channel '{channel_id}': {e}") from e
        return ChannelRef(
            channel_id=channel_id,
            chat_id=str(chat.id),
            thread_id=thread_id,
            title=chat.title,
        )

    async def send_channel_message(self, channel: ChannelRef, text: str) -> None:
        try:
            for chunk in split_message(text):
                await self._bot.send_message(
                    chat_id=chat_key(channel.chat_id),
                    text=chunk,
                    parse_mode=ParseMode.HTML,
                    message_thread_id=channel.thread_id,
                )
        except TelegramError as e:
            raise DeliveryError(
                channel.channel_id, f"Post to channel '{channel.channel_id}' failed: {e}"
            ) from e
        log.debug("telegram.channel_post_sent", channel_id=channel.channel_id)
