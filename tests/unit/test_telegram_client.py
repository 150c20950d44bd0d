"""
tests/unit/test_telegram_client.py — TelegramNotifier Unit Tests

The Bot is an AsyncMock; no network access.
"""

from __future__ import annotations

from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram.constants import ParseMode
from telegram.error import BadRequest, Forbidden, NetworkError

from speakerbot.exceptions import ChannelNotFoundError, DeliveryError
from speakerbot.notify.base import ChannelRef
from speakerbot.notify.telegram_client import TelegramNotifier, split_message
from speakerbot.proactive.jobs.weekly import format_upcoming_schedule
from speakerbot.store.models import Talk


def _make_bot() -> AsyncMock:
    bot = AsyncMock()
    chat = MagicMock()
    chat.id = -1001
    chat.title = "Community"
    bot.get_chat.return_value = chat
    return bot


class TestDirectMessage:
    @pytest.mark.asyncio
    async def test_sends_html_to_numeric_id(self):
        bot = _make_bot()
        await TelegramNotifier(bot).send_direct_message("42", "<b>hi</b>")
        bot.send_message.assert_awaited_once_with(chat_id=42, text="<b>hi</b>", parse_mode=ParseMode.HTML)

    @pytest.mark.asyncio
    async def test_forbidden_becomes_delivery_error(self):
        bot = _make_bot()
        bot.send_message.side_effect = Forbidden("bot can't initiate conversation with a user")
        with pytest.raises(DeliveryError) as exc_info:
            await TelegramNotifier(bot).send_direct_message("42", "hi")
        assert exc_info.value.destination == "42"

    @pytest.mark.asyncio
    async def test_long_text_sent_in_chunks(self):
        bot = _make_bot()
        await TelegramNotifier(bot).send_direct_message("42", "x" * 5000)
        sent = [c.kwargs["text"] for c in bot.send_message.call_args_list]
        assert [len(t) for t in sent] == [4000, 1000]


class TestChannels:
    @pytest.mark.asyncio
    async def test_resolve_with_topic(self):
        bot = _make_bot()
        ref = await TelegramNotifier(bot).resolve_channel("-1001:77")
        bot.get_chat.assert_awaited_once_with(-1001)
        assert ref == ChannelRef(channel_id="-1001:77", chat_id="-1001", thread_id=77, title="Community")

    @pytest.mark.asyncio
    async def test_resolve_username(self):
        bot = _make_bot()
        await TelegramNotifier(bot).resolve_channel("@community")
        bot.get_chat.assert_awaited_once_with("@community")

    @pytest.mark.asyncio
    async def test_unknown_chat(self):
        bot = _make_bot()
        bot.get_chat.side_effect = BadRequest("Chat not found")
        with pytest.raises(ChannelNotFoundError):
            await TelegramNotifier(bot).resolve_channel("-1")

    @pytest.mark.asyncio
    async def test_network_failure_is_delivery_error(self):
        bot = _make_bot()
        bot.get_chat.side_effect = NetworkError("timeout")
        with pytest.raises(DeliveryError) as exc_info:
            await TelegramNotifier(bot).resolve_channel("-1")
        assert not isinstance(exc_info.value, ChannelNotFoundError)

    @pytest.mark.asyncio
    async def test_post_to_topic(self):
        bot = _make_bot()
        ref = ChannelRef(channel_id="-1001:77", chat_id="-1001", thread_id=77)
        await TelegramNotifier(bot).send_channel_message(ref, "summary")
        bot.send_message.assert_awaited_once_with(
            chat_id=-1001,
            text="summary",
            parse_mode=ParseMode.HTML,
            message_thread_id=77,
        )

    @pytest.mark.asyncio
    async def test_post_failure(self):
        bot = _make_bot()
        bot.send_message.side_effect = Forbidden("bot was kicked")
        with pytest.raises(DeliveryError):
            await TelegramNotifier(bot).send_channel_message(ChannelRef("-1", "-1"), "x")


class TestSplitMessage:
    def test_short_text_is_one_chunk(self):
        assert split_message("hello") == ["hello"]

    def test_splits_at_newline(self):
        text = "a" * 30 + "\n" + "b" * 30
        assert split_message(text, max_len=40) == ["a" * 30, "b" * 30]

    @pytest.mark.asyncio
    async def test_long_digest_posted_without_breaking_html(self):
        talks = [
            Talk(str(i), f"Speaker & Co {i}", "Q&A <live> " * 200, date(2026, 10, 19) + timedelta(days=i % 7))
            for i in range(40)
        ]
        text = format_upcoming_schedule(talks)
        assert len(text) > 4000

        bot = _make_bot()
        ref = ChannelRef(channel_id="-1001", chat_id="-1001")
        await TelegramNotifier(bot).send_channel_message(ref, text)

        sent = [c.kwargs["text"] for c in bot.send_message.call_args_list]
        assert len(sent) > 1
        assert "\n".join(sent).replace("\n\n", "\n") == text.replace("\n\n", "\n")
        for chunk in sent:
            assert len(chunk) <= 4000
            assert chunk.count("<b>") == chunk.count("</b>")
            assert not chunk.rstrip().endswith(("&", "&amp", "&lt", "&gt"))
