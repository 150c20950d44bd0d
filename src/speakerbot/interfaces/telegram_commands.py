"""
interfaces/telegram_commands.py — Telegram configuration commands

/set_proactive_channel [channel]
    Set where the weekly schedule summary is posted for this community (the
    group the command is sent from). With no argument the current chat (and
    forum topic, if any) is used. The argument may be a numeric chat id, an
    @username, or "<chat_id>:<topic_id>".

Only chat administrators, the chat owner, or ids listed in
telegram.admin_user_ids may run it. The target is checked before saving:
it must exist and the bot must be able to post there.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable

from telegram import Chat, Update
from telegram.constants import ChatMemberStatus, ChatType
from telegram.error import BadRequest, Forbidden, TelegramError
from telegram.ext import Application, CommandHandler, ContextTypes

from speakerbot.exceptions import StoreError
from speakerbot.notify.base import chat_key, parse_channel_id
from speakerbot.observability.logger import get_logger
from speakerbot.store.base import RecordStore
from speakerbot.store.models import ChannelOverride, utc_now

log = get_logger(__name__)

MSG_GROUP_ONLY = "❌ Run this command in your community group."
MSG_UNAUTHORIZED = "⛔ Only chat administrators can set the proactive channel."
MSG_INVALID_CHANNEL = "❌ Please specify a valid channel."
MSG_CHANNEL_NOT_FOUND = "❌ Channel not found."
MSG_NO_PERMISSION = (
    "❌ I do not have permission to send messages in that channel. "
    "Please ensure I am a member and allowed to post."
)
MSG_VALIDATION_ERROR = "❌ Error validating channel. Please try again."
MSG_SAVE_ERROR = "❌ Error saving channel configuration. Please try again."

_ADMIN_STATUSES = {ChatMemberStatus.ADMINISTRATOR, ChatMemberStatus.OWNER}
_ABSENT_STATUSES = {ChatMemberStatus.LEFT, ChatMemberStatus.BANNED}


def _can_post(chat: Chat, member) -> bool:
    """Whether a bot with this membership can post messages to chat."""
    status = member.status
    if status in _ABSENT_STATUSES:
        return False
    if chat.type == ChatType.CHANNEL:
        # Only admins with the post right can post to a broadcast channel.
        if status == ChatMemberStatus.OWNER:
            return True
        return status == ChatMemberStatus.ADMINISTRATOR and bool(getattr(member, "can_post_messages", False))
    if status == ChatMemberStatus.RESTRICTED:
        return bool(getattr(member, "can_send_messages", False))
    return True


class ProactiveChannelCommand:

    command = "set_proactive_channel"

    def __init__(
        self,
        store: RecordStore,
        admin_user_ids: Iterable[int] = (),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._admin_ids: set[int] = set(admin_user_ids)
        self._clock = clock

    def register(self, app: Application) -> None:
        app.add_handler(CommandHandler(self.command, self.handle))

    # ── Auth helper ───────────────────────────────────────────────────────────

    async def _is_authorized(self, context: ContextTypes.DEFAULT_TYPE, chat_id: int, user_id: int) -> bool:
        if user_id in self._admin_ids:
            return True
        try:
            member = await context.bot.get_chat_member(chat_id, user_id)
        except TelegramError as e:
            log.warning("telegram.admin_check_failed", chat_id=chat_id, user_id=user_id, error=str(e))
            return False
        return member.status in _ADMIN_STATUSES

    # ── Handler ───────────────────────────────────────────────────────────────

    async def handle(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        message = update.effective_message
        chat = update.effective_chat
        user = update.effective_user
        if message is None or chat is None or user is None:
            return

        if chat.type == ChatType.PRIVATE:
            await message.reply_text(MSG_GROUP_ONLY)
            return

        if not await self._is_authorized(context, chat.id, user.id):
            log.warning("telegram.unauthorized", command=self.command, chat_id=chat.id, user_id=user.id)
            await message.reply_text(MSG_UNAUTHORIZED)
            return

        # Target reference: explicit argument, else this chat (and topic).
        if context.args:
            try:
                target_chat_id, thread_id = parse_channel_id(context.args[0])
            except ValueError:
                await message.reply_text(MSG_INVALID_CHANNEL)
                return
        else:
            target_chat_id = str(chat.id)
            thread_id = message.message_thread_id if getattr(message, "is_topic_message", False) else None

        try:
            target = await context.bot.get_chat(chat_key(target_chat_id))
            bot_member = await context.bot.get_chat_member(target.id, context.bot.id)
        except (BadRequest, Forbidden) as e:
            log.info("telegram.channel_not_found", target=target_chat_id, error=str(e))
            await message.reply_text(MSG_CHANNEL_NOT_FOUND)
            return
        except TelegramError as e:
            log.error("telegram.channel_validation_failed", target=target_chat_id, error=str(e))
            await message.reply_text(MSG_VALIDATION_ERROR)
            return

        if not _can_post(target, bot_member):
            await message.reply_text(MSG_NO_PERMISSION)
            return

        channel_id = f"{target.id}:{thread_id}" if thread_id else str(target.id)
        override = ChannelOverride(
            community_id=str(chat.id),
            channel_id=channel_id,
            updated_by=str(user.id),
            updated_at=self._clock(),
        )
        try:
            await self._store.save_channel_override(override)
        except StoreError as e:
            log.error("telegram.channel_override_save_failed", community_id=override.community_id, error=str(e))
            await message.reply_text(MSG_SAVE_ERROR)
            return

        label = target.title or target.username or channel_id
        log.info(
            "telegram.proactive_channel_set",
            community_id=override.community_id,
            channel_id=channel_id,
            updated_by=override.updated_by,
        )
        await message.reply_text(
            f"✅ Proactive announcements channel set to {label}. "
            "Weekly announcements will be posted here."
        )


def build_application(
    token: str,
    store: RecordStore,
    admin_user_ids: Iterable[int] = (),
    clock: Callable[[], datetime] = utc_now,
) -> Application:
    """Telegram Application with the configuration commands registered."""
    app = Application.builder().token(token).build()
    ProactiveChannelCommand(store, admin_user_ids, clock=clock).register(app)
    return app
