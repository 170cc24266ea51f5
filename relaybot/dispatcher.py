"""Inbound message dispatcher.

Every update is handled on its own; the only state outside a single
message is the recipient directory.

End-user messages are forwarded to the admin with a signed user tag.
Admin messages are, in order:
  /start, /status, /help, /users  - informational
  /post while replying to a non-user message - media broadcast
  /post ...                        - text broadcast
  reply to a tagged message        - routed reply to that user
  reply to anything else           - "unrecognized" warning
  anything else                    - usage hint
"""

import logging
from typing import Optional

from telegram import Message, Update

from .broadcast import broadcast_message
from .communication import messages as msgs
from .communication.commands import ALL_USERS, POST_COMMAND, Targets, parse_post_targets, strip_command
from .communication.errors import DeliveryError, classify_error
from .config import RelaySettings
from .directory import Directory, RecipientRecord
from .security import create_user_tag, extract_user_chat_id, has_user_tag

logger = logging.getLogger("relaybot.dispatcher")


class RelayDispatcher:
    """Routes one inbound Telegram message at a time."""

    def __init__(self, settings: RelaySettings, transport, directory: Optional[Directory] = None):
        self.settings = settings
        self.transport = transport
        self.directory = directory

    @property
    def admin_chat_id(self) -> str:
        return self.settings.admin_chat_id

    # ── Entry points ─────────────────────────────────────────

    async def handle_update(self, data: dict):
        """Parse a raw webhook update and dispatch its message, if any."""
        update = Update.de_json(data, None)
        if update is None or update.message is None:
            logger.debug("Update without message ignored")
            return
        await self.handle_message(update.message)

    async def handle_message(self, message: Optional[Message]):
        if message is None or message.from_user is None or message.chat is None:
            logger.error("Invalid message format: missing sender or chat")
            return

        user = message.from_user
        chat_id = message.chat.id
        logger.info(f"Message from {msgs.display_name(user)} ({user.id}) in chat {chat_id}")

        if self.settings.is_admin_chat(chat_id):
            await self._handle_admin_message(message)
        else:
            await self._handle_user_message(message)

    async def notify_admin(self, text: str):
        """Best-effort plain-text notice to the admin; never raises."""
        try:
            result = await self.transport.send_text(self.admin_chat_id, text, parse_mode=None)
            if not result.ok:
                logger.error(f"Admin notification rejected: {result.description}")
        except Exception as e:
            logger.error(f"Failed to notify admin: {e}")

    # ── Directory helpers ────────────────────────────────────

    async def _track_user(self, message: Message):
        if not self.settings.tracking_enabled or self.directory is None:
            return
        record = RecipientRecord(
            chat_id=message.chat.id,
            user_name=msgs.display_name(message.from_user),
            user_id=message.from_user.id,
        )
        try:
            await self.directory.upsert(record)
        except Exception as e:
            logger.error(f"Failed to record user {record.chat_id}: {e}")

    async def _list_recipients(self) -> list[RecipientRecord]:
        if not self.settings.tracking_enabled or self.directory is None:
            return []
        try:
            return await self.directory.list_recipients()
        except Exception as e:
            logger.error(f"Failed to load user directory: {e}")
            return []

    async def _count_recipients(self) -> int:
        if not self.settings.tracking_enabled or self.directory is None:
            return 0
        try:
            return await self.directory.count()
        except Exception as e:
            logger.error(f"Failed to count user directory: {e}")
            return 0

    # ── End-user branch ──────────────────────────────────────

    async def _handle_user_message(self, message: Message):
        user = message.from_user
        chat_id = message.chat.id
        user_name = msgs.display_name(user)

        try:
            await self._track_user(message)

            if message.text == "/start":
                await self.transport.send_text(chat_id, msgs.USER_WELCOME)
                return

            tag = create_user_tag(chat_id, self.settings.user_id_secret)
            header = msgs.user_header(user_name, user.id, msgs.format_time(tz_name=self.settings.display_timezone))

            if message.text:
                result = await self.transport.send_text(
                    self.admin_chat_id, msgs.forward_text(header, message.text, tag),
                )
            else:
                result = await self.transport.copy_message(
                    self.admin_chat_id, chat_id, message.message_id,
                    caption=msgs.forward_caption(header, message.caption, tag),
                )

            if not result.ok:
                raise DeliveryError(result.description or "Unknown error")

            logger.info(f"Relayed message: user {user_name} -> admin")
            await self.transport.send_text(chat_id, msgs.USER_DELIVERED)
        except Exception as e:
            logger.error(f"Error handling user message from {chat_id}: {e}", exc_info=True)
            try:
                await self.transport.send_text(chat_id, msgs.USER_FAILED)
            except Exception as send_error:
                logger.error(f"Failed to send failure notice to {chat_id}: {send_error}")

    # ── Admin branch ─────────────────────────────────────────

    async def _reply(self, message: Message, text: str):
        """Answer the admin, threaded under their message."""
        await self.transport.send_text(self.admin_chat_id, text, reply_to_message_id=message.message_id)

    async def _handle_admin_message(self, message: Message):
        text = message.text
        try:
            if text == "/start":
                await self.transport.send_text(
                    self.admin_chat_id, msgs.admin_panel(self.settings.tracking_enabled),
                )
                return

            if text == "/status":
                await self._cmd_status()
                return

            if text == "/help":
                await self.transport.send_text(self.admin_chat_id, msgs.ADMIN_HELP)
                return

            if text == "/users":
                await self._cmd_users()
                return

            if text and text.startswith(POST_COMMAND):
                replied = message.reply_to_message
                if replied is not None and not (has_user_tag(replied.text) or has_user_tag(replied.caption)):
                    await self._cmd_post(message, media_message_id=replied.message_id)
                else:
                    await self._cmd_post(message)
                return

            if message.reply_to_message is not None:
                await self._route_reply(message)
                return

            await self._reply(message, msgs.ADMIN_HINT)
        except Exception as e:
            logger.error(f"Error handling admin message: {e}", exc_info=True)
            await self.notify_admin(msgs.processing_error(classify_error(e)))

    async def _cmd_status(self):
        if self.settings.tracking_enabled:
            user_count = await self._count_recipients()
        else:
            user_count = "tracking disabled"
        await self.transport.send_text(
            self.admin_chat_id,
            msgs.admin_status(user_count, msgs.format_time(tz_name=self.settings.display_timezone)),
        )

    async def _cmd_users(self):
        if not self.settings.tracking_enabled:
            await self.transport.send_text(self.admin_chat_id, msgs.USERS_TRACKING_DISABLED)
            return

        recipients = await self._list_recipients()
        if not recipients:
            await self.transport.send_text(self.admin_chat_id, msgs.USERS_EMPTY)
            return

        await self.transport.send_text(
            self.admin_chat_id,
            msgs.users_list(recipients, len(recipients), self.settings.display_timezone),
        )

    def _validate_targets(self, targets: Targets) -> Optional[str]:
        """Return an error text for unusable targets, else None."""
        if targets == ALL_USERS:
            if not self.settings.tracking_enabled:
                return msgs.POST_TRACKING_DISABLED
            return None
        if not targets:
            return msgs.POST_NO_VALID_IDS
        return None

    async def _cmd_post(self, message: Message, media_message_id: Optional[int] = None):
        """Broadcast text, or copy ``media_message_id`` with the text as caption."""
        media = media_message_id is not None
        command_text = strip_command(message.text)
        if not command_text:
            await self._reply(message, msgs.POST_USAGE)
            return

        targets, post_message = parse_post_targets(command_text)
        if not post_message:
            await self._reply(message, msgs.POST_NO_MESSAGE)
            return

        error = self._validate_targets(targets)
        if error:
            await self._reply(message, error)
            return

        if targets == ALL_USERS:
            target_count = len(await self._list_recipients())
        else:
            target_count = len(targets)
        await self._reply(message, msgs.broadcast_starting(target_count, media=media))

        results = await broadcast_message(
            targets,
            post_message,
            self.transport,
            self.admin_chat_id,
            directory=self.directory if self.settings.tracking_enabled else None,
            media_message_id=media_message_id,
        )

        await self.transport.send_text(
            self.admin_chat_id,
            msgs.broadcast_report(results.success, results.failed, results.errors, media=media),
        )

    async def _route_reply(self, message: Message):
        replied = message.reply_to_message
        user_chat_id = extract_user_chat_id(replied.text or replied.caption, self.settings.user_id_secret)

        if not user_chat_id:
            await self._reply(message, msgs.REPLY_UNRECOGNIZED)
            return

        if message.text:
            result = await self.transport.send_text(user_chat_id, msgs.reply_body(message.text))
        else:
            result = await self.transport.copy_message(
                user_chat_id, self.admin_chat_id, message.message_id,
                caption=msgs.reply_body(message.caption),
            )

        if result.ok:
            await self._reply(message, msgs.reply_sent(user_chat_id))
            logger.info(f"Reply delivered: admin -> user {user_chat_id}")
        else:
            await self._reply(message, msgs.reply_failed(result.description))
