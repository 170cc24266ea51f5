"""Telegram transport adapter.

Thin wrapper around ``telegram.Bot`` that turns API rejections into a
``DeliveryResult`` instead of an exception, so relay and broadcast code
can treat "Telegram said no" as data.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import BadRequest, TelegramError

logger = logging.getLogger("relaybot.telegram")


def _is_entity_error(e: TelegramError) -> bool:
    return isinstance(e, BadRequest) and "parse entities" in e.message.lower()


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of a send/copy call."""

    ok: bool
    message_id: Optional[int] = None
    description: Optional[str] = None


class TelegramTransport:
    """Outbound Telegram calls used by the relay."""

    def __init__(self, bot_token: str, bot: Optional[Bot] = None):
        self._bot = bot or Bot(token=bot_token)

    async def _deliver(self, method, label: str, **kwargs) -> DeliveryResult:
        """Call a Bot send method; retry as plain text when Markdown won't parse.

        User names, URLs and free text regularly contain unpaired ``_`` or
        ``*``; Telegram rejects those with "Can't parse entities".
        """
        try:
            sent = await method(**kwargs)
        except TelegramError as e:
            if not (kwargs.get("parse_mode") and _is_entity_error(e)):
                logger.error(f"{label} failed: {e.message}")
                return DeliveryResult(ok=False, description=e.message)
            logger.warning(f"{label}: Markdown rejected ({e.message}), resending as plain text")
            kwargs["parse_mode"] = None
            try:
                sent = await method(**kwargs)
            except TelegramError as plain_error:
                logger.error(f"{label} failed: {plain_error.message}")
                return DeliveryResult(ok=False, description=plain_error.message)
        return DeliveryResult(ok=True, message_id=sent.message_id)

    async def send_text(self, chat_id, text: str, **options) -> DeliveryResult:
        """Send a Markdown text message."""
        options.setdefault("parse_mode", ParseMode.MARKDOWN)
        return await self._deliver(
            self._bot.send_message, f"sendMessage to {chat_id}",
            chat_id=chat_id, text=text, **options,
        )

    async def copy_message(self, chat_id, from_chat_id, message_id: int, **options) -> DeliveryResult:
        """Copy a message (any media type) from one chat to another."""
        if "caption" in options:
            options.setdefault("parse_mode", ParseMode.MARKDOWN)
        return await self._deliver(
            self._bot.copy_message, f"copyMessage {from_chat_id}/{message_id} -> {chat_id}",
            chat_id=chat_id, from_chat_id=from_chat_id, message_id=message_id, **options,
        )

    async def register_webhook(self, url: str, secret: str = "") -> dict:
        """Point Telegram at ``url``; an empty secret disables header signing."""
        result = await self._bot.set_webhook(url=url, secret_token=secret or None)
        logger.info(f"Webhook registered: {url} (ok={result})")
        return {"ok": bool(result), "result": result, "url": url}

    async def get_self_info(self) -> dict:
        """Return the bot's own user object."""
        me = await self._bot.get_me()
        return {"ok": True, "result": me.to_dict()}

    async def close(self):
        try:
            await self._bot.shutdown()
        except Exception as e:
            logger.debug(f"Bot shutdown: {e}")
