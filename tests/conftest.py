"""Pytest configuration and shared fixtures."""

import itertools
from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram import Update

from relaybot.communication.telegram import DeliveryResult
from relaybot.config import RelaySettings
from relaybot.directory import MemoryDirectory

ADMIN_ID = 999
SECRET = "test-secret"

_message_ids = itertools.count(100)


def make_settings(**overrides) -> RelaySettings:
    """Settings isolated from the process environment and .env files."""
    values = {
        "bot_token": "123456:TEST-TOKEN",
        "admin_chat_id": str(ADMIN_ID),
        "webhook_secret": None,
        "user_id_secret": SECRET,
        "enable_user_tracking": "true",
        "database_url": None,
        "display_timezone": "UTC",
    }
    values.update(overrides)
    return RelaySettings(_env_file=None, **values)


def make_message_dict(
    chat_id: int,
    text: str | None = None,
    caption: str | None = None,
    user_id: int | None = None,
    username: str | None = None,
    first_name: str = "Test",
    message_id: int | None = None,
    photo: bool = False,
    reply_to: dict | None = None,
) -> dict:
    """Build a Telegram message payload as delivered by the webhook."""
    sender = {"id": user_id or chat_id, "is_bot": False, "first_name": first_name}
    if username:
        sender["username"] = username
    message = {
        "message_id": message_id if message_id is not None else next(_message_ids),
        "date": 1700000000,
        "chat": {"id": chat_id, "type": "private"},
        "from": sender,
    }
    if text is not None:
        message["text"] = text
    if caption is not None:
        message["caption"] = caption
    if photo:
        message["photo"] = [{"file_id": "photo-file", "file_unique_id": "photo-uniq", "width": 90, "height": 90}]
    if reply_to is not None:
        message["reply_to_message"] = reply_to
    return message


def make_update(**kwargs) -> dict:
    return {"update_id": next(_message_ids), "message": make_message_dict(**kwargs)}


def make_message(**kwargs):
    """Parsed ``telegram.Message`` for dispatcher tests."""
    return Update.de_json(make_update(**kwargs), None).message


def sent_texts(transport, chat_id) -> list[str]:
    """Texts passed to ``send_text`` for ``chat_id`` (compared as strings)."""
    return [
        c.args[1] for c in transport.send_text.call_args_list
        if str(c.args[0]) == str(chat_id)
    ]


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def transport():
    """Transport double: every call succeeds unless a test says otherwise."""
    mock = MagicMock()
    mock.send_text = AsyncMock(return_value=DeliveryResult(ok=True, message_id=1))
    mock.copy_message = AsyncMock(return_value=DeliveryResult(ok=True, message_id=2))
    mock.register_webhook = AsyncMock(return_value={"ok": True, "result": True, "url": ""})
    mock.get_self_info = AsyncMock(return_value={"ok": True, "result": {"id": 1, "username": "relay_bot"}})
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def directory():
    return MemoryDirectory()
