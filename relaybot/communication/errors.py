"""Error types and channel-agnostic error classification."""

import asyncio

import httpx
from telegram.error import BadRequest, Forbidden, NetworkError, RetryAfter, TelegramError, TimedOut


class ConfigError(RuntimeError):
    """A required setting is missing."""

    def __init__(self, name: str):
        super().__init__(f"Missing {name} environment variable")
        self.name = name


class DeliveryError(RuntimeError):
    """The transport reported a failed delivery."""

    def __init__(self, description: str = "Unknown error"):
        super().__init__(description)
        self.description = description


def classify_error(e: Exception) -> str:
    """Render any exception as a short diagnostic string.

    Used for per-recipient broadcast diagnostics and admin notices.
    """
    # 1: Our own delivery failures already carry the provider description
    if isinstance(e, DeliveryError):
        return e.description

    # 2-5: Telegram API errors
    if isinstance(e, RetryAfter):
        return f"Rate limited by Telegram, retry after {e.retry_after}s"
    if isinstance(e, Forbidden):
        return f"Forbidden: {e.message}"
    if isinstance(e, BadRequest):
        return f"Bad request: {e.message}"
    if isinstance(e, TimedOut):
        return "Telegram request timed out"
    if isinstance(e, NetworkError):
        return f"Network error: {e.message}"
    if isinstance(e, TelegramError):
        return e.message

    # 6: httpx HTTP status errors
    if isinstance(e, httpx.HTTPStatusError):
        return f"Telegram API error: {e.response.status_code} {e.response.reason_phrase}"

    # 7-8: Network / timeout errors
    if isinstance(e, httpx.ConnectError):
        return "Cannot connect to Telegram API"
    if isinstance(e, (httpx.ReadTimeout, httpx.WriteTimeout, httpx.PoolTimeout, httpx.ConnectTimeout)):
        return "Request timed out"
    if isinstance(e, asyncio.TimeoutError):
        return "Request timed out"

    # 9: Fallback: keep the message, add the type when there is none
    msg = str(e)
    if msg:
        return msg
    return f"Unexpected error ({type(e).__name__})"
