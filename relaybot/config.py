"""Relaybot configuration management."""

import logging
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger("relaybot.config")


class RelaySettings(BaseSettings):
    """Settings loaded from environment variables or .env file.

    Variable names are unprefixed (``BOT_TOKEN``, ``ADMIN_CHAT_ID`` ...).
    The object is frozen: build it once and pass it to every component.
    """

    # Telegram: both required for any request to be served
    bot_token: Optional[str] = Field(default=None, description="Telegram bot token")
    admin_chat_id: Optional[str] = Field(default=None, description="Chat ID of the single admin")

    # Security
    webhook_secret: Optional[str] = Field(
        default=None,
        description="Expected X-Telegram-Bot-Api-Secret-Token header (check disabled when unset)",
    )
    user_id_secret: Optional[str] = Field(
        default=None,
        description="HMAC key for user tags (unset = unkeyed fallback, no forgery protection)",
    )

    # Directory
    enable_user_tracking: str = Field(default="", description="'true' enables the recipient directory")
    database_url: Optional[str] = Field(
        default=None,
        description="PostgreSQL DSN for the recipient directory (in-memory when unset)",
    )

    # Server
    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8080, description="HTTP port")
    debug: bool = Field(default=False, description="Debug mode")
    log_file: Optional[str] = Field(default=None, description="Optional log file path")

    # Presentation
    display_timezone: str = Field(default="Asia/Shanghai", description="Timezone for displayed timestamps")

    model_config = {"env_file": ".env", "extra": "ignore", "frozen": True}

    @property
    def tracking_enabled(self) -> bool:
        return (self.enable_user_tracking or "").strip().lower() == "true"

    def missing_required(self) -> Optional[str]:
        """Return the name of the first missing required variable, or None."""
        if not self.bot_token:
            return "BOT_TOKEN"
        if not self.admin_chat_id:
            return "ADMIN_CHAT_ID"
        return None

    def is_admin_chat(self, chat_id) -> bool:
        return self.admin_chat_id is not None and str(chat_id) == str(self.admin_chat_id).strip()


def load_settings(**overrides) -> RelaySettings:
    """Load settings from environment."""
    settings = RelaySettings(**overrides)

    if not settings.user_id_secret:
        logger.warning(
            "USER_ID_SECRET is not set. User tags fall back to an unkeyed hash "
            "and can be forged by anyone who knows the scheme."
        )
    if settings.tracking_enabled and not settings.database_url:
        logger.warning(
            "User tracking is enabled without DATABASE_URL. "
            "Recipients are kept in memory and lost on restart."
        )

    return settings
