"""Communication sub-core — everything that touches Telegram text.

- Commands: /post argument parsing
- Messages: user/admin facing text
- Errors: error types and classification
- Telegram: outbound transport adapter
"""

from .commands import ALL_USERS, parse_post_targets, strip_command
from .errors import ConfigError, DeliveryError, classify_error
from .telegram import DeliveryResult, TelegramTransport

__all__ = [
    # Commands
    "ALL_USERS",
    "parse_post_targets",
    "strip_command",
    # Errors
    "ConfigError",
    "DeliveryError",
    "classify_error",
    # Telegram
    "DeliveryResult",
    "TelegramTransport",
]
