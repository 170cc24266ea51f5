"""Admin command parsing.

  /post all <message>            - broadcast to every tracked user
  /post 123,456,789 <message>    - broadcast to explicit chat IDs
"""

import re
from typing import Union

# Sentinel target meaning "every recipient in the directory"
ALL_USERS = "all"

POST_COMMAND = "/post"

_NUMERIC_ID_RE = re.compile(r"^\d+$")

Targets = Union[str, list[str]]


def parse_post_targets(command_text: str) -> tuple[Targets, str]:
    """Split ``/post`` arguments into (targets, message).

    The first space separates the target token from the message; the
    message keeps any further spaces. Non-numeric IDs are dropped
    silently, so callers must treat an empty list as "nothing to do".

    Args:
        command_text: Text after the ``/post`` command word

    Returns:
        Tuple of (ALL_USERS or list of chat ID strings, message).
        ([], "") when there is no message part.
    """
    if not command_text:
        return [], ""

    parts = command_text.split(" ", 1)
    if len(parts) < 2:
        return [], ""

    targets_str, message = parts

    if targets_str == ALL_USERS:
        return ALL_USERS, message

    user_ids = [
        piece.strip() for piece in targets_str.split(",")
        if _NUMERIC_ID_RE.match(piece.strip())
    ]
    return user_ids, message


def strip_command(text: str, command: str = POST_COMMAND) -> str:
    """Return the argument part of a command message, trimmed."""
    return text[len(command):].strip()
