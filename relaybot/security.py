"""User identity tags — bind a forwarded message to its sender's chat.

Every message relayed to the admin carries a tag in its visible text:

  [USER:<chat_id>:<signature>]   - signed form (current)
  [USER:<chat_id>]               - legacy unsigned form (read-only)

When the admin replies, the tag is parsed back out of the replied-to
message to find the recipient. The signature is a truncated
HMAC-SHA256 over ``user:<chat_id>`` keyed with USER_ID_SECRET, so a user
cannot craft text that redirects admin replies to somebody else.

Without USER_ID_SECRET the signature degrades to a plain SHA-256 of
``user:<chat_id>:fallback``. That keeps the bot working before a secret
is configured but offers NO forgery resistance: anyone can compute it.
"""

import hashlib
import hmac
import logging
import re
from typing import Optional

logger = logging.getLogger("relaybot.security")

SIGNATURE_LENGTH = 16

_SIGNED_TAG_RE = re.compile(r"\[USER:(\d+):([a-f0-9]{16})\]")
_LEGACY_TAG_RE = re.compile(r"\[USER:(\d+)\](?![:\w])")

# Marker used to tell "replied to a forwarded user message" apart from
# anything else the admin may reply to.
TAG_MARKER = "[USER:"


def sign_user_id(user_id, secret: Optional[str]) -> str:
    """Return the 16-char lowercase hex signature for ``user_id``."""
    if not secret:
        digest = hashlib.sha256(f"user:{user_id}:fallback".encode("utf-8")).hexdigest()
    else:
        digest = hmac.new(
            secret.encode("utf-8"),
            f"user:{user_id}".encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
    return digest[:SIGNATURE_LENGTH]


def verify_user_id(user_id, signature: str, secret: Optional[str]) -> bool:
    """Check that ``signature`` was produced for ``user_id`` with ``secret``."""
    return signature == sign_user_id(user_id, secret)


def create_user_tag(user_id, secret: Optional[str]) -> str:
    """Build the signed tag embedded in forwarded messages."""
    return f"[USER:{user_id}:{sign_user_id(user_id, secret)}]"


def has_user_tag(text: Optional[str]) -> bool:
    return bool(text) and TAG_MARKER in text


def extract_user_chat_id(text: Optional[str], secret: Optional[str]) -> Optional[str]:
    """Recover the chat ID from a tag in ``text``.

    A signed tag always wins: when one is present its signature decides,
    and a legacy tag elsewhere in the same text is ignored. The legacy
    form is only honoured when no signed tag exists at all.

    The bot appends its tag after any user-written text, so when several
    signed tags appear only the last one is considered.

    Returns:
        The chat ID as a string, or None when nothing routable was found
        (no tag, or a tag with a bad signature; both mean "cannot route").
    """
    if not text:
        return None

    signed = _SIGNED_TAG_RE.findall(text)
    if signed:
        user_id, signature = signed[-1]
        if verify_user_id(user_id, signature, secret):
            return user_id
        logger.warning(f"Invalid user tag signature: {user_id}:{signature}")
        return None

    legacy = _LEGACY_TAG_RE.search(text)
    if legacy:
        logger.warning(f"Unsigned legacy user tag used: {legacy.group(1)}")
        return legacy.group(1)

    return None
