"""User- and admin-facing message text.

All text is Telegram Markdown (legacy). Keep builders pure so the
dispatcher stays readable and tests can match on exact strings.
"""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

MAX_REPORTED_ERRORS = 5
MAX_LISTED_USERS = 20

SEPARATOR = "────────────────────"


def format_time(when: Optional[datetime] = None, tz_name: str = "UTC") -> str:
    """Format ``when`` (default: now) in the given IANA timezone."""
    when = when or datetime.now(timezone.utc)
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        tz = timezone.utc
    return when.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S")


def display_name(user) -> str:
    """Username, then first name, then 'Unknown'."""
    if user is None:
        return "Unknown"
    return user.username or user.first_name or "Unknown"


# ============================================================
# END-USER SIDE
# ============================================================

USER_WELCOME = (
    "👋 Hello! I am a message relay bot.\n\n"
    "Send me your message and I will forward it to the admin, "
    "who will reply as soon as possible."
)

USER_DELIVERED = "✅ Your message has been delivered to the admin. Please wait for a reply."

USER_FAILED = "❌ Sorry, your message could not be delivered. Please try again later."


def user_header(user_name: str, user_id, time_str: str) -> str:
    return (
        f"📩 *From user: {user_name}*\n"
        f"🆔 ID: `{user_id}`\n"
        f"⏰ Time: {time_str}\n"
        f"{SEPARATOR}"
    )


def forward_text(header: str, text: str, tag: str) -> str:
    return f"{header}\n📝 *Message:*\n{text}\n\n`{tag}`"


def forward_caption(header: str, caption: Optional[str], tag: str) -> str:
    body = f"📝 *Caption:* {caption}\n\n" if caption else ""
    return f"{header}\n{body}`{tag}`"


# ============================================================
# ADMIN SIDE
# ============================================================

def admin_panel(tracking_enabled: bool) -> str:
    status = "🟢 Enabled" if tracking_enabled else "🔴 Disabled"
    return (
        "🔧 *Admin panel*\n\n"
        "👋 Welcome to the message relay bot admin panel!\n\n"
        "📋 *Commands:*\n"
        "• `/status` - Show bot status\n"
        "• `/help` - Show help\n"
        "• `/post` - Broadcast a message\n"
        "• `/users` - List tracked users (requires user tracking)\n\n"
        "💡 *Usage:*\n"
        "• Reply to a forwarded user message to answer that user\n"
        "• Use /post to broadcast\n\n"
        "📊 *System status:*\n"
        f"• User tracking: {status}\n\n"
        "🤖 Bot is ready and waiting for user messages..."
    )


def admin_status(user_count, time_str: str) -> str:
    return (
        "📊 *Bot status*\n\n"
        "🟢 State: running\n"
        "🔄 Mode: stateless relay\n"
        f"👥 Tracked users: {user_count}\n"
        f"⏰ Queried at: {time_str}"
    )


ADMIN_HELP = (
    "❓ *Help*\n\n"
    "🔄 *Replying to users:*\n"
    "Reply to a forwarded user message and your reply is sent to that user\n\n"
    "📢 *Broadcast:*\n"
    "• `/post all message` - Broadcast to all users (requires user tracking)\n"
    "• `/post 123,456,789 message` - Broadcast to the given users\n"
    "• Reply to a media message with /post to broadcast that media\n\n"
    "👥 *Users:*\n"
    "• `/users` - List tracked users\n\n"
    "📝 *Message types:*\n"
    "• Text, photos, files and any other message type are supported\n"
    "• Markdown formatting is supported\n\n"
    "⚙️ *Commands:*\n"
    "• `/start` - Show the admin panel\n"
    "• `/status` - Show bot status\n"
    "• `/help` - Show this help\n"
    "• `/post` - Broadcast a message\n"
    "• `/users` - List tracked users"
)

POST_USAGE = (
    "📢 *Broadcast usage*\n\n"
    "🎯 *Format:*\n"
    "• `/post all message` - Broadcast to all users\n"
    "• `/post 123,456,789 message` - Broadcast to the given users\n\n"
    "💡 *Examples:*\n"
    "• `/post all Maintenance tonight 22:00-23:00`\n"
    "• `/post 123456789,987654321 Hello, this is a test`\n\n"
    "📎 *Media broadcast:*\n"
    "Reply to a message containing a photo/file, then use /post\n\n"
    "⚠️ *Notes:*\n"
    "• 'all' requires user tracking\n"
    "• Separate explicit user IDs with commas\n"
    "• Broadcasts are rate limited automatically"
)

POST_NO_MESSAGE = "❌ Please provide the message to broadcast"

POST_TRACKING_DISABLED = (
    "❌ Broadcasting to 'all' requires user tracking\n\n"
    "Set `ENABLE_USER_TRACKING=true` and configure the user directory"
)

POST_NO_VALID_IDS = (
    "❌ No valid user IDs found\n\n"
    "Check the format: `/post 123,456,789 message`"
)

USERS_TRACKING_DISABLED = (
    "❌ User tracking is disabled\n\n"
    "Set `ENABLE_USER_TRACKING=true` and configure the user directory"
)

USERS_EMPTY = "📭 No users recorded yet\n\nUsers are recorded when they first message the bot"

REPLY_UNRECOGNIZED = "⚠️ Could not identify the user. Reply to a forwarded message that carries a user tag."

ADMIN_HINT = (
    "💡 *Hint:* reply to a specific user message to answer it, or use the broadcast command.\n\n"
    "📢 Broadcast: `/post all message`\n"
    "❓ Help: `/help`"
)

BROADCAST_PREFIX = "📢 *Admin broadcast:*"
REPLY_PREFIX = "💬 *Admin reply:*"


def broadcast_body(message: str) -> str:
    return f"{BROADCAST_PREFIX}\n\n{message}"


def reply_body(text: Optional[str]) -> str:
    return f"{REPLY_PREFIX}\n\n{text}" if text else REPLY_PREFIX


def broadcast_starting(target_count: int, media: bool = False) -> str:
    if media:
        return f"🚀 Starting media broadcast...\n\n📊 Target users: {target_count}"
    return f"🚀 Starting broadcast...\n\n📊 Target users: {target_count}\n⏳ Please wait..."


def broadcast_report(success: int, failed: int, errors: list[str], media: bool = False) -> str:
    """Completion report; shows at most MAX_REPORTED_ERRORS diagnostics."""
    title = "📊 *Media broadcast complete*" if media else "📊 *Broadcast report*"
    text = f"{title}\n\n✅ Success: {success}\n❌ Failed: {failed}\n\n"
    if not errors:
        return text + "🎉 All messages delivered!"
    shown = "\n".join(errors[:MAX_REPORTED_ERRORS])
    text += f"🔍 *Errors:*\n{shown}"
    if len(errors) > MAX_REPORTED_ERRORS:
        text += f"\n... and {len(errors) - MAX_REPORTED_ERRORS} more errors"
    return text


def reply_sent(chat_id) -> str:
    return f"✅ Reply sent to user (ID: {chat_id})"


def reply_failed(description: Optional[str]) -> str:
    return f"❌ Reply failed: {description or 'unknown error'}"


def users_list(records: list, total: int, tz_name: str) -> str:
    """Render the most recent recipients (already sorted, most recent first)."""
    shown = records[:MAX_LISTED_USERS]
    lines = []
    for index, record in enumerate(shown, start=1):
        lines.append(
            f"{index}. {record.user_name}\n"
            f"   ID: `{record.chat_id}`\n"
            f"   Last active: {format_time(record.last_active, tz_name)}"
        )
    more = "\n\n..." if total > MAX_LISTED_USERS else ""
    return f"👥 *Users* (latest {len(shown)}/{total})\n\n" + "\n\n".join(lines) + more


def processing_error(e: str) -> str:
    return f"❌ Error while processing message: {e}"


def bot_error(e: str) -> str:
    return f"🚨 Bot error: {e}"


def system_error(e: str) -> str:
    return f"🚨 System error: {e}"
