"""Broadcast fan-out — deliver one payload to many users.

Recipients are processed in batches of BATCH_SIZE. Every delivery in a
batch runs concurrently and the whole batch settles before the next one
starts; BATCH_DELAY seconds separate consecutive batches to stay under
Telegram's rate limits. A failing recipient never stops the others.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from .communication.commands import ALL_USERS, Targets
from .communication.errors import DeliveryError, classify_error
from .communication.messages import broadcast_body
from .directory import Directory

logger = logging.getLogger("relaybot.broadcast")

BATCH_SIZE = 10
BATCH_DELAY = 0.1  # seconds

NO_RECIPIENTS = "No users found to broadcast to. Make sure user tracking is enabled."
NO_VALID_IDS = "No valid user IDs specified"


@dataclass
class BroadcastResult:
    success: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.success + self.failed


async def resolve_targets(targets: Targets, directory: Optional[Directory]) -> list:
    """Expand ALL_USERS into chat IDs from the directory."""
    if targets == ALL_USERS:
        if directory is None:
            return []
        return [record.chat_id for record in await directory.list_recipients()]
    return list(targets)


def _batches(items: Sequence, size: int):
    for i in range(0, len(items), size):
        yield items[i:i + size]


async def broadcast_message(
    targets: Targets,
    message: str,
    transport,
    admin_chat_id,
    directory: Optional[Directory] = None,
    media_message_id: Optional[int] = None,
) -> BroadcastResult:
    """Send ``message`` to every target.

    Args:
        targets: ALL_USERS or a list of chat IDs
        message: Broadcast text (caption when copying media)
        transport: TelegramTransport (or compatible)
        admin_chat_id: Chat the media message is copied from
        directory: Used to resolve ALL_USERS
        media_message_id: When set, copy this admin-chat message instead of sending text

    Returns:
        BroadcastResult with counts and one diagnostic per failure
    """
    chat_ids = await resolve_targets(targets, directory)
    if not chat_ids:
        reason = NO_RECIPIENTS if targets == ALL_USERS else NO_VALID_IDS
        return BroadcastResult(success=0, failed=1, errors=[reason])

    body = broadcast_body(message)

    async def _deliver(chat_id) -> Optional[str]:
        try:
            if media_message_id is not None:
                result = await transport.copy_message(chat_id, admin_chat_id, media_message_id, caption=body)
            else:
                result = await transport.send_text(chat_id, body)
            if not result.ok:
                raise DeliveryError(result.description or "Unknown error")
            return None
        except Exception as e:
            logger.error(f"Broadcast to user {chat_id} failed: {e}")
            return f"{chat_id}: {classify_error(e)}"

    results = BroadcastResult()
    batches = list(_batches(chat_ids, BATCH_SIZE))
    for index, batch in enumerate(batches):
        outcomes = await asyncio.gather(*(_deliver(chat_id) for chat_id in batch), return_exceptions=True)
        for chat_id, outcome in zip(batch, outcomes):
            if outcome is None:
                results.success += 1
            else:
                results.failed += 1
                if isinstance(outcome, BaseException):
                    outcome = f"{chat_id}: {classify_error(outcome)}"
                results.errors.append(outcome)

        if index < len(batches) - 1:
            await asyncio.sleep(BATCH_DELAY)

    logger.info(f"Broadcast finished: {results.success} ok, {results.failed} failed")
    return results
