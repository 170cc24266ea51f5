"""Recipient directory — the set of users eligible for ``/post all``.

Keyed by chat ID with recency tracked per record. Capped at
MAX_RECIPIENTS; when an upsert pushes the directory over the cap the
least recently active records are evicted.

Two backends:
- MemoryDirectory: process-local dict (default, lost on restart)
- PostgresDirectory: ``recipients`` table via asyncpg (DATABASE_URL)

Concurrent upserts are not coordinated beyond what each backend gives
for free; a lost ``last_active`` refresh is harmless.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from .db.connection import apply_schema, get_connection, get_transaction

logger = logging.getLogger("relaybot.directory")

MAX_RECIPIENTS = 1000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RecipientRecord:
    """A known end-user conversation."""

    chat_id: int
    user_name: str = "Unknown"
    user_id: Optional[int] = None
    last_active: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict:
        return {
            "chat_id": self.chat_id,
            "user_name": self.user_name,
            "user_id": self.user_id,
            "last_active": self.last_active.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RecipientRecord":
        last_active = data.get("last_active")
        if isinstance(last_active, str):
            last_active = datetime.fromisoformat(last_active)
        return cls(
            chat_id=data["chat_id"],
            user_name=data.get("user_name") or "Unknown",
            user_id=data.get("user_id"),
            last_active=last_active or _utcnow(),
        )


class Directory(ABC):
    """Directory store interface."""

    @abstractmethod
    async def list_recipients(self) -> list[RecipientRecord]:
        """All records, most recently active first."""

    @abstractmethod
    async def upsert(self, record: RecipientRecord) -> None:
        """Insert or refresh ``record`` and enforce the size cap."""

    async def count(self) -> int:
        return len(await self.list_recipients())


class MemoryDirectory(Directory):
    """In-process directory keyed by chat ID."""

    def __init__(self, max_size: int = MAX_RECIPIENTS):
        self.max_size = max_size
        self._records: dict[int, RecipientRecord] = {}

    async def list_recipients(self) -> list[RecipientRecord]:
        return sorted(self._records.values(), key=lambda r: r.last_active, reverse=True)

    async def upsert(self, record: RecipientRecord) -> None:
        self._records[record.chat_id] = record
        if len(self._records) > self.max_size:
            ranked = sorted(self._records.values(), key=lambda r: r.last_active, reverse=True)
            for evicted in ranked[self.max_size:]:
                del self._records[evicted.chat_id]
                logger.debug(f"Evicted recipient {evicted.chat_id} (last active {evicted.last_active})")

    async def count(self) -> int:
        return len(self._records)


class PostgresDirectory(Directory):
    """Directory backed by the ``recipients`` table.

    Requires ``init_db()`` to have been called.
    """

    def __init__(self, max_size: int = MAX_RECIPIENTS):
        self.max_size = max_size

    async def ensure_schema(self):
        async with get_connection() as conn:
            await apply_schema(conn)

    async def list_recipients(self) -> list[RecipientRecord]:
        async with get_connection() as conn:
            rows = await conn.fetch("""
                SELECT chat_id, user_name, user_id, last_active
                FROM recipients ORDER BY last_active DESC
            """)
            return [RecipientRecord.from_dict(dict(row)) for row in rows]

    async def upsert(self, record: RecipientRecord) -> None:
        async with get_transaction() as conn:
            await conn.execute("""
                INSERT INTO recipients (chat_id, user_name, user_id, last_active)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (chat_id) DO UPDATE SET
                    user_name = EXCLUDED.user_name,
                    user_id = EXCLUDED.user_id,
                    last_active = EXCLUDED.last_active
            """, record.chat_id, record.user_name, record.user_id, record.last_active)
            await conn.execute("""
                DELETE FROM recipients WHERE chat_id IN (
                    SELECT chat_id FROM recipients
                    ORDER BY last_active DESC OFFSET $1
                )
            """, self.max_size)

    async def count(self) -> int:
        async with get_connection() as conn:
            return await conn.fetchval("SELECT COUNT(*) FROM recipients")
