"""Tests for the recipient directory."""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from relaybot.directory import MAX_RECIPIENTS, MemoryDirectory, PostgresDirectory, RecipientRecord

BASE = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _record(chat_id: int, minutes: int, name: str = "user") -> RecipientRecord:
    return RecipientRecord(chat_id=chat_id, user_name=name, user_id=chat_id, last_active=BASE + timedelta(minutes=minutes))


class TestRecipientRecord:

    def test_round_trip_dict(self):
        record = _record(7, 3, "alice")
        restored = RecipientRecord.from_dict(record.to_dict())
        assert restored == record

    def test_from_row_defaults(self):
        record = RecipientRecord.from_dict({"chat_id": 5, "user_name": None, "last_active": BASE})
        assert record.user_name == "Unknown"
        assert record.user_id is None
        assert record.last_active == BASE


class TestMemoryDirectory:

    @pytest.mark.asyncio
    async def test_upsert_and_list(self):
        directory = MemoryDirectory()
        await directory.upsert(_record(1, 0))
        await directory.upsert(_record(2, 10))
        await directory.upsert(_record(3, 5))

        records = await directory.list_recipients()
        assert [r.chat_id for r in records] == [2, 3, 1]
        assert await directory.count() == 3

    @pytest.mark.asyncio
    async def test_upsert_refreshes_existing(self):
        directory = MemoryDirectory()
        await directory.upsert(_record(1, 0, "old-name"))
        await directory.upsert(_record(2, 5))
        await directory.upsert(_record(1, 20, "new-name"))

        records = await directory.list_recipients()
        assert len(records) == 2
        assert records[0].chat_id == 1
        assert records[0].user_name == "new-name"

    @pytest.mark.asyncio
    async def test_cap_evicts_least_recent(self):
        directory = MemoryDirectory()
        for i in range(MAX_RECIPIENTS):
            await directory.upsert(_record(i, i))
        assert await directory.count() == MAX_RECIPIENTS

        await directory.upsert(_record(5000, MAX_RECIPIENTS + 1))

        records = await directory.list_recipients()
        assert len(records) == MAX_RECIPIENTS
        chat_ids = {r.chat_id for r in records}
        assert 0 not in chat_ids
        assert 5000 in chat_ids
        evicted_time = BASE
        assert all(r.last_active > evicted_time for r in records)

    @pytest.mark.asyncio
    async def test_cap_evicts_newcomer_when_it_is_oldest(self):
        directory = MemoryDirectory(max_size=3)
        for i in range(3):
            await directory.upsert(_record(i, 10 + i))

        await directory.upsert(_record(99, 0))

        chat_ids = [r.chat_id for r in await directory.list_recipients()]
        assert chat_ids == [2, 1, 0]

    @pytest.mark.asyncio
    async def test_refresh_at_cap_evicts_nothing(self):
        directory = MemoryDirectory(max_size=3)
        for i in range(3):
            await directory.upsert(_record(i, i))
        await directory.upsert(_record(0, 50))
        assert await directory.count() == 3


def _fake_connection():
    conn = MagicMock()
    conn.execute = AsyncMock()
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchval = AsyncMock(return_value=0)

    @asynccontextmanager
    async def _ctx():
        yield conn

    return conn, _ctx


class TestPostgresDirectory:
    """SQL issued by the PostgreSQL backend (connection mocked)."""

    @pytest.mark.asyncio
    async def test_upsert_inserts_then_trims(self):
        conn, ctx = _fake_connection()
        record = _record(42, 1, "bob")
        with patch("relaybot.directory.get_transaction", ctx):
            await PostgresDirectory().upsert(record)

        assert conn.execute.await_count == 2
        insert_call, trim_call = conn.execute.call_args_list
        assert "INSERT INTO recipients" in insert_call.args[0]
        assert "ON CONFLICT (chat_id)" in insert_call.args[0]
        assert insert_call.args[1:] == (42, "bob", 42, record.last_active)
        assert "DELETE FROM recipients" in trim_call.args[0]
        assert trim_call.args[1] == MAX_RECIPIENTS

    @pytest.mark.asyncio
    async def test_list_maps_rows(self):
        conn, ctx = _fake_connection()
        conn.fetch.return_value = [
            {"chat_id": 2, "user_name": "b", "user_id": 2, "last_active": BASE + timedelta(minutes=1)},
            {"chat_id": 1, "user_name": "a", "user_id": 1, "last_active": BASE},
        ]
        with patch("relaybot.directory.get_connection", ctx):
            records = await PostgresDirectory().list_recipients()

        assert "ORDER BY last_active DESC" in conn.fetch.call_args.args[0]
        assert [r.chat_id for r in records] == [2, 1]
        assert records[0].user_name == "b"

    @pytest.mark.asyncio
    async def test_count(self):
        conn, ctx = _fake_connection()
        conn.fetchval.return_value = 17
        with patch("relaybot.directory.get_connection", ctx):
            assert await PostgresDirectory().count() == 17

    @pytest.mark.asyncio
    async def test_ensure_schema(self):
        conn, ctx = _fake_connection()
        with patch("relaybot.directory.get_connection", ctx):
            await PostgresDirectory().ensure_schema()
        assert "CREATE TABLE IF NOT EXISTS recipients" in conn.execute.call_args.args[0]
