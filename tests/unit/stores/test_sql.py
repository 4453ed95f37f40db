"""Tests for the SQL stores on a file-backed SQLite database."""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from aether_pipeline.chat_log import ChatMessage, ChatStats
from aether_pipeline.components.throttling import (
    FixedWindowRateLimiter,
    RateLimitRecord,
    RateLimitStore,
)
from aether_pipeline.exceptions import DependencyFault, Service
from aether_pipeline.ledger_log import LedgerSummary, LedgerTransaction
from aether_pipeline.stores import (
    SqlChatLog,
    SqlLedgerLog,
    SqlRateLimitStore,
    create_schema,
    health_check,
)

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'aether.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sql_store(engine: AsyncEngine) -> SqlRateLimitStore:
    return SqlRateLimitStore(engine)


class TestSqlRateLimitStore:
    def test_conforms_to_protocol(self, sql_store: SqlRateLimitStore) -> None:
        assert isinstance(sql_store, RateLimitStore)

    async def test_missing_record(self, sql_store: SqlRateLimitStore) -> None:
        assert await sql_store.get("nobody") is None

    async def test_ensure_user_defaults(self, sql_store: SqlRateLimitStore) -> None:
        await sql_store.ensure_user("u1")
        await sql_store.ensure_user("u1")
        assert await sql_store.get("u1") == RateLimitRecord(user_id="u1")

    async def test_set_inserts_then_updates(self, sql_store: SqlRateLimitStore) -> None:
        reset_at = T0 + timedelta(minutes=15)
        await sql_store.set(RateLimitRecord("u1", call_count=4, window_reset_at=reset_at))
        await sql_store.set(RateLimitRecord("u1", call_count=0, window_reset_at=reset_at))

        record = await sql_store.get("u1")
        assert record == RateLimitRecord("u1", call_count=0, window_reset_at=reset_at)
        assert record is not None and record.window_reset_at.tzinfo is not None

    async def test_increment(self, sql_store: SqlRateLimitStore) -> None:
        await sql_store.ensure_user("u1")
        await sql_store.increment("u1")
        await sql_store.increment("u1", 2)
        record = await sql_store.get("u1")
        assert record is not None and record.call_count == 3

    async def test_increment_unknown_is_noop(self, sql_store: SqlRateLimitStore) -> None:
        await sql_store.increment("ghost")
        assert await sql_store.get("ghost") is None

    async def test_limiter_sequence(self, sql_store: SqlRateLimitStore) -> None:
        limiter = FixedWindowRateLimiter(sql_store, clock=lambda: T0)
        await sql_store.ensure_user("u1")
        remaining = []
        for _ in range(4):
            status = await limiter.check_and_consume("u1", 3, 1000)
            remaining.append((status.allowed, status.remaining))
            if status.allowed:
                await limiter.charge("u1")
        assert remaining == [(True, 2), (True, 1), (True, 0), (False, 0)]


class TestSqlChatLog:
    async def test_history_newest_first_with_total(self, engine: AsyncEngine) -> None:
        log = SqlChatLog(engine)
        for i in range(3):
            await log.save(
                ChatMessage(
                    user_id="u1",
                    role="user",
                    content=f"m{i}",
                    created_at=T0 + timedelta(seconds=i),
                )
            )
        await log.save(ChatMessage(user_id="u2", role="user", content="other"))

        messages, total = await log.history("u1", limit=2)
        assert total == 3
        assert [m.content for m in messages] == ["m2", "m1"]
        assert messages[0].created_at == T0 + timedelta(seconds=2)

        page_two, _ = await log.history("u1", limit=2, offset=2)
        assert [m.content for m in page_two] == ["m0"]

    async def test_keeps_reply_metadata(self, engine: AsyncEngine) -> None:
        log = SqlChatLog(engine)
        await log.save(
            ChatMessage(
                user_id="u1",
                role="assistant",
                content="hi",
                model="gemini-2.5-flash",
                tokens_used=12,
                cost=0.000036,
                ledger_transaction_id="0.0.1@1.2",
                created_at=T0,
            )
        )
        (message,), _ = await log.history("u1", limit=10)
        assert message.model == "gemini-2.5-flash"
        assert message.tokens_used == 12
        assert message.ledger_transaction_id == "0.0.1@1.2"

    async def test_empty_history(self, engine: AsyncEngine) -> None:
        assert await SqlChatLog(engine).history("nobody", limit=5) == ([], 0)

    async def test_stats(self, engine: AsyncEngine) -> None:
        log = SqlChatLog(engine)
        await log.save(ChatMessage("u1", "user", "q", created_at=T0))
        await log.save(
            ChatMessage(
                "u1",
                "assistant",
                "a",
                tokens_used=12,
                cost=0.25,
                created_at=T0 + timedelta(minutes=1),
            )
        )
        await log.save(ChatMessage("u2", "user", "other", tokens_used=99))

        assert await log.stats("u1") == ChatStats(
            total_messages=2,
            total_tokens_used=12,
            total_cost=0.25,
            first_message_at=T0,
            last_message_at=T0 + timedelta(minutes=1),
        )
        assert await log.stats("nobody") == ChatStats()

    async def test_delete_older_than(self, engine: AsyncEngine) -> None:
        log = SqlChatLog(engine)
        for days_ago in (10, 5, 1):
            stamp = T0 - timedelta(days=days_ago)
            await log.save(ChatMessage("u1", "user", f"d{days_ago}", created_at=stamp))
        await log.save(
            ChatMessage("u2", "user", "keep", created_at=T0 - timedelta(days=30))
        )

        assert await log.delete_older_than("u1", T0 - timedelta(days=3)) == 2
        messages, _ = await log.history("u1", limit=10)
        assert [m.content for m in messages] == ["d1"]

        assert await log.delete_older_than("u1", None) == 1
        assert await log.history("u1", limit=10) == ([], 0)
        assert (await log.history("u2", limit=10))[1] == 1


class TestSqlLedgerLog:
    async def test_round_trip_keeps_full_receipt(self, engine: AsyncEngine) -> None:
        log = SqlLedgerLog(engine)
        saved = LedgerTransaction(
            user_id="u1",
            transaction_id="0.0.1234@1700000000.1",
            consensus_timestamp="1700000000.000000001",
            status="SUCCESS",
            cost=0.0001,
            carbon_impact=-0.5,
            metadata={"model": "gemini-2.5-flash", "tokensUsed": 12},
            created_at=T0,
        )
        await log.save(saved)
        assert await log.recent("u1") == [saved]

    async def test_recent_and_summary(self, engine: AsyncEngine) -> None:
        log = SqlLedgerLog(engine)
        for n, (cost, carbon) in enumerate([(0.25, -1.5), (0.5, -0.5)]):
            await log.save(
                LedgerTransaction(
                    user_id="u1",
                    transaction_id=f"tx-{n}",
                    consensus_timestamp=f"1700000000.{n}",
                    status="SUCCESS",
                    cost=cost,
                    carbon_impact=carbon,
                    created_at=T0 + timedelta(seconds=n),
                )
            )

        assert [t.transaction_id for t in await log.recent("u1", limit=1)] == ["tx-1"]
        assert await log.summary("u1") == LedgerSummary(
            total_transactions=2, total_cost=0.75, total_carbon_saved=2.0
        )
        assert await log.summary("nobody") == LedgerSummary()


class TestDatabaseFaults:
    async def test_errors_become_dependency_faults(self, tmp_path: Path) -> None:
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
        try:
            with pytest.raises(DependencyFault) as info:
                await SqlRateLimitStore(engine).get("u1")
        finally:
            await engine.dispose()
        assert info.value.service is Service.DATABASE
        assert info.value.code.value == "DATABASE_ERROR"

    async def test_health_check(self, engine: AsyncEngine) -> None:
        assert await health_check(engine) is True
