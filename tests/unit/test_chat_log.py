"""Tests for ChatMessage and the in-memory chat log."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from aether_pipeline.chat_log import ChatMessage, ChatStats, InMemoryChatLog

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


class TestChatMessage:
    def test_to_dict_uses_camel_case(self) -> None:
        message = ChatMessage(
            user_id="u1",
            role="assistant",
            content="hi",
            model="gemini-2.5-flash",
            tokens_used=3,
            cost=0.5,
            ledger_transaction_id="tx",
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
        assert message.to_dict() == {
            "role": "assistant",
            "content": "hi",
            "model": "gemini-2.5-flash",
            "tokensUsed": 3,
            "cost": 0.5,
            "ledgerTransactionId": "tx",
            "createdAt": "2026-01-01T00:00:00+00:00",
        }

    def test_created_at_defaults_to_utc_now(self) -> None:
        assert ChatMessage(user_id="u1", role="user", content="x").created_at.tzinfo


class TestInMemoryChatLog:
    async def test_history_is_per_user_newest_first(self) -> None:
        log = InMemoryChatLog()
        for i in range(5):
            await log.save(ChatMessage(user_id="u1", role="user", content=f"m{i}"))
        await log.save(ChatMessage(user_id="u2", role="user", content="other"))

        messages, total = await log.history("u1", limit=2, offset=1)
        assert total == 5
        assert [m.content for m in messages] == ["m3", "m2"]

    async def test_empty(self) -> None:
        assert await InMemoryChatLog().history("u1", limit=10) == ([], 0)


class TestChatStats:
    def test_empty_averages_are_zero(self) -> None:
        assert ChatStats().to_dict() == {
            "totalMessages": 0,
            "totalTokensUsed": 0,
            "totalCost": 0.0,
            "avgCostPerMessage": "0.000000",
            "avgTokensPerMessage": 0,
            "firstMessageAt": None,
            "lastMessageAt": None,
        }

    def test_averages(self) -> None:
        stats = ChatStats(
            total_messages=4,
            total_tokens_used=10,
            total_cost=0.0002,
            first_message_at=T0,
            last_message_at=T0 + timedelta(hours=1),
        )
        body = stats.to_dict()
        assert body["avgCostPerMessage"] == "0.000050"
        assert body["avgTokensPerMessage"] == 2
        assert body["lastMessageAt"] == "2026-01-01T01:00:00+00:00"


class TestInMemoryChatLogMaintenance:
    async def test_stats_are_per_user(self) -> None:
        log = InMemoryChatLog()
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

        stats = await log.stats("u1")
        assert stats == ChatStats(
            total_messages=2,
            total_tokens_used=12,
            total_cost=0.25,
            first_message_at=T0,
            last_message_at=T0 + timedelta(minutes=1),
        )
        assert await log.stats("nobody") == ChatStats()

    async def test_delete_older_than_cutoff(self) -> None:
        log = InMemoryChatLog()
        for days_ago in (10, 5, 1):
            stamp = T0 - timedelta(days=days_ago)
            await log.save(ChatMessage("u1", "user", f"d{days_ago}", created_at=stamp))
        await log.save(
            ChatMessage("u2", "user", "old", created_at=T0 - timedelta(days=30))
        )

        assert await log.delete_older_than("u1", T0 - timedelta(days=3)) == 2
        messages, total = await log.history("u1", limit=10)
        assert [m.content for m in messages] == ["d1"]
        assert (await log.history("u2", limit=10))[1] == 1

    async def test_delete_without_cutoff_removes_all(self) -> None:
        log = InMemoryChatLog()
        await log.save(ChatMessage("u1", "user", "a"))
        await log.save(ChatMessage("u1", "user", "b"))
        assert await log.delete_older_than("u1", None) == 2
        assert await log.history("u1", limit=10) == ([], 0)
