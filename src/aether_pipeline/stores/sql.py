"""SQL stores — SQLAlchemy async Core over the users, chat and ledger tables.

Invariants:
    - One ``users`` row per user identity, keyed by ``user_id``; never deleted
    - ``increment`` is a plain UPDATE and does nothing for unknown users
    - Every SQLAlchemy error surfaces as DependencyFault(Service.DATABASE)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    delete,
    func,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from aether_pipeline.chat_log import ChatMessage, ChatStats
from aether_pipeline.components.throttling import RateLimitRecord
from aether_pipeline.exceptions import DependencyFault, Service
from aether_pipeline.ledger_log import LedgerSummary, LedgerTransaction

logger = logging.getLogger(__name__)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("user_id", String(255), primary_key=True),
    Column("api_call_count", Integer, nullable=False, server_default="0"),
    Column("rate_limit_reset", DateTime(timezone=True), nullable=True),
)

chat_messages = Table(
    "chat_messages",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(255), nullable=False, index=True),
    Column("role", String(16), nullable=False),
    Column("content", Text, nullable=False),
    Column("model", String(128), nullable=True),
    Column("tokens_used", Integer, nullable=True),
    Column("cost", Float, nullable=True),
    Column("ledger_transaction_id", String(255), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

ledger_transactions = Table(
    "ledger_transactions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(255), nullable=False, index=True),
    Column("transaction_id", String(255), nullable=False),
    Column("consensus_timestamp", String(64), nullable=False),
    Column("status", String(32), nullable=False),
    Column("cost", Float, nullable=False, server_default="0"),
    Column("carbon_impact", Float, nullable=False, server_default="0"),
    Column("api_call_type", String(32), nullable=False),
    Column("metadata", JSON, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything stored is UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@asynccontextmanager
async def transaction(
    engine: AsyncEngine, operation: str
) -> AsyncIterator[AsyncConnection]:
    """Connection in a transaction; SQLAlchemy errors become DependencyFault."""
    try:
        async with engine.begin() as conn:
            yield conn
    except SQLAlchemyError as exc:
        logger.error("DB error during %s: %s", operation, exc)
        raise DependencyFault(
            "Database operation failed", service=Service.DATABASE, cause=exc
        ) from exc


async def create_schema(engine: AsyncEngine) -> None:
    async with transaction(engine, "create_schema") as conn:
        await conn.run_sync(metadata.create_all)


async def health_check(engine: AsyncEngine) -> bool:
    """Check database connectivity (for readiness probes)."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as exc:
        logger.error("DB health check failed: %s", exc)
        return False


class SqlRateLimitStore:
    """RateLimitStore backed by the ``users`` table."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def get(self, user_id: str) -> RateLimitRecord | None:
        async with transaction(self._engine, "rate_limit.get") as conn:
            result = await conn.execute(
                select(users.c.api_call_count, users.c.rate_limit_reset).where(
                    users.c.user_id == user_id
                )
            )
            row = result.first()
        if row is None:
            return None
        return RateLimitRecord(
            user_id=user_id,
            call_count=row.api_call_count,
            window_reset_at=_as_utc(row.rate_limit_reset),
        )

    async def set(self, record: RateLimitRecord) -> None:
        values = {
            "api_call_count": record.call_count,
            "rate_limit_reset": record.window_reset_at,
        }
        async with transaction(self._engine, "rate_limit.set") as conn:
            result = await conn.execute(
                update(users).where(users.c.user_id == record.user_id).values(**values)
            )
            if result.rowcount == 0:
                await conn.execute(
                    insert(users).values(user_id=record.user_id, **values)
                )

    async def increment(self, user_id: str, amount: int = 1) -> None:
        async with transaction(self._engine, "rate_limit.increment") as conn:
            await conn.execute(
                update(users)
                .where(users.c.user_id == user_id)
                .values(api_call_count=users.c.api_call_count + amount)
            )

    async def ensure_user(self, user_id: str) -> None:
        async with transaction(self._engine, "rate_limit.ensure_user") as conn:
            result = await conn.execute(
                select(users.c.user_id).where(users.c.user_id == user_id)
            )
            if result.first() is None:
                await conn.execute(insert(users).values(user_id=user_id))


class SqlChatLog:
    """ChatLog backed by the ``chat_messages`` table."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def save(self, message: ChatMessage) -> None:
        async with transaction(self._engine, "chat.save") as conn:
            await conn.execute(
                insert(chat_messages).values(
                    user_id=message.user_id,
                    role=message.role,
                    content=message.content,
                    model=message.model,
                    tokens_used=message.tokens_used,
                    cost=message.cost,
                    ledger_transaction_id=message.ledger_transaction_id,
                    created_at=message.created_at,
                )
            )

    async def history(
        self, user_id: str, *, limit: int, offset: int = 0
    ) -> tuple[list[ChatMessage], int]:
        async with transaction(self._engine, "chat.history") as conn:
            total = await conn.scalar(
                select(func.count())
                .select_from(chat_messages)
                .where(chat_messages.c.user_id == user_id)
            )
            result = await conn.execute(
                select(chat_messages)
                .where(chat_messages.c.user_id == user_id)
                .order_by(chat_messages.c.created_at.desc(), chat_messages.c.id.desc())
                .limit(limit)
                .offset(offset)
            )
            rows = result.all()

        messages = [
            ChatMessage(
                user_id=row.user_id,
                role=row.role,
                content=row.content,
                model=row.model,
                tokens_used=row.tokens_used,
                cost=row.cost,
                ledger_transaction_id=row.ledger_transaction_id,
                created_at=_as_utc(row.created_at),
            )
            for row in rows
        ]
        return messages, total or 0

    async def stats(self, user_id: str) -> ChatStats:
        async with transaction(self._engine, "chat.stats") as conn:
            result = await conn.execute(
                select(
                    func.count().label("total_messages"),
                    func.coalesce(func.sum(chat_messages.c.tokens_used), 0).label("tokens"),
                    func.coalesce(func.sum(chat_messages.c.cost), 0.0).label("cost"),
                    func.min(chat_messages.c.created_at).label("first_at"),
                    func.max(chat_messages.c.created_at).label("last_at"),
                ).where(chat_messages.c.user_id == user_id)
            )
            row = result.one()
        return ChatStats(
            total_messages=row.total_messages,
            total_tokens_used=int(row.tokens),
            total_cost=float(row.cost),
            first_message_at=_as_utc(row.first_at),
            last_message_at=_as_utc(row.last_at),
        )

    async def delete_older_than(self, user_id: str, cutoff: datetime | None) -> int:
        statement = delete(chat_messages).where(chat_messages.c.user_id == user_id)
        if cutoff is not None:
            statement = statement.where(chat_messages.c.created_at < cutoff)
        async with transaction(self._engine, "chat.delete") as conn:
            result = await conn.execute(statement)
        return result.rowcount


class SqlLedgerLog:
    """LedgerLog backed by the ``ledger_transactions`` table."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def save(self, record: LedgerTransaction) -> None:
        async with transaction(self._engine, "ledger.save") as conn:
            await conn.execute(
                insert(ledger_transactions).values(
                    user_id=record.user_id,
                    transaction_id=record.transaction_id,
                    consensus_timestamp=record.consensus_timestamp,
                    status=record.status,
                    cost=record.cost,
                    carbon_impact=record.carbon_impact,
                    api_call_type=record.api_call_type,
                    metadata=record.metadata,
                    created_at=record.created_at,
                )
            )

    async def recent(self, user_id: str, *, limit: int = 10) -> list[LedgerTransaction]:
        async with transaction(self._engine, "ledger.recent") as conn:
            result = await conn.execute(
                select(ledger_transactions)
                .where(ledger_transactions.c.user_id == user_id)
                .order_by(
                    ledger_transactions.c.created_at.desc(),
                    ledger_transactions.c.id.desc(),
                )
                .limit(limit)
            )
            rows = result.all()
        return [
            LedgerTransaction(
                user_id=row.user_id,
                transaction_id=row.transaction_id,
                consensus_timestamp=row.consensus_timestamp,
                status=row.status,
                cost=row.cost,
                carbon_impact=row.carbon_impact,
                api_call_type=row.api_call_type,
                metadata=row._mapping["metadata"],
                created_at=_as_utc(row.created_at),
            )
            for row in rows
        ]

    async def summary(self, user_id: str) -> LedgerSummary:
        async with transaction(self._engine, "ledger.summary") as conn:
            result = await conn.execute(
                select(
                    func.count().label("total"),
                    func.coalesce(func.sum(ledger_transactions.c.cost), 0.0).label("cost"),
                    func.coalesce(
                        func.abs(func.sum(ledger_transactions.c.carbon_impact)), 0.0
                    ).label("carbon"),
                ).where(ledger_transactions.c.user_id == user_id)
            )
            row = result.one()
        return LedgerSummary(
            total_transactions=row.total,
            total_cost=float(row.cost),
            total_carbon_saved=float(row.carbon),
        )
