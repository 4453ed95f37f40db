"""Relational stores for rate limit records, chat messages and ledger transactions."""

from aether_pipeline.stores.sql import (
    SqlChatLog,
    SqlLedgerLog,
    SqlRateLimitStore,
    chat_messages,
    create_schema,
    health_check,
    ledger_transactions,
    users,
)

__all__ = [
    "SqlChatLog",
    "SqlLedgerLog",
    "SqlRateLimitStore",
    "chat_messages",
    "create_schema",
    "health_check",
    "ledger_transactions",
    "users",
]
