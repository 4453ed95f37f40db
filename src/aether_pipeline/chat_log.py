"""Chat message log — storage protocol and in-memory implementation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Protocol

from aether_pipeline.components.throttling import utc_now

Role = Literal["user", "assistant", "system"]


@dataclass(frozen=True)
class ChatMessage:
    user_id: str
    role: Role
    content: str
    model: str | None = None
    tokens_used: int | None = None
    cost: float | None = None
    ledger_transaction_id: str | None = None
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "model": self.model,
            "tokensUsed": self.tokens_used,
            "cost": self.cost,
            "ledgerTransactionId": self.ledger_transaction_id,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class ChatStats:
    """Totals over one user's stored messages."""

    total_messages: int = 0
    total_tokens_used: int = 0
    total_cost: float = 0.0
    first_message_at: datetime | None = None
    last_message_at: datetime | None = None

    @property
    def avg_cost_per_message(self) -> float:
        return self.total_cost / self.total_messages if self.total_messages else 0.0

    @property
    def avg_tokens_per_message(self) -> int:
        if not self.total_messages:
            return 0
        return round(self.total_tokens_used / self.total_messages)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalMessages": self.total_messages,
            "totalTokensUsed": self.total_tokens_used,
            "totalCost": self.total_cost,
            "avgCostPerMessage": f"{self.avg_cost_per_message:.6f}",
            "avgTokensPerMessage": self.avg_tokens_per_message,
            "firstMessageAt": _iso(self.first_message_at),
            "lastMessageAt": _iso(self.last_message_at),
        }


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class ChatLog(Protocol):
    """Persists chat messages per user; newest first on read.

    ``delete_older_than(user_id, None)`` removes every message of the user.
    """

    async def save(self, message: ChatMessage) -> None: ...
    async def history(
        self, user_id: str, *, limit: int, offset: int = 0
    ) -> tuple[list[ChatMessage], int]: ...
    async def stats(self, user_id: str) -> ChatStats: ...
    async def delete_older_than(self, user_id: str, cutoff: datetime | None) -> int: ...


class InMemoryChatLog:
    """In-memory chat log. Single-process only."""

    def __init__(self) -> None:
        self._messages: list[ChatMessage] = []

    async def save(self, message: ChatMessage) -> None:
        self._messages.append(message)

    async def history(
        self, user_id: str, *, limit: int, offset: int = 0
    ) -> tuple[list[ChatMessage], int]:
        mine = [m for m in reversed(self._messages) if m.user_id == user_id]
        return mine[offset : offset + limit], len(mine)

    async def stats(self, user_id: str) -> ChatStats:
        mine = [m for m in self._messages if m.user_id == user_id]
        if not mine:
            return ChatStats()
        stamps = [m.created_at for m in mine]
        return ChatStats(
            total_messages=len(mine),
            total_tokens_used=sum(m.tokens_used or 0 for m in mine),
            total_cost=sum(m.cost or 0.0 for m in mine),
            first_message_at=min(stamps),
            last_message_at=max(stamps),
        )

    async def delete_older_than(self, user_id: str, cutoff: datetime | None) -> int:
        def doomed(m: ChatMessage) -> bool:
            return m.user_id == user_id and (cutoff is None or m.created_at < cutoff)

        kept = [m for m in self._messages if not doomed(m)]
        deleted = len(self._messages) - len(kept)
        self._messages = kept
        return deleted
