"""Ledger transaction log — one row per notarized call, summarized per user."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from aether_pipeline.components.throttling import utc_now


@dataclass(frozen=True)
class LedgerTransaction:
    user_id: str
    transaction_id: str
    consensus_timestamp: str
    status: str
    cost: float = 0.0
    # Negative when the call offset more carbon than it emitted
    carbon_impact: float = 0.0
    api_call_type: str = "chat"
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.transaction_id,
            "timestamp": self.consensus_timestamp,
            "status": self.status,
            "cost": self.cost,
            "carbonImpact": self.carbon_impact,
            "apiCallType": self.api_call_type,
        }


@dataclass(frozen=True)
class LedgerSummary:
    total_transactions: int = 0
    total_cost: float = 0.0
    total_carbon_saved: float = 0.0


class LedgerLog(Protocol):
    """Persists ledger transactions per user; newest first on read."""

    async def save(self, transaction: LedgerTransaction) -> None: ...
    async def recent(self, user_id: str, *, limit: int = 10) -> list[LedgerTransaction]: ...
    async def summary(self, user_id: str) -> LedgerSummary: ...


class InMemoryLedgerLog:
    """In-memory ledger log. Single-process only."""

    def __init__(self) -> None:
        self._transactions: list[LedgerTransaction] = []

    async def save(self, transaction: LedgerTransaction) -> None:
        self._transactions.append(transaction)

    async def recent(self, user_id: str, *, limit: int = 10) -> list[LedgerTransaction]:
        mine = [t for t in reversed(self._transactions) if t.user_id == user_id]
        return mine[:limit]

    async def summary(self, user_id: str) -> LedgerSummary:
        mine = [t for t in self._transactions if t.user_id == user_id]
        return LedgerSummary(
            total_transactions=len(mine),
            total_cost=sum(t.cost for t in mine),
            total_carbon_saved=abs(sum(t.carbon_impact for t in mine)),
        )
