"""ServiceContainer — explicitly constructed collaborators with a lifecycle.

Nothing here is a module-level singleton: the application builds one
container at startup and hands it to every route, so tests can substitute
fakes for the stores, the session resolver and the external services.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from aether_pipeline._types import Clock, SessionResolver
from aether_pipeline.chat_log import ChatLog
from aether_pipeline.components.authentication import anonymous_session
from aether_pipeline.components.throttling import (
    FixedWindowRateLimiter,
    RateLimitStore,
    utc_now,
)
from aether_pipeline.ledger_log import InMemoryLedgerLog, LedgerLog
from aether_pipeline.settings import Settings
from aether_pipeline.stores.sql import (
    SqlChatLog,
    SqlLedgerLog,
    SqlRateLimitStore,
    create_schema,
    health_check,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatTurn:
    role: Literal["user", "assistant"]
    content: str


@dataclass(frozen=True)
class ChatReply:
    text: str
    model: str
    tokens_used: int = 0
    cost: float = 0.0


class ChatBackend(Protocol):
    """Generative AI collaborator."""

    async def generate(self, message: str, history: list[ChatTurn]) -> ChatReply: ...


@dataclass(frozen=True)
class LedgerReceipt:
    transaction_id: str
    consensus_timestamp: str
    status: str
    cost: float = 0.0
    carbon_impact: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)


class Ledger(Protocol):
    """Distributed-ledger notarization collaborator."""

    async def record(self, user_id: str, payload: dict[str, Any]) -> LedgerReceipt: ...


class ServiceContainer:
    """Holds the stores, limiter and external collaborators for one process.

    Stores not passed in are built on a SQLAlchemy engine for
    ``settings.database_url``; the engine only connects on first use, and
    ``startup()`` creates the schema. The ledger log follows the other
    stores: SQL when an engine was built, in memory when both were supplied.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        store: RateLimitStore | None = None,
        chat_log: ChatLog | None = None,
        session_resolver: SessionResolver | None = None,
        chat_backend: ChatBackend | None = None,
        ledger: Ledger | None = None,
        ledger_log: LedgerLog | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.settings = settings
        self.session_resolver: SessionResolver = session_resolver or anonymous_session
        self.chat_backend = chat_backend
        self.ledger = ledger
        self._engine: AsyncEngine | None = None

        if store is None or chat_log is None:
            self._engine = _make_engine(settings)
        self.store: RateLimitStore = store or SqlRateLimitStore(self._engine)
        self.chat_log: ChatLog = chat_log or SqlChatLog(self._engine)
        if ledger_log is None:
            ledger_log = (
                SqlLedgerLog(self._engine)
                if self._engine is not None
                else InMemoryLedgerLog()
            )
        self.ledger_log: LedgerLog = ledger_log
        self.clock = clock
        self.limiter = FixedWindowRateLimiter(self.store, clock=clock)
        self._started = False
        self._started_at = clock()

    @property
    def started(self) -> bool:
        return self._started

    async def startup(self) -> None:
        if self._started:
            return
        if self._engine is not None:
            await create_schema(self._engine)
        self._started = True
        logger.info("Services started (%s)", self.settings.environment)

    async def shutdown(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
        self._started = False
        logger.info("Services stopped")

    @property
    def uptime_seconds(self) -> float:
        return (self.clock() - self._started_at).total_seconds()

    async def health(self) -> bool:
        """Whether the database is reachable. In-memory stores always are."""
        if self._engine is None:
            return True
        return await health_check(self._engine)

    async def register_user(self, user_id: str) -> None:
        """Account bookkeeping: materialize the user's rate limit record."""
        await self.store.ensure_user(user_id)


def _make_engine(settings: Settings) -> AsyncEngine:
    kwargs: dict[str, Any] = {"pool_pre_ping": True}
    if not settings.database_url.startswith("sqlite"):
        kwargs["pool_size"] = settings.database_pool_size
    return create_async_engine(settings.database_url, **kwargs)
