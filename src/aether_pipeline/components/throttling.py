"""Throttling — fixed-window rate limiter, store protocol and RateLimit middleware."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Protocol, runtime_checkable

from starlette.requests import Request
from starlette.responses import Response

from aether_pipeline._types import Clock
from aether_pipeline.component import Middleware
from aether_pipeline.context import RateLimitStatus, RequestContext
from aether_pipeline.responses import ErrorCode, api_error

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 100
DEFAULT_WINDOW_MS = 15 * 60 * 1000


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RateLimitRecord:
    """Persisted counter for one user identity."""

    user_id: str
    call_count: int = 0
    window_reset_at: datetime | None = None


@dataclass(frozen=True)
class RateLimitPolicy:
    max_requests: int = DEFAULT_MAX_REQUESTS
    window_ms: int = DEFAULT_WINDOW_MS

    def __post_init__(self) -> None:
        if self.max_requests <= 0 or self.window_ms <= 0:
            raise ValueError("max_requests and window_ms must be positive")

    @property
    def window_seconds(self) -> int:
        return math.ceil(self.window_ms / 1000)


@runtime_checkable
class RateLimitStore(Protocol):
    """Pluggable storage interface for rate limit records.

    ``increment`` only touches existing records; records are materialized
    by account bookkeeping through ``ensure_user``.
    """

    async def get(self, user_id: str) -> RateLimitRecord | None: ...
    async def set(self, record: RateLimitRecord) -> None: ...
    async def increment(self, user_id: str, amount: int = 1) -> None: ...
    async def ensure_user(self, user_id: str) -> None: ...


class InMemoryRateLimitStore:
    """In-memory rate limit store. Single-process only."""

    def __init__(self) -> None:
        self._records: dict[str, RateLimitRecord] = {}

    async def get(self, user_id: str) -> RateLimitRecord | None:
        return self._records.get(user_id)

    async def set(self, record: RateLimitRecord) -> None:
        self._records[record.user_id] = record

    async def increment(self, user_id: str, amount: int = 1) -> None:
        record = self._records.get(user_id)
        if record is not None:
            self._records[user_id] = replace(
                record, call_count=record.call_count + amount
            )

    async def ensure_user(self, user_id: str) -> None:
        self._records.setdefault(user_id, RateLimitRecord(user_id=user_id))


class FixedWindowRateLimiter:
    """At most ``max_requests`` calls per fixed window of ``window_ms``.

    The check never increments; ``charge`` does, after the request has been
    processed. Two concurrent requests from one user can both pass the check
    before either is charged, so the ceiling is approximate.
    """

    def __init__(self, store: RateLimitStore, *, clock: Clock = utc_now) -> None:
        self._store = store
        self._clock = clock

    @property
    def store(self) -> RateLimitStore:
        return self._store

    async def check_and_consume(
        self, user_id: str, max_requests: int, window_ms: int
    ) -> RateLimitStatus:
        record = await self._store.get(user_id)
        if record is None:
            return RateLimitStatus(allowed=True, remaining=max_requests - 1)

        now = self._clock()
        if record.window_reset_at is None or now > record.window_reset_at:
            reset_at = now + timedelta(milliseconds=window_ms)
            await self._store.set(
                replace(record, call_count=0, window_reset_at=reset_at)
            )
            return RateLimitStatus(
                allowed=True, remaining=max_requests - 1, reset_at=reset_at
            )

        if record.call_count >= max_requests:
            return RateLimitStatus(
                allowed=False, remaining=0, reset_at=record.window_reset_at
            )

        return RateLimitStatus(
            allowed=True,
            remaining=max_requests - record.call_count - 1,
            reset_at=record.window_reset_at,
        )

    async def charge(self, user_id: str, amount: int = 1) -> None:
        await self._store.increment(user_id, amount)

    def retry_after(self, status: RateLimitStatus, policy: RateLimitPolicy) -> int:
        """Seconds until the window resets, falling back to the full window."""
        if status.reset_at is None:
            return policy.window_seconds
        seconds = math.ceil((status.reset_at - self._clock()).total_seconds())
        return min(max(seconds, 1), policy.window_seconds)


class RateLimit(Middleware):
    """Enforces the limiter's policy for ``ctx.user_id``.

    Store faults are logged and the request is let through.
    """

    def __init__(
        self,
        limiter: FixedWindowRateLimiter,
        *,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_ms: int = DEFAULT_WINDOW_MS,
    ) -> None:
        self._limiter = limiter
        self._policy = RateLimitPolicy(max_requests=max_requests, window_ms=window_ms)

    @property
    def policy(self) -> RateLimitPolicy:
        return self._policy

    async def process(self, request: Request, ctx: RequestContext) -> Response | None:
        try:
            status = await self._limiter.check_and_consume(
                ctx.user_id, self._policy.max_requests, self._policy.window_ms
            )
        except Exception:
            logger.exception(
                "Rate limit check failed",
                extra={"request_id": ctx.request_id, "user_id": ctx.user_id},
            )
            return None

        if not status.allowed:
            logger.warning(
                "Rate limit exceeded",
                extra={
                    "request_id": ctx.request_id,
                    "user_id": ctx.user_id,
                    "path": request.url.path,
                },
            )
            return api_error(
                ErrorCode.RATE_LIMIT_EXCEEDED,
                "Too many requests. Please try again later.",
                retry_after=self._limiter.retry_after(status, self._policy),
            )

        ctx.rate_limit = status
        return None
