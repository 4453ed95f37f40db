"""Shared pytest fixtures for aether-api-pipeline tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest
from starlette.requests import Request

from aether_pipeline.chat_log import InMemoryChatLog
from aether_pipeline.components.throttling import (
    FixedWindowRateLimiter,
    InMemoryRateLimitStore,
)
from aether_pipeline.services import ServiceContainer
from aether_pipeline.settings import Settings


class FakeClock:
    """Settable UTC clock for window arithmetic."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


@pytest.fixture
def make_request() -> Any:
    """Factory for creating mock Starlette Request objects."""

    def _make(
        method: str = "GET",
        path: str = "/",
        headers: dict[str, str] | None = None,
        query_string: str = "",
    ) -> Request:
        scope: dict[str, Any] = {
            "type": "http",
            "method": method,
            "path": path,
            "query_string": query_string.encode(),
            "headers": [
                (k.lower().encode(), v.encode()) for k, v in (headers or {}).items()
            ],
            "root_path": "",
        }
        return Request(scope)

    return _make


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryRateLimitStore:
    return InMemoryRateLimitStore()


@pytest.fixture
def limiter(store: InMemoryRateLimitStore, clock: FakeClock) -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(store, clock=clock)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, environment="test", log_format="text")


@pytest.fixture
def session_resolver() -> AsyncMock:
    """Session resolver returning a signed-in user."""
    return AsyncMock(return_value="user-123")


@pytest.fixture
def services(
    settings: Settings,
    store: InMemoryRateLimitStore,
    clock: FakeClock,
    session_resolver: AsyncMock,
) -> ServiceContainer:
    return ServiceContainer(
        settings,
        store=store,
        chat_log=InMemoryChatLog(),
        session_resolver=session_resolver,
        clock=clock,
    )
