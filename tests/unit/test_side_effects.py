"""Tests for best-effort side effects."""

from __future__ import annotations

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from aether_pipeline.side_effects import best_effort


class TestBestEffort:
    async def test_returns_result(self) -> None:
        operation = AsyncMock(return_value="tx-1")
        assert await best_effort(operation(), "Ledger tracking") == "tx-1"
        operation.assert_awaited_once()

    async def test_failure_is_logged_and_swallowed(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        operation = AsyncMock(side_effect=ConnectionError("ledger offline"))
        with caplog.at_level(logging.WARNING):
            result = await best_effort(
                operation(), "Ledger tracking", request_id="req_1"
            )

        assert result is None
        record = next(r for r in caplog.records if "Ledger tracking" in r.message)
        assert record.message == "Ledger tracking failed (continuing): ledger offline"
        assert record.request_id == "req_1"

    async def test_base_exceptions_propagate(self) -> None:
        operation = AsyncMock(side_effect=asyncio.CancelledError())
        with pytest.raises(asyncio.CancelledError):
            await best_effort(operation(), "Chat message save")
