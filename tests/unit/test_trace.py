"""Tests for PipelineTrace, TraceEntry, and debug integration."""

from __future__ import annotations

from typing import Any

import pytest
from starlette.requests import Request
from starlette.responses import Response

from aether_pipeline.component import Middleware
from aether_pipeline.context import RequestContext
from aether_pipeline.pipeline import Pipeline
from aether_pipeline.responses import ErrorCode, api_error, success
from aether_pipeline.trace import PipelineTrace, TraceEntry


class _Auth(Middleware):
    async def process(self, request: Request, ctx: RequestContext) -> None:
        ctx.user_id = "user-1"


class _Deny(Middleware):
    async def process(self, request: Request, ctx: RequestContext) -> Response:
        return api_error(ErrorCode.FORBIDDEN)


class _Broken(Middleware):
    async def process(self, request: Request, ctx: RequestContext) -> None:
        raise RuntimeError("kaput")


async def _handler(request: Request, ctx: RequestContext) -> Response:
    return success(None)


class TestTraceEntry:
    def test_construction(self) -> None:
        entry = TraceEntry(middleware_name="Auth", duration_ms=1.5, outcome="CONTINUE")
        assert entry.middleware_name == "Auth"
        assert entry.duration_ms == 1.5
        assert entry.status_code is None
        assert entry.reason is None

    def test_frozen(self) -> None:
        entry = TraceEntry(middleware_name="Auth", duration_ms=1.5, outcome="CONTINUE")
        with pytest.raises(AttributeError):
            entry.middleware_name = "other"  # type: ignore[misc]


class TestPipelineTrace:
    def test_defaults(self) -> None:
        trace = PipelineTrace()
        assert trace.entries == []
        assert trace.outcome == "COMPLETED"
        assert trace.error is None
        assert trace.executed == []


class TestDebugIntegration:
    async def test_completed_run(self, make_request: Any) -> None:
        pipeline = Pipeline(_Auth(), debug=True).handler(_handler)
        result = await pipeline.execute(make_request())
        trace = result.context.trace

        assert isinstance(trace, PipelineTrace)
        assert trace.executed == ["_Auth", "_handler"]
        assert [e.outcome for e in trace.entries] == ["CONTINUE", "RESPONDED"]
        assert trace.entries[1].status_code == 200
        assert trace.outcome == "COMPLETED"
        assert trace.total_duration_ms >= 0

    async def test_short_circuit(self, make_request: Any) -> None:
        pipeline = Pipeline(_Auth(), _Deny(), debug=True).handler(_handler)
        result = await pipeline.execute(make_request())
        trace = result.context.trace

        assert trace.executed == ["_Auth", "_Deny"]
        assert trace.entries[-1].status_code == 403
        assert trace.outcome == "SHORT_CIRCUITED"

    async def test_unhandled(self, make_request: Any) -> None:
        result = await Pipeline(_Auth(), debug=True).execute(make_request())
        assert result.context.trace.outcome == "UNHANDLED"

    async def test_error_recorded_before_propagating(self, make_request: Any) -> None:
        captured: list[RequestContext] = []

        class _Capture(Middleware):
            async def process(self, request: Request, ctx: RequestContext) -> None:
                captured.append(ctx)

        pipeline = Pipeline(_Capture(), _Broken(), debug=True)
        with pytest.raises(RuntimeError):
            await pipeline.execute(make_request())

        trace = captured[0].trace
        assert trace.outcome == "ERROR"
        assert trace.entries[-1].outcome == "FAILED"
        assert trace.entries[-1].reason == "kaput"
        assert isinstance(trace.error, RuntimeError)

    async def test_durations_non_negative(self, make_request: Any) -> None:
        result = await Pipeline(_Auth(), debug=True).handler(_handler).execute(
            make_request()
        )
        assert all(e.duration_ms >= 0 for e in result.context.trace.entries)
