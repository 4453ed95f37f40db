"""Lifecycle hooks observed by :class:`~aether_pipeline.pipeline.Pipeline`.

A run starts, visits middleware in registration order and ends. Each
middleware either returns ``None`` (the run continues) or a terminal
response (the run ends there, nothing later is visited). Hooks observe
those three points; they never alter the response.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from starlette.responses import Response

from aether_pipeline.component import Middleware
from aether_pipeline.context import RequestContext

ContextCallback = Callable[[RequestContext], Awaitable[None]]
StepCallback = Callable[[RequestContext, Middleware, Response | None], Awaitable[None]]

_C = TypeVar("_C")


class PipelineHook:
    """Observer of one pipeline's runs. Every method defaults to a no-op.

    ``on_pipeline_end`` fires once per run, after a terminal response, after
    the 501 fallback when no middleware responded, and while a fault raised
    by a middleware is propagating to the error boundary.
    """

    async def on_pipeline_start(self, ctx: RequestContext) -> None:
        pass

    async def on_pipeline_end(self, ctx: RequestContext) -> None:
        pass

    async def on_middleware(
        self,
        ctx: RequestContext,
        middleware: Middleware,
        response: Response | None,
    ) -> None:
        """Called after ``middleware`` returned; skipped when it raised."""


class _CallbackHook(PipelineHook, Generic[_C]):
    def __init__(self, callback: _C) -> None:
        self.callback = callback

    def __repr__(self) -> str:
        name = getattr(self.callback, "__name__", repr(self.callback))
        return f"{type(self).__name__}({name})"


class BeforePipeline(_CallbackHook[ContextCallback]):
    """Run ``callback(ctx)`` before the first middleware sees the request."""

    async def on_pipeline_start(self, ctx: RequestContext) -> None:
        await self.callback(ctx)


class AfterPipeline(_CallbackHook[ContextCallback]):
    """Run ``callback(ctx)`` once the run has ended, however it ended."""

    async def on_pipeline_end(self, ctx: RequestContext) -> None:
        await self.callback(ctx)


class AfterMiddleware(_CallbackHook[StepCallback]):
    """Run ``callback(ctx, middleware, response)`` after each middleware.

    ``response`` is ``None`` when the middleware let the run continue. With
    ``terminal_only`` the callback fires just once, for the middleware whose
    response ended the run.
    """

    def __init__(self, callback: StepCallback, *, terminal_only: bool = False) -> None:
        super().__init__(callback)
        self.terminal_only = terminal_only

    async def on_middleware(
        self,
        ctx: RequestContext,
        middleware: Middleware,
        response: Response | None,
    ) -> None:
        if self.terminal_only and response is None:
            return
        await self.callback(ctx, middleware, response)
