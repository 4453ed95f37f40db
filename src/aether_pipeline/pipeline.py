"""Pipeline — ordered container and execution engine for Middleware."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from starlette.requests import Request
from starlette.responses import Response

from aether_pipeline._types import HandlerCallback
from aether_pipeline.component import HandlerMiddleware, Middleware
from aether_pipeline.context import RequestContext
from aether_pipeline.hooks import PipelineHook
from aether_pipeline.responses import ErrorCode, api_error
from aether_pipeline.trace import PipelineTrace, TraceEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedPipeline:
    """Immutable, pre-computed execution plan."""

    middleware: tuple[Middleware, ...]
    hooks: tuple[PipelineHook, ...] = ()
    debug: bool = False


@dataclass(frozen=True)
class PipelineResult:
    """Response produced by a pipeline run, with the context that produced it."""

    response: Response
    context: RequestContext


class Pipeline:
    """Ordered container of Middleware instances.

    Middleware run strictly in registration order, one at a time. The first
    one to return a response ends the run.
    """

    def __init__(self, *middleware: Middleware | Pipeline, debug: bool = False) -> None:
        self._items: list[Middleware | Pipeline] = list(middleware)
        self._hooks: list[PipelineHook] = []
        self._debug = debug
        self._resolved: ResolvedPipeline | None = None

    def add(self, *middleware: Middleware | Pipeline) -> Pipeline:
        self._items.extend(middleware)
        self._resolved = None
        return self

    def handler(self, fn: HandlerCallback) -> Pipeline:
        """Append ``fn`` as the final middleware."""
        return self.add(HandlerMiddleware(fn))

    def add_hook(self, hook: PipelineHook) -> Pipeline:
        self._hooks.append(hook)
        self._resolved = None
        return self

    def resolve(self) -> ResolvedPipeline:
        if self._resolved is not None:
            return self._resolved

        flat: list[Middleware] = []
        self._flatten(self._items, flat)

        self._resolved = ResolvedPipeline(
            middleware=tuple(flat),
            hooks=tuple(self._hooks),
            debug=self._debug,
        )
        return self._resolved

    @staticmethod
    def _flatten(items: list[Middleware | Pipeline], out: list[Middleware]) -> None:
        for item in items:
            if isinstance(item, Pipeline):
                Pipeline._flatten(item._items, out)
            else:
                out.append(item)

    async def run(self, request: Request) -> Response:
        result = await self.execute(request)
        return result.response

    async def execute(
        self, request: Request, context: RequestContext | None = None
    ) -> PipelineResult:
        """Run every middleware against ``context`` (a fresh one by default).

        Exceptions raised by middleware are not caught here; they propagate
        to the caller's error boundary once the end hooks have fired.
        """
        resolved = self.resolve()
        ctx = context if context is not None else RequestContext(request=request)
        trace = PipelineTrace() if resolved.debug else None
        ctx.trace = trace

        for hook in resolved.hooks:
            await hook.on_pipeline_start(ctx)

        try:
            response = await self._run_middleware(resolved, request, ctx, trace)
        finally:
            if trace is not None:
                trace.total_duration_ms = ctx.elapsed_ms
            for hook in resolved.hooks:
                await hook.on_pipeline_end(ctx)

        return PipelineResult(response=response, context=ctx)

    @staticmethod
    async def _run_middleware(
        resolved: ResolvedPipeline,
        request: Request,
        ctx: RequestContext,
        trace: PipelineTrace | None,
    ) -> Response:
        for mw in resolved.middleware:
            started = time.perf_counter()
            try:
                response = await mw.process(request, ctx)
            except Exception as exc:
                if trace is not None:
                    trace.entries.append(
                        TraceEntry(
                            middleware_name=mw.name,
                            duration_ms=(time.perf_counter() - started) * 1000,
                            outcome="FAILED",
                            reason=str(exc),
                        )
                    )
                    trace.outcome = "ERROR"
                    trace.error = exc
                raise

            if trace is not None:
                trace.entries.append(
                    TraceEntry(
                        middleware_name=mw.name,
                        duration_ms=(time.perf_counter() - started) * 1000,
                        outcome="CONTINUE" if response is None else "RESPONDED",
                        status_code=None if response is None else response.status_code,
                    )
                )
            for hook in resolved.hooks:
                await hook.on_middleware(ctx, mw, response)

            if response is not None:
                if trace is not None and not isinstance(mw, HandlerMiddleware):
                    trace.outcome = "SHORT_CIRCUITED"
                return response

        logger.warning(
            "Pipeline finished without a handler response",
            extra={"request_id": ctx.request_id, "path": request.url.path},
        )
        if trace is not None:
            trace.outcome = "UNHANDLED"
        return api_error(
            ErrorCode.NOT_IMPLEMENTED, "Route handler not implemented"
        )


def compose(*middleware: Middleware | Pipeline, debug: bool = False) -> Pipeline:
    """Shorthand for ``Pipeline(*middleware)``."""
    return Pipeline(*middleware, debug=debug)
