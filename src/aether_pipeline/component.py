"""Middleware abstract base class and function adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod

from starlette.requests import Request
from starlette.responses import Response

from aether_pipeline._types import HandlerCallback, MiddlewareCallback
from aether_pipeline.context import RequestContext
from aether_pipeline.exceptions import InternalFault


class Middleware(ABC):
    """Base abstraction for all processing units in a pipeline.

    ``process`` returns ``None`` to let the next middleware run, or a
    terminal response that ends the pipeline.
    """

    @abstractmethod
    async def process(
        self, request: Request, ctx: RequestContext
    ) -> Response | None: ...

    @property
    def name(self) -> str:
        return type(self).__name__


class FunctionMiddleware(Middleware):
    """Adapts a plain ``async (request, ctx) -> Response | None`` function."""

    def __init__(self, fn: MiddlewareCallback, *, name: str | None = None) -> None:
        self._fn = fn
        self._name = name or getattr(fn, "__name__", type(self).__name__)

    async def process(self, request: Request, ctx: RequestContext) -> Response | None:
        return await self._fn(request, ctx)

    @property
    def name(self) -> str:
        return self._name


def middleware(fn: MiddlewareCallback) -> FunctionMiddleware:
    """Decorator form of :class:`FunctionMiddleware`."""
    return FunctionMiddleware(fn)


class HandlerMiddleware(Middleware):
    """Route handler appended as the last middleware of a pipeline."""

    def __init__(self, handler: HandlerCallback) -> None:
        self._handler = handler

    async def process(self, request: Request, ctx: RequestContext) -> Response:
        response = await self._handler(request, ctx)
        if response is None:
            raise InternalFault(f"Handler {self.name} returned no response")
        return response

    @property
    def name(self) -> str:
        return getattr(self._handler, "__name__", "handler")
