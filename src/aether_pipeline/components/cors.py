"""CORS and HTTP method middleware."""

from __future__ import annotations

from collections.abc import Sequence

from starlette.requests import Request
from starlette.responses import Response

from aether_pipeline.component import Middleware
from aether_pipeline.context import RequestContext
from aether_pipeline.responses import (
    DEFAULT_CORS_HEADERS,
    DEFAULT_CORS_METHODS,
    ErrorCode,
    api_error,
    cors_headers,
    preflight,
)


class CORS(Middleware):
    """Answers preflight requests and records allow headers for the response."""

    def __init__(
        self,
        *,
        origin: str = "*",
        methods: Sequence[str] = DEFAULT_CORS_METHODS,
        headers: Sequence[str] = DEFAULT_CORS_HEADERS,
    ) -> None:
        self._origin = origin
        self._methods = tuple(methods)
        self._headers = tuple(headers)

    async def process(self, request: Request, ctx: RequestContext) -> Response | None:
        if request.method == "OPTIONS":
            return preflight(self._origin, self._methods, self._headers)

        ctx.cors_headers = cors_headers(self._origin, self._methods, self._headers)
        return None


class AllowedMethods(Middleware):
    """Rejects requests whose method is not in the allowed set (405)."""

    def __init__(self, *methods: str) -> None:
        if not methods:
            raise ValueError("at least one method is required")
        self._methods = tuple(m.upper() for m in methods)

    async def process(self, request: Request, ctx: RequestContext) -> Response | None:
        if request.method in self._methods:
            return None
        return api_error(
            ErrorCode.METHOD_NOT_ALLOWED,
            f"Method {request.method} not allowed. "
            f"Allowed methods: {', '.join(self._methods)}",
        )
