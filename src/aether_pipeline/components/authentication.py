"""Authentication middleware — required and optional session identity."""

from __future__ import annotations

import logging

from starlette.requests import Request
from starlette.responses import Response

from aether_pipeline._types import SessionResolver
from aether_pipeline.component import Middleware
from aether_pipeline.components.request_logging import client_ip
from aether_pipeline.context import ANONYMOUS, RequestContext
from aether_pipeline.responses import ErrorCode, api_error

logger = logging.getLogger(__name__)


class RequireAuthentication(Middleware):
    """Resolves the session user and rejects the request without one (401).

    A resolver fault is logged and treated as a missing session.
    """

    def __init__(self, resolve_session: SessionResolver) -> None:
        self._resolve_session = resolve_session

    async def process(self, request: Request, ctx: RequestContext) -> Response | None:
        try:
            user_id = await self._resolve_session(request)
        except Exception:
            logger.exception(
                "Authentication error", extra={"request_id": ctx.request_id}
            )
            return api_error(ErrorCode.UNAUTHORIZED, "Authentication failed")

        if not user_id:
            logger.warning(
                "Unauthorized access attempt",
                extra={
                    "request_id": ctx.request_id,
                    "path": request.url.path,
                    "ip": client_ip(request),
                },
            )
            return api_error(ErrorCode.UNAUTHORIZED, "Authentication required")

        ctx.user_id = user_id
        return None


class OptionalAuthentication(Middleware):
    """Resolves the session user when present; otherwise the caller is anonymous."""

    def __init__(self, resolve_session: SessionResolver) -> None:
        self._resolve_session = resolve_session

    async def process(self, request: Request, ctx: RequestContext) -> None:
        try:
            user_id = await self._resolve_session(request)
        except Exception:
            logger.exception(
                "Optional auth error", extra={"request_id": ctx.request_id}
            )
            user_id = None
        ctx.user_id = user_id or ANONYMOUS


async def anonymous_session(request: Request) -> str | None:
    """Session resolver for deployments without an identity provider."""
    return None
