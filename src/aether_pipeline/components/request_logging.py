"""Request logging middleware."""

from __future__ import annotations

import logging

from starlette.requests import Request

from aether_pipeline.component import Middleware
from aether_pipeline.context import RequestContext

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> str:
    """Best-effort client address from proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("x-real-ip") or "unknown"


class RequestLogging(Middleware):
    """Logs every inbound request and always continues."""

    def __init__(self, *, level: int = logging.INFO) -> None:
        self._level = level

    async def process(self, request: Request, ctx: RequestContext) -> None:
        logger.log(
            self._level,
            "API request %s %s",
            request.method,
            request.url.path,
            extra={
                "request_id": ctx.request_id,
                "method": request.method,
                "path": request.url.path,
                "user_id": ctx.user_id,
                "ip": client_ip(request),
                "user_agent": request.headers.get("user-agent", "unknown"),
            },
        )
