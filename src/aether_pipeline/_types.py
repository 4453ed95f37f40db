"""Shared type aliases and protocols."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TYPE_CHECKING

from starlette.requests import Request
from starlette.responses import Response

if TYPE_CHECKING:
    from aether_pipeline.context import RequestContext

# Resolves the caller's user id from session state, or None when absent
SessionResolver = Callable[[Request], Awaitable[str | None]]

MiddlewareCallback = Callable[[Request, "RequestContext"], Awaitable[Response | None]]
HandlerCallback = Callable[[Request, "RequestContext"], Awaitable[Response]]

Clock = Callable[[], datetime]
