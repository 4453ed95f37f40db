"""create_handler() — builds a guarded route endpoint from route options."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Literal

from starlette.requests import Request
from starlette.responses import Response

from aether_pipeline._types import HandlerCallback
from aether_pipeline.boundary import Endpoint, ErrorBoundary
from aether_pipeline.components.authentication import (
    OptionalAuthentication,
    RequireAuthentication,
)
from aether_pipeline.components.cors import CORS, AllowedMethods
from aether_pipeline.components.request_logging import RequestLogging
from aether_pipeline.components.throttling import RateLimit, RateLimitPolicy
from aether_pipeline.context import RequestContext
from aether_pipeline.pipeline import Pipeline
from aether_pipeline.services import ServiceContainer
from aether_pipeline.side_effects import best_effort

AuthMode = Literal["none", "optional", "required"]


def build_pipeline(
    handler: HandlerCallback,
    *,
    services: ServiceContainer,
    auth: AuthMode = "none",
    rate_limit: RateLimitPolicy | None = None,
    methods: Sequence[str] | None = None,
    cors: bool = False,
) -> Pipeline:
    """Standard order: logging, CORS, method check, auth, rate limit, handler."""
    settings = services.settings
    pipeline = Pipeline(RequestLogging(), debug=settings.debug_trace)

    if cors:
        pipeline.add(
            CORS(
                origin=settings.cors_origin,
                methods=settings.cors_methods,
                headers=settings.cors_headers,
            )
        )
    if methods:
        pipeline.add(AllowedMethods(*methods))

    if auth == "required":
        pipeline.add(RequireAuthentication(services.session_resolver))
    elif auth == "optional":
        pipeline.add(OptionalAuthentication(services.session_resolver))
    elif auth != "none":
        raise ValueError(f"Unknown auth mode: {auth!r}")

    if rate_limit is not None:
        pipeline.add(
            RateLimit(
                services.limiter,
                max_requests=rate_limit.max_requests,
                window_ms=rate_limit.window_ms,
            )
        )

    return pipeline.handler(handler)


def create_handler(
    handler: HandlerCallback,
    *,
    services: ServiceContainer,
    auth: AuthMode = "none",
    rate_limit: RateLimitPolicy | None = None,
    methods: Sequence[str] | None = None,
    cors: bool = False,
    charge: bool = False,
) -> Endpoint:
    """Return an ``async (request) -> Response`` endpoint for ``handler``.

    With ``charge`` the caller's rate limit counter is incremented after a
    successful (2xx) response, as a best-effort write.
    """
    pipeline = build_pipeline(
        handler,
        services=services,
        auth=auth,
        rate_limit=rate_limit,
        methods=methods,
        cors=cors,
    )

    boundary = ErrorBoundary(expose_errors=services.settings.expose_errors)

    async def endpoint(request: Request) -> Response:
        ctx = RequestContext(request=request)
        response = await boundary.guard(request, pipeline.execute(request, ctx))

        # Error responses carry the same decoration as handler responses
        if ctx.cors_headers:
            response.headers.update(ctx.cors_headers)
        response.headers["X-Request-ID"] = ctx.request_id

        if charge and 200 <= response.status_code < 300:
            await best_effort(
                services.limiter.charge(ctx.user_id),
                "Rate limit charge",
                request_id=ctx.request_id,
                user_id=ctx.user_id,
            )
        return response

    endpoint.__name__ = getattr(handler, "__name__", "endpoint")
    return endpoint
