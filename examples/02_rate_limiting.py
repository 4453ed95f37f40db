"""
Rate limiting examples.

Demonstrates:
- Fixed-window limits per user identity
- Charging the counter only after a successful response
- Different policies for different endpoints
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.requests import Request
from starlette.responses import Response

from aether_pipeline import (
    InMemoryChatLog,
    InMemoryRateLimitStore,
    RateLimitPolicy,
    RequestContext,
    ServiceContainer,
    Settings,
    create_handler,
    success,
)


async def resolve_session(request: Request) -> str | None:
    return request.headers.get("X-User-Id")


services = ServiceContainer(
    Settings(),
    store=InMemoryRateLimitStore(),
    chat_log=InMemoryChatLog(),
    session_resolver=resolve_session,
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Anonymous and unknown users have no record and are never limited
    for user_id in ("alice", "bob"):
        await services.register_user(user_id)
    yield


app = FastAPI(title="Rate Limiting Examples", lifespan=lifespan)


async def data(request: Request, ctx: RequestContext) -> Response:
    """100 requests per 15 minutes per user."""
    return success({"user": ctx.user_id, "remaining": ctx.rate_limit.remaining})


async def process(request: Request, ctx: RequestContext) -> Response:
    """Expensive operation: 5 requests per minute per user."""
    return success({"status": "started", "remaining": ctx.rate_limit.remaining})


app.add_api_route(
    "/api/data",
    create_handler(
        data, services=services, auth="required", rate_limit=RateLimitPolicy(), charge=True
    ),
    methods=["GET"],
)
app.add_api_route(
    "/api/process",
    create_handler(
        process,
        services=services,
        auth="required",
        rate_limit=RateLimitPolicy(max_requests=5, window_ms=60_000),
        charge=True,
    ),
    methods=["POST"],
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

    # Expensive operation (5 req/min):
    #   for i in {1..7}; do curl -X POST -H "X-User-Id: alice" \
    #     http://localhost:8000/api/process; done
