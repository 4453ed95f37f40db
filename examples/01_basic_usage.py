"""
Basic usage example of aether-api-pipeline.

Demonstrates:
- Building a route with create_handler()
- Required authentication through a session resolver
- Reading the caller's identity from RequestContext
"""

from fastapi import FastAPI
from starlette.requests import Request
from starlette.responses import Response

from aether_pipeline import (
    InMemoryChatLog,
    InMemoryRateLimitStore,
    RequestContext,
    ServiceContainer,
    Settings,
    create_handler,
    success,
)


# Mock session lookup (replace with your identity provider)
async def resolve_session(request: Request) -> str | None:
    if request.headers.get("Authorization") == "Bearer valid-token":
        return "user123"
    return None


services = ServiceContainer(
    Settings(),
    store=InMemoryRateLimitStore(),
    chat_log=InMemoryChatLog(),
    session_resolver=resolve_session,
)

app = FastAPI(title="Basic Pipeline Example")


async def hello(request: Request, ctx: RequestContext) -> Response:
    """Public endpoint - no authentication required."""
    return success({"message": "Hello, World!"})


async def me(request: Request, ctx: RequestContext) -> Response:
    """Protected endpoint - requires a session."""
    return success({"userId": ctx.user_id}, meta={"requestId": ctx.request_id})


app.add_api_route("/", create_handler(hello, services=services), methods=["GET"])
app.add_api_route(
    "/me",
    create_handler(me, services=services, auth="required", methods=["GET"]),
    methods=["GET"],
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

    # Test with:
    # curl http://localhost:8000/
    # curl -H "Authorization: Bearer valid-token" http://localhost:8000/me
