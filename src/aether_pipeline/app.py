"""FastAPI application — health, chat and metrics routes on top of the pipeline."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Literal

from fastapi import FastAPI
from pydantic import BaseModel, ConfigDict, Field, field_validator
from starlette.requests import Request
from starlette.responses import Response

from aether_pipeline.chat_log import ChatMessage
from aether_pipeline.components.throttling import RateLimitPolicy
from aether_pipeline.context import RequestContext
from aether_pipeline.exceptions import (
    DependencyFault,
    Service,
    ValidationFault,
    classify_provider_error,
)
from aether_pipeline.handler import create_handler
from aether_pipeline.ledger_log import LedgerTransaction
from aether_pipeline.observability import setup_logging
from aether_pipeline.responses import ErrorCode, api_error, paginated, success
from aether_pipeline.services import ChatTurn, ServiceContainer
from aether_pipeline.side_effects import best_effort

logger = logging.getLogger(__name__)

_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")

MAX_HISTORY_LIMIT = 100
DEFAULT_HISTORY_LIMIT = 50
RECENT_TRANSACTIONS = 10


def sanitize_user_input(value: str) -> str:
    """Strip HTML tags and collapse whitespace."""
    return _WHITESPACE.sub(" ", _TAG.sub("", value)).strip()


class ChatTurnIn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(min_length=1, max_length=4000)
    chat_history: list[ChatTurnIn] = Field(default_factory=list, alias="chatHistory")

    @field_validator("message")
    @classmethod
    def clean_message(cls, v: str) -> str:
        cleaned = sanitize_user_input(v)
        if not cleaned:
            raise ValueError("Message cannot be empty")
        return cleaned


async def read_json(request: Request) -> object:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationFault("Request body must be valid JSON") from exc


def _int_param(request: Request, name: str, default: int) -> int | None:
    raw = request.query_params.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return None


def create_app(services: ServiceContainer) -> FastAPI:
    """Build the API application around an explicitly constructed container."""
    settings = services.settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging(settings.log_level, settings.log_format)
        await services.startup()
        logger.info("Aether API started")
        yield
        await services.shutdown()
        logger.info("Aether API shutting down")

    app = FastAPI(title="Aether AI API", lifespan=lifespan)
    app.state.services = services

    async def health(request: Request, ctx: RequestContext) -> Response:
        connected = await services.health()
        report = {
            "status": "healthy" if connected else "unhealthy",
            "services": {
                "database": connected,
                "ai": services.chat_backend is not None,
                "ledger": services.ledger is not None,
            },
            "environment": settings.environment,
        }
        if not connected:
            return api_error(
                ErrorCode.SERVICE_UNAVAILABLE,
                "Service unhealthy",
                details=report,
                retry_after=30,
            )
        return success(report, meta={"requestId": ctx.request_id})

    async def send_chat(request: Request, ctx: RequestContext) -> Response:
        payload = ChatRequest.model_validate(await read_json(request))

        backend = services.chat_backend
        if backend is None:
            raise DependencyFault(
                "AI service is not configured",
                service=Service.AI,
                code=ErrorCode.CONFIGURATION_ERROR,
            )

        logger.info(
            "Chat request received (%d chars, %d turns)",
            len(payload.message),
            len(payload.chat_history),
            extra={"request_id": ctx.request_id, "user_id": ctx.user_id},
        )
        history = [ChatTurn(role=t.role, content=t.content) for t in payload.chat_history]
        try:
            reply = await backend.generate(payload.message, history)
        except Exception as exc:
            raise classify_provider_error(exc, Service.AI) from exc

        receipt = None
        if services.ledger is not None:
            receipt = await best_effort(
                services.ledger.record(
                    ctx.user_id,
                    {
                        "model": reply.model,
                        "tokensUsed": reply.tokens_used,
                        "cost": reply.cost,
                    },
                ),
                "Ledger tracking",
                request_id=ctx.request_id,
                user_id=ctx.user_id,
            )

        if receipt is not None:
            await best_effort(
                services.ledger_log.save(
                    LedgerTransaction(
                        user_id=ctx.user_id,
                        transaction_id=receipt.transaction_id,
                        consensus_timestamp=receipt.consensus_timestamp,
                        status=receipt.status,
                        cost=receipt.cost,
                        carbon_impact=receipt.carbon_impact,
                        metadata={
                            "model": reply.model,
                            "tokensUsed": reply.tokens_used,
                            "aiCost": reply.cost,
                        },
                    )
                ),
                "Ledger transaction save",
                request_id=ctx.request_id,
                user_id=ctx.user_id,
            )

        for message in (
            ChatMessage(
                user_id=ctx.user_id,
                role="user",
                content=payload.message,
                model=reply.model,
            ),
            ChatMessage(
                user_id=ctx.user_id,
                role="assistant",
                content=reply.text,
                model=reply.model,
                tokens_used=reply.tokens_used,
                cost=reply.cost,
                ledger_transaction_id=receipt.transaction_id if receipt else None,
            ),
        ):
            await best_effort(
                services.chat_log.save(message),
                "Chat message save",
                request_id=ctx.request_id,
                user_id=ctx.user_id,
            )

        data: dict[str, object] = {
            "message": reply.text,
            "model": reply.model,
            "usage": {
                "tokensUsed": reply.tokens_used,
                "cost": reply.cost,
                "costFormatted": f"${reply.cost:.6f}",
            },
            "rateLimit": {
                "remaining": ctx.rate_limit.remaining if ctx.rate_limit else 0,
            },
        }
        if receipt is not None:
            data["blockchain"] = {
                "transactionId": receipt.transaction_id,
                "consensusTimestamp": receipt.consensus_timestamp,
                "status": receipt.status,
            }
        return success(data, meta={"requestId": ctx.request_id})

    async def chat_history(request: Request, ctx: RequestContext) -> Response:
        limit = _int_param(request, "limit", DEFAULT_HISTORY_LIMIT)
        page = _int_param(request, "page", 1)
        if limit is None or not 1 <= limit <= MAX_HISTORY_LIMIT:
            return api_error(
                ErrorCode.BAD_REQUEST,
                f"Limit must be between 1 and {MAX_HISTORY_LIMIT}",
            )
        if page is None or page < 1:
            return api_error(ErrorCode.BAD_REQUEST, "Page must be at least 1")

        messages, total = await services.chat_log.history(
            ctx.user_id, limit=limit, offset=(page - 1) * limit
        )
        return paginated(
            [m.to_dict() for m in messages],
            page=page,
            limit=limit,
            total=total,
            meta={"requestId": ctx.request_id},
        )

    async def clear_history(request: Request, ctx: RequestContext) -> Response:
        days = _int_param(request, "days", 0)
        if days is None or days < 0:
            return api_error(ErrorCode.BAD_REQUEST, "Days must be a non-negative number")

        # Zero days keeps nothing
        cutoff = services.clock() - timedelta(days=days) if days > 0 else None
        deleted = await services.chat_log.delete_older_than(ctx.user_id, cutoff)
        logger.info(
            "Chat messages deleted",
            extra={"user_id": ctx.user_id, "deleted": deleted, "days": days},
        )
        message = (
            f"Deleted {deleted} messages older than {days} days"
            if days > 0
            else f"Deleted all {deleted} messages"
        )
        return success(
            {"deleted": deleted, "message": message},
            meta={"requestId": ctx.request_id},
        )

    async def metrics(request: Request, ctx: RequestContext) -> Response:
        stats = await services.chat_log.stats(ctx.user_id)
        summary = await services.ledger_log.summary(ctx.user_id)
        recent = await services.ledger_log.recent(ctx.user_id, limit=RECENT_TRANSACTIONS)
        return success(
            {
                "user": {"id": ctx.user_id, "stats": stats.to_dict()},
                "blockchain": {
                    "totalTransactions": summary.total_transactions,
                    "totalCost": summary.total_cost,
                    "totalCarbonSaved": summary.total_carbon_saved,
                    "recentTransactions": [t.to_dict() for t in recent],
                },
                "system": {
                    "database": {"connected": await services.health()},
                    "uptimeSeconds": round(services.uptime_seconds, 3),
                },
            },
            meta={"requestId": ctx.request_id},
        )

    chat_policy = RateLimitPolicy(
        max_requests=settings.rate_limit_max_requests,
        window_ms=settings.rate_limit_window_ms,
    )

    app.add_api_route(
        "/api/health",
        create_handler(health, services=services, methods=["GET"], cors=True),
        methods=["GET", "OPTIONS"],
    )
    app.add_api_route(
        "/api/chat",
        create_handler(
            send_chat,
            services=services,
            auth="optional",
            methods=["POST"],
            rate_limit=chat_policy,
            cors=True,
            charge=True,
        ),
        methods=["POST", "OPTIONS"],
    )
    app.add_api_route(
        "/api/chat/history",
        create_handler(
            chat_history,
            services=services,
            auth="required",
            methods=["GET"],
            cors=True,
        ),
        methods=["GET", "OPTIONS"],
    )
    app.add_api_route(
        "/api/chat/history",
        create_handler(
            clear_history,
            services=services,
            auth="required",
            methods=["DELETE"],
            cors=True,
        ),
        methods=["DELETE"],
    )
    app.add_api_route(
        "/api/metrics",
        create_handler(
            metrics, services=services, auth="required", methods=["GET"], cors=True
        ),
        methods=["GET", "OPTIONS"],
    )
    return app
