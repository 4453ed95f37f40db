"""Aether API Pipeline - middleware pipeline, rate limiting and response envelopes."""

from aether_pipeline.boundary import ErrorBoundary, with_error_boundary
from aether_pipeline.chat_log import ChatLog, ChatMessage, ChatStats, InMemoryChatLog
from aether_pipeline.component import (
    FunctionMiddleware,
    HandlerMiddleware,
    Middleware,
    middleware,
)
from aether_pipeline.components.authentication import (
    OptionalAuthentication,
    RequireAuthentication,
)
from aether_pipeline.components.cors import CORS, AllowedMethods
from aether_pipeline.components.request_logging import RequestLogging
from aether_pipeline.components.throttling import (
    FixedWindowRateLimiter,
    InMemoryRateLimitStore,
    RateLimit,
    RateLimitPolicy,
    RateLimitRecord,
    RateLimitStore,
)
from aether_pipeline.context import RateLimitStatus, RequestContext
from aether_pipeline.exceptions import (
    AuthFault,
    DependencyFault,
    FaultKind,
    InternalFault,
    NotFoundFault,
    PipelineFault,
    RateLimitFault,
    Service,
    ValidationFault,
    classify_provider_error,
)
from aether_pipeline.handler import build_pipeline, create_handler
from aether_pipeline.hooks import (
    AfterMiddleware,
    AfterPipeline,
    BeforePipeline,
    PipelineHook,
)
from aether_pipeline.ledger_log import (
    InMemoryLedgerLog,
    LedgerLog,
    LedgerSummary,
    LedgerTransaction,
)
from aether_pipeline.pipeline import Pipeline, PipelineResult, compose
from aether_pipeline.responses import (
    ErrorCode,
    api_error,
    error,
    paginated,
    preflight,
    success,
)
from aether_pipeline.services import ServiceContainer
from aether_pipeline.settings import Settings, get_settings
from aether_pipeline.side_effects import best_effort
from aether_pipeline.trace import PipelineTrace, TraceEntry

__all__ = [
    "CORS",
    "AfterMiddleware",
    "AfterPipeline",
    "AllowedMethods",
    "AuthFault",
    "BeforePipeline",
    "ChatLog",
    "ChatMessage",
    "ChatStats",
    "DependencyFault",
    "ErrorBoundary",
    "ErrorCode",
    "FaultKind",
    "FixedWindowRateLimiter",
    "FunctionMiddleware",
    "HandlerMiddleware",
    "InMemoryChatLog",
    "InMemoryLedgerLog",
    "InMemoryRateLimitStore",
    "InternalFault",
    "LedgerLog",
    "LedgerSummary",
    "LedgerTransaction",
    "Middleware",
    "NotFoundFault",
    "OptionalAuthentication",
    "Pipeline",
    "PipelineFault",
    "PipelineHook",
    "PipelineResult",
    "PipelineTrace",
    "RateLimit",
    "RateLimitFault",
    "RateLimitPolicy",
    "RateLimitRecord",
    "RateLimitStatus",
    "RateLimitStore",
    "RequestContext",
    "RequestLogging",
    "RequireAuthentication",
    "Service",
    "ServiceContainer",
    "Settings",
    "TraceEntry",
    "ValidationFault",
    "api_error",
    "best_effort",
    "build_pipeline",
    "classify_provider_error",
    "compose",
    "create_handler",
    "error",
    "get_settings",
    "middleware",
    "paginated",
    "preflight",
    "success",
    "with_error_boundary",
]
