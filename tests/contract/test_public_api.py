"""Contract tests — verify all public symbols are importable from top-level."""

from __future__ import annotations

import pytest

import aether_pipeline

PUBLIC_SYMBOLS = [
    # Core
    "Pipeline",
    "PipelineResult",
    "RequestContext",
    "RateLimitStatus",
    "Middleware",
    "FunctionMiddleware",
    "HandlerMiddleware",
    "middleware",
    "compose",
    # Route builder
    "build_pipeline",
    "create_handler",
    "ErrorBoundary",
    "with_error_boundary",
    "best_effort",
    # Faults
    "PipelineFault",
    "FaultKind",
    "Service",
    "ValidationFault",
    "AuthFault",
    "RateLimitFault",
    "NotFoundFault",
    "DependencyFault",
    "InternalFault",
    "classify_provider_error",
    # Responses
    "ErrorCode",
    "success",
    "error",
    "api_error",
    "paginated",
    "preflight",
    # Trace
    "PipelineTrace",
    "TraceEntry",
    # Hooks
    "PipelineHook",
    "BeforePipeline",
    "AfterPipeline",
    "AfterMiddleware",
    # Built-in middleware
    "RequestLogging",
    "CORS",
    "AllowedMethods",
    "RequireAuthentication",
    "OptionalAuthentication",
    "RateLimit",
    # Rate limiting
    "FixedWindowRateLimiter",
    "RateLimitPolicy",
    "RateLimitRecord",
    "RateLimitStore",
    "InMemoryRateLimitStore",
    # Chat log
    "ChatLog",
    "ChatMessage",
    "InMemoryChatLog",
    "ChatStats",
    # Ledger log
    "LedgerLog",
    "LedgerTransaction",
    "LedgerSummary",
    "InMemoryLedgerLog",
    # Configuration and services
    "Settings",
    "get_settings",
    "ServiceContainer",
]


class TestPublicAPIContract:
    def test_all_symbols_importable(self) -> None:
        for symbol in PUBLIC_SYMBOLS:
            assert hasattr(aether_pipeline, symbol), (
                f"Symbol '{symbol}' not found in aether_pipeline"
            )

    def test_all_symbols_in_all(self) -> None:
        for symbol in PUBLIC_SYMBOLS:
            assert symbol in aether_pipeline.__all__, f"Symbol '{symbol}' not in __all__"

    def test_pipeline_has_add_handler_resolve(self) -> None:
        pipeline = aether_pipeline.Pipeline()
        assert hasattr(pipeline, "add")
        assert hasattr(pipeline, "add_hook")
        assert hasattr(pipeline, "handler")
        assert hasattr(pipeline, "resolve")

    def test_middleware_is_abstract(self) -> None:
        with pytest.raises(TypeError):
            aether_pipeline.Middleware()  # type: ignore[abstract]

    def test_error_codes_are_strings(self) -> None:
        assert aether_pipeline.ErrorCode.RATE_LIMIT_EXCEEDED == "RATE_LIMIT_EXCEEDED"
