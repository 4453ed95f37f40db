"""Built-in middleware."""

from aether_pipeline.components.authentication import (
    OptionalAuthentication,
    RequireAuthentication,
    anonymous_session,
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

__all__ = [
    "CORS",
    "AllowedMethods",
    "FixedWindowRateLimiter",
    "InMemoryRateLimitStore",
    "OptionalAuthentication",
    "RateLimit",
    "RateLimitPolicy",
    "RateLimitRecord",
    "RateLimitStore",
    "RequestLogging",
    "RequireAuthentication",
    "anonymous_session",
]
