"""RequestContext — per-request state container."""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from starlette.requests import Request

if TYPE_CHECKING:
    from aether_pipeline.trace import PipelineTrace

ANONYMOUS = "anonymous"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def generate_request_id() -> str:
    """Return an opaque id of the form ``req_<epoch-ms>_<random>``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(13))
    return f"req_{int(time.time() * 1000)}_{suffix}"


@dataclass(frozen=True)
class RateLimitStatus:
    """Outcome of a rate limit check."""

    allowed: bool
    remaining: int
    reset_at: datetime | None = None


@dataclass
class RequestContext:
    """Per-request state written by middleware and read by the handler."""

    request: Request
    request_id: str = field(default_factory=generate_request_id)
    start_time: float = field(default_factory=time.time)
    user_id: str = ANONYMOUS
    rate_limit: RateLimitStatus | None = None
    cors_headers: dict[str, str] | None = None
    trace: PipelineTrace | None = None

    @property
    def elapsed_ms(self) -> float:
        return (time.time() - self.start_time) * 1000

    @property
    def is_anonymous(self) -> bool:
        return self.user_id == ANONYMOUS
