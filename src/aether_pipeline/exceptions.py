"""PipelineFault hierarchy — tagged faults raised at the point of failure.

Each fault carries a :class:`FaultKind` tag and an :class:`ErrorCode`, so the
error boundary can classify it through a table keyed by kind instead of
inspecting the message text.
"""

from __future__ import annotations

from enum import Enum

from aether_pipeline.responses import ErrorCode


class FaultKind(Enum):
    """Fault taxonomy used by the error boundary."""

    VALIDATION = "validation"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    NOT_FOUND = "not_found"
    DEPENDENCY = "dependency"
    INTERNAL = "internal"


class Service(Enum):
    """External collaborators a DependencyFault can originate from."""

    DATABASE = "database"
    AI = "ai"
    LEDGER = "ledger"
    BLOB = "blob"

    @property
    def error_code(self) -> ErrorCode:
        return _SERVICE_CODES[self]


_SERVICE_CODES = {
    Service.DATABASE: ErrorCode.DATABASE_ERROR,
    Service.AI: ErrorCode.AI_SERVICE_ERROR,
    Service.LEDGER: ErrorCode.BLOCKCHAIN_ERROR,
    Service.BLOB: ErrorCode.BLOB_STORAGE_ERROR,
}


class PipelineFault(Exception):
    """Base for all tagged faults."""

    kind: FaultKind = FaultKind.INTERNAL

    def __init__(self, detail: str, *, code: ErrorCode) -> None:
        super().__init__(detail)
        self.detail = detail
        self.code = code

    @property
    def status_code(self) -> int:
        return self.code.status


class ValidationFault(PipelineFault):
    """Malformed or out-of-range input (422)."""

    kind = FaultKind.VALIDATION

    def __init__(
        self, detail: str = "Validation failed", *, errors: list | None = None
    ) -> None:
        super().__init__(detail, code=ErrorCode.VALIDATION_ERROR)
        self.errors = errors or []


class AuthFault(PipelineFault):
    """Missing or invalid identity (401)."""

    kind = FaultKind.AUTH

    def __init__(self, detail: str = "Authentication failed") -> None:
        super().__init__(detail, code=ErrorCode.UNAUTHORIZED)


class RateLimitFault(PipelineFault):
    """Quota exceeded (429)."""

    kind = FaultKind.RATE_LIMIT

    def __init__(
        self, detail: str = "Rate limit exceeded", *, retry_after: int | None = None
    ) -> None:
        super().__init__(detail, code=ErrorCode.RATE_LIMIT_EXCEEDED)
        self.retry_after = retry_after


class NotFoundFault(PipelineFault):
    """Requested resource does not exist (404)."""

    kind = FaultKind.NOT_FOUND

    def __init__(self, detail: str = "Resource not found") -> None:
        super().__init__(detail, code=ErrorCode.NOT_FOUND)


class DependencyFault(PipelineFault):
    """Downstream store or API failure."""

    kind = FaultKind.DEPENDENCY

    def __init__(
        self,
        detail: str,
        *,
        service: Service,
        code: ErrorCode | None = None,
        retry_after: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(detail, code=code or service.error_code)
        self.service = service
        self.retry_after = retry_after
        self.cause = cause


class InternalFault(PipelineFault):
    """Engine-level error, also used to wrap unexpected exceptions."""

    kind = FaultKind.INTERNAL

    def __init__(self, detail: str, *, cause: Exception | None = None) -> None:
        super().__init__(detail, code=ErrorCode.INTERNAL_ERROR)
        self.cause = cause


_QUOTA_MARKERS = ("quota", "rate limit", "resource exhausted", "too many requests")
_AUTH_MARKERS = ("api key", "unauthorized", "unauthenticated", "permission denied")
_TIMEOUT_MARKERS = ("timeout", "timed out", "deadline exceeded")


def classify_provider_error(exc: Exception, service: Service) -> PipelineFault:
    """Turn a raw SDK exception into a tagged fault.

    Called once, where the collaborator is invoked; provider messages are
    only inspected here and never reach API clients.
    """
    if isinstance(exc, PipelineFault):
        return exc

    text = str(exc).lower()
    if isinstance(exc, TimeoutError) or any(m in text for m in _TIMEOUT_MARKERS):
        return DependencyFault(
            f"{service.value} request timed out",
            service=service,
            code=ErrorCode.GATEWAY_TIMEOUT,
            cause=exc,
        )
    if any(m in text for m in _QUOTA_MARKERS):
        return DependencyFault(
            f"{service.value} service quota exhausted",
            service=service,
            code=ErrorCode.SERVICE_UNAVAILABLE,
            retry_after=60,
            cause=exc,
        )
    if any(m in text for m in _AUTH_MARKERS):
        fault = AuthFault(f"{service.value} service rejected credentials")
        fault.__cause__ = exc
        return fault
    return DependencyFault(service.error_code.default_message, service=service, cause=exc)
