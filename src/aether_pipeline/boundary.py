"""Error boundary — converts faults escaping a request into error envelopes."""

from __future__ import annotations

import logging
import traceback
from collections.abc import Awaitable, Callable

from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import Response

from aether_pipeline.exceptions import (
    DependencyFault,
    FaultKind,
    PipelineFault,
    RateLimitFault,
    ValidationFault,
)
from aether_pipeline.observability import Timer
from aether_pipeline.responses import ErrorCode, api_error

logger = logging.getLogger(__name__)

Endpoint = Callable[[Request], Awaitable[Response]]

GENERIC_MESSAGE = "An error occurred"


def _validation(fault: PipelineFault) -> Response:
    errors = fault.errors if isinstance(fault, ValidationFault) else []
    return api_error(
        ErrorCode.VALIDATION_ERROR,
        fault.detail,
        details={"errors": errors} if errors else None,
    )


def _rate_limit(fault: PipelineFault) -> Response:
    retry_after = fault.retry_after if isinstance(fault, RateLimitFault) else None
    return api_error(ErrorCode.RATE_LIMIT_EXCEEDED, fault.detail, retry_after=retry_after)


def _dependency(fault: PipelineFault) -> Response:
    retry_after = fault.retry_after if isinstance(fault, DependencyFault) else None
    return api_error(fault.code, fault.detail, retry_after=retry_after)


def _plain(fault: PipelineFault) -> Response:
    return api_error(fault.code, fault.detail)


# Every FaultKind except INTERNAL, which depends on the exposure setting
_HANDLERS: dict[FaultKind, Callable[[PipelineFault], Response]] = {
    FaultKind.VALIDATION: _validation,
    FaultKind.AUTH: _plain,
    FaultKind.RATE_LIMIT: _rate_limit,
    FaultKind.NOT_FOUND: _plain,
    FaultKind.DEPENDENCY: _dependency,
}


class ErrorBoundary:
    """One per route: times each request and turns faults into responses.

    With ``expose_errors`` the raw message and stack of unclassified errors
    are returned to the client; otherwise a generic message replaces them.
    """

    def __init__(self, *, expose_errors: bool = False) -> None:
        self.expose_errors = expose_errors

    def wrap(self, endpoint: Endpoint) -> Endpoint:
        async def guarded(request: Request) -> Response:
            return await self.guard(request, endpoint(request))

        guarded.__name__ = getattr(endpoint, "__name__", "endpoint")
        return guarded

    async def guard(self, request: Request, operation: Awaitable[Response]) -> Response:
        """Await ``operation`` for ``request``; a raised fault becomes its response."""
        timer = Timer(f"{request.method} {request.url.path}", logger)
        try:
            response = await operation
        except Exception as exc:
            timer.end_with_error(exc)
            logger.error(
                "API route error",
                exc_info=exc,
                extra={"method": request.method, "path": request.url.path},
            )
            return self.to_response(exc)
        timer.end(status=response.status_code)
        return response

    def to_response(self, exc: Exception) -> Response:
        if isinstance(exc, ValidationError):
            return api_error(
                ErrorCode.VALIDATION_ERROR,
                "Validation failed",
                details={"errors": exc.errors(include_url=False, include_context=False)},
            )
        if isinstance(exc, PipelineFault) and exc.kind in _HANDLERS:
            return _HANDLERS[exc.kind](exc)
        return self._internal(exc)

    def _internal(self, exc: Exception) -> Response:
        if not self.expose_errors:
            return api_error(ErrorCode.INTERNAL_ERROR, GENERIC_MESSAGE)
        message = exc.detail if isinstance(exc, PipelineFault) else str(exc)
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return api_error(
            ErrorCode.INTERNAL_ERROR,
            message or GENERIC_MESSAGE,
            details={"stack": stack},
        )


def with_error_boundary(endpoint: Endpoint, *, expose_errors: bool = False) -> Endpoint:
    return ErrorBoundary(expose_errors=expose_errors).wrap(endpoint)
