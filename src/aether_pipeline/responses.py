"""Response envelope helpers — success, error, paginated and CORS responses.

Every API response carries one of two shapes::

    {"success": true,  "data": ..., "meta": {"timestamp": ...}}
    {"success": false, "error": {"code": ..., "message": ...}, "meta": {...}}

Clients branch on ``success`` and ``error.code`` only, so the code table in
:class:`ErrorCode` is part of the public contract.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from starlette.responses import JSONResponse, Response

DEFAULT_CORS_METHODS = ("GET", "POST", "PUT", "DELETE", "OPTIONS")
DEFAULT_CORS_HEADERS = ("Content-Type", "Authorization")
CORS_MAX_AGE = 86400


class ErrorCode(str, Enum):
    """Canonical error codes with their HTTP status and default message."""

    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    CONFLICT = "CONFLICT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    NOT_IMPLEMENTED = "NOT_IMPLEMENTED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    GATEWAY_TIMEOUT = "GATEWAY_TIMEOUT"
    DATABASE_ERROR = "DATABASE_ERROR"
    AI_SERVICE_ERROR = "AI_SERVICE_ERROR"
    BLOCKCHAIN_ERROR = "BLOCKCHAIN_ERROR"
    BLOB_STORAGE_ERROR = "BLOB_STORAGE_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    @property
    def status(self) -> int:
        return _STATUS[self]

    @property
    def default_message(self) -> str:
        return _MESSAGES[self]


_STATUS: dict[ErrorCode, int] = {
    ErrorCode.BAD_REQUEST: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.METHOD_NOT_ALLOWED: 405,
    ErrorCode.CONFLICT: 409,
    ErrorCode.VALIDATION_ERROR: 422,
    ErrorCode.RATE_LIMIT_EXCEEDED: 429,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.NOT_IMPLEMENTED: 501,
    ErrorCode.SERVICE_UNAVAILABLE: 503,
    ErrorCode.GATEWAY_TIMEOUT: 504,
    ErrorCode.DATABASE_ERROR: 500,
    ErrorCode.AI_SERVICE_ERROR: 500,
    ErrorCode.BLOCKCHAIN_ERROR: 500,
    ErrorCode.BLOB_STORAGE_ERROR: 500,
    ErrorCode.CONFIGURATION_ERROR: 500,
}

_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.BAD_REQUEST: "Bad request",
    ErrorCode.UNAUTHORIZED: "Unauthorized",
    ErrorCode.FORBIDDEN: "Forbidden",
    ErrorCode.NOT_FOUND: "Resource not found",
    ErrorCode.METHOD_NOT_ALLOWED: "Method not allowed",
    ErrorCode.CONFLICT: "Conflict",
    ErrorCode.VALIDATION_ERROR: "Validation failed",
    ErrorCode.RATE_LIMIT_EXCEEDED: "Too many requests",
    ErrorCode.INTERNAL_ERROR: "Internal server error",
    ErrorCode.NOT_IMPLEMENTED: "Not implemented",
    ErrorCode.SERVICE_UNAVAILABLE: "Service temporarily unavailable",
    ErrorCode.GATEWAY_TIMEOUT: "Gateway timeout",
    ErrorCode.DATABASE_ERROR: "Database operation failed",
    ErrorCode.AI_SERVICE_ERROR: "AI service error",
    ErrorCode.BLOCKCHAIN_ERROR: "Blockchain operation failed",
    ErrorCode.BLOB_STORAGE_ERROR: "Blob storage operation failed",
    ErrorCode.CONFIGURATION_ERROR: "Service configuration error",
}

# Codes whose responses advertise when the client may retry
RETRYABLE_CODES = frozenset(
    {ErrorCode.RATE_LIMIT_EXCEEDED, ErrorCode.SERVICE_UNAVAILABLE}
)

# Seconds advertised when a retryable error carries no better estimate
DEFAULT_RETRY_AFTER = 60


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def success(
    data: Any,
    *,
    status: int = 200,
    headers: dict[str, str] | None = None,
    meta: dict[str, Any] | None = None,
) -> JSONResponse:
    """Wrap ``data`` in the success envelope."""
    body = {
        "success": True,
        "data": data,
        "meta": {"timestamp": utc_timestamp(), **(meta or {})},
    }
    return JSONResponse(body, status_code=status, headers=headers)


def error(
    message: str,
    *,
    code: ErrorCode = ErrorCode.INTERNAL_ERROR,
    status: int | None = None,
    details: Any = None,
    headers: dict[str, str] | None = None,
    stack: str | None = None,
) -> JSONResponse:
    """Wrap an error in the error envelope. Status defaults to the code's."""
    payload: dict[str, Any] = {"code": code.value, "message": message}
    if details:
        payload["details"] = details
    if stack:
        payload["stack"] = stack
    body = {
        "success": False,
        "error": payload,
        "meta": {"timestamp": utc_timestamp()},
    }
    return JSONResponse(
        body, status_code=status or code.status, headers=headers
    )


def api_error(
    code: ErrorCode,
    message: str | None = None,
    *,
    details: Any = None,
    retry_after: int | None = None,
    stack: str | None = None,
) -> JSONResponse:
    """Table-driven error response for ``code``.

    ``retry_after`` (seconds) is honoured for retryable codes only; it is
    surfaced both as the ``Retry-After`` header and as ``details.retryAfter``,
    falling back to :data:`DEFAULT_RETRY_AFTER`.
    """
    headers: dict[str, str] = {}
    if code in RETRYABLE_CODES:
        retry_after = retry_after or DEFAULT_RETRY_AFTER
        details = {**(details or {}), "retryAfter": retry_after}
        headers["Retry-After"] = str(retry_after)
    return error(
        message or code.default_message,
        code=code,
        details=details,
        headers=headers or None,
        stack=stack,
    )


def paginated(
    items: Sequence[Any],
    *,
    page: int,
    limit: int,
    total: int,
    meta: dict[str, Any] | None = None,
) -> JSONResponse:
    """Success envelope with ``meta.pagination`` computed from the counts."""
    if limit <= 0:
        raise ValueError("limit must be positive")
    total_pages = math.ceil(total / limit)
    pagination = {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": total_pages,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
    }
    return success(list(items), meta={"pagination": pagination, **(meta or {})})


def cors_headers(
    origin: str = "*",
    methods: Sequence[str] = DEFAULT_CORS_METHODS,
    headers: Sequence[str] = DEFAULT_CORS_HEADERS,
) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Methods": ", ".join(methods),
        "Access-Control-Allow-Headers": ", ".join(headers),
    }


def preflight(
    origin: str = "*",
    methods: Sequence[str] = DEFAULT_CORS_METHODS,
    headers: Sequence[str] = DEFAULT_CORS_HEADERS,
) -> Response:
    """Empty 204 answer to a CORS preflight request."""
    allow = cors_headers(origin, methods, headers)
    allow["Access-Control-Max-Age"] = str(CORS_MAX_AGE)
    return Response(status_code=204, headers=allow)
