"""Best-effort side effects — secondary writes that never affect the response."""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def best_effort(
    operation: Awaitable[T], description: str, **log_extra: Any
) -> T | None:
    """Await ``operation``; on failure log it and return ``None``.

    Used for audit, ledger and bookkeeping writes issued after the primary
    result is ready.
    """
    try:
        return await operation
    except Exception as exc:
        logger.warning(
            "%s failed (continuing): %s", description, exc, extra=log_extra
        )
        return None
