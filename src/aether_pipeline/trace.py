"""PipelineTrace and TraceEntry — debug execution recording."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal


@dataclass(frozen=True)
class TraceEntry:
    """Single middleware execution record."""

    middleware_name: str
    duration_ms: float
    outcome: Literal["CONTINUE", "RESPONDED", "FAILED"]
    status_code: int | None = None
    reason: str | None = None


@dataclass
class PipelineTrace:
    """Structured record of a single pipeline execution."""

    entries: list[TraceEntry] = field(default_factory=list)
    total_duration_ms: float = 0.0
    outcome: Literal["COMPLETED", "SHORT_CIRCUITED", "ERROR", "UNHANDLED"] = (
        "COMPLETED"
    )
    error: Exception | None = None

    @property
    def executed(self) -> list[str]:
        return [entry.middleware_name for entry in self.entries]
