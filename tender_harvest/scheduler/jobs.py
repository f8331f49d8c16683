"""Per-source job state owned by the ingestion scheduler."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    ERROR = "error"


def backoff_delay(error_count: int, base: timedelta, maximum: timedelta) -> timedelta:
    """Exponential retry delay ``min(base * 2**error_count, maximum)``."""

    if error_count < 0:
        raise ValueError("error_count must be >= 0")
    # Past this exponent the product exceeds any realistic cap.
    if error_count >= 32:
        return maximum
    return min(base * (2**error_count), maximum)


@dataclass
class Job:
    """Mutable runtime state of one source; only the scheduler writes it."""

    source_id: str
    next_run: datetime
    status: JobStatus = JobStatus.IDLE
    last_run: datetime | None = None
    success_count: int = 0
    error_count: int = 0
    last_error: str | None = None
    last_fetched: int | None = None
    last_new: int | None = None


@dataclass(frozen=True)
class JobSnapshot:
    """Read-only view of a job for status endpoints and the CLI."""

    source_id: str
    name: str
    status: JobStatus
    last_run: datetime | None
    next_run: datetime
    success_count: int
    error_count: int
    last_error: str | None
    last_fetched: int | None
    last_new: int | None
    priority: int
    interval_minutes: float

    def as_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "name": self.name,
            "status": self.status.value,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "next_run": self.next_run.isoformat(),
            "success_count": self.success_count,
            "error_count": self.error_count,
            "last_error": self.last_error,
            "last_fetched": self.last_fetched,
            "last_new": self.last_new,
            "priority": self.priority,
            "interval_minutes": self.interval_minutes,
        }


__all__ = ["Job", "JobSnapshot", "JobStatus", "backoff_delay"]
