"""Scheduling of per-source ingestion jobs."""

from .ingestion import TICK_JOB_ID, IngestionScheduler
from .jobs import Job, JobSnapshot, JobStatus, backoff_delay

__all__ = [
    "IngestionScheduler",
    "Job",
    "JobSnapshot",
    "JobStatus",
    "TICK_JOB_ID",
    "backoff_delay",
]
