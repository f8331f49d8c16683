"""Engine components wiring fetch → dedup → store → cache → notify."""

from .dedup import Deduplicator, IngestResult
from .models import DownloadLink, RawRecord, Record
from .notifier import LoggingNotifier, Notifier, WebhookNotifier
from .read_path import ReadResult, TenderReadPath
from .store import BaseRecordStore, RunLogEntry, SQLiteRecordStore
from .worker_pool import WorkerPool

__all__ = [
    "BaseRecordStore",
    "Deduplicator",
    "DownloadLink",
    "IngestResult",
    "LoggingNotifier",
    "Notifier",
    "RawRecord",
    "ReadResult",
    "Record",
    "RunLogEntry",
    "SQLiteRecordStore",
    "TenderReadPath",
    "WebhookNotifier",
    "WorkerPool",
]
