"""Durable record store keyed by the tender dedup signature."""

from __future__ import annotations

import json
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Callable, Iterable, Sequence

from ..errors import StorageError
from ..infra.storage import SQLiteManager
from .models import Record, Signature, utc_now


@dataclass(slots=True)
class RunLogEntry:
    """Outcome of one scheduler run, kept for the history view."""

    source: str
    started_at: datetime
    finished_at: datetime
    status: str
    fetched: int | None = None
    new: int | None = None
    error: str | None = None


class BaseRecordStore(ABC):
    """Storage contract needed by the deduplicator and the read path."""

    @abstractmethod
    def existing_signatures(self, source: str) -> set[Signature]:
        """Return every stored signature for ``source`` in one bulk read."""

    @abstractmethod
    def upsert_many(self, records: Sequence[Record]) -> int:
        """Insert records, ignoring signature conflicts; return the count submitted."""

    @abstractmethod
    def list_records(self, source: str | None = None) -> list[Record]:
        """Return stored records, newest first, optionally filtered by source."""

    def count(self, source: str | None = None) -> int:
        return len(self.list_records(source))


class SQLiteRecordStore(BaseRecordStore):
    """Record store on top of a shared SQLite connection."""

    def __init__(
        self,
        manager: SQLiteManager,
        db_path: Path,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.manager = manager
        self.db_path = db_path
        self._clock = clock
        self._lock = Lock()
        self._conn = self.manager.connect(db_path)

    def existing_signatures(self, source: str) -> set[Signature]:
        try:
            with self._lock:
                rows = self._conn.execute(
                    "SELECT name, posted_date FROM tenders WHERE source = ?", (source,)
                ).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"Querying existing tenders for {source} failed: {exc}") from exc
        return {(row["name"], row["posted_date"], source) for row in rows}

    def upsert_many(self, records: Sequence[Record]) -> int:
        if not records:
            return 0
        created_at = self._clock().isoformat()
        payload = [
            (
                record.name,
                record.posted_date,
                record.closing_date,
                json.dumps([link.to_dict() for link in record.download_links], ensure_ascii=False),
                record.source,
                created_at,
            )
            for record in records
        ]
        try:
            with self._lock:
                with self._conn:
                    self._conn.executemany(
                        """
                        INSERT INTO tenders
                            (name, posted_date, closing_date, download_links, source, created_at)
                        VALUES (?, ?, ?, ?, ?, ?)
                        ON CONFLICT(name, posted_date, source) DO NOTHING
                        """,
                        payload,
                    )
        except sqlite3.Error as exc:
            raise StorageError(f"Upserting {len(records)} tenders failed: {exc}") from exc
        return len(records)

    def list_records(self, source: str | None = None) -> list[Record]:
        query = "SELECT name, posted_date, closing_date, download_links, source FROM tenders"
        params: tuple[str, ...] = ()
        if source is not None:
            query += " WHERE source = ?"
            params = (source,)
        query += " ORDER BY created_at DESC, id DESC"
        try:
            with self._lock:
                rows = self._conn.execute(query, params).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"Reading tenders failed: {exc}") from exc
        return [self._row_to_record(row) for row in rows]

    def count(self, source: str | None = None) -> int:
        query = "SELECT COUNT(*) FROM tenders"
        params: tuple[str, ...] = ()
        if source is not None:
            query += " WHERE source = ?"
            params = (source,)
        try:
            with self._lock:
                (total,) = self._conn.execute(query, params).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Counting tenders failed: {exc}") from exc
        return int(total or 0)

    # ------------------------------------------------------------------
    # Run log
    # ------------------------------------------------------------------
    def record_run(self, entry: RunLogEntry) -> None:
        try:
            with self._lock:
                with self._conn:
                    self._conn.execute(
                        """
                        INSERT INTO ingestion_runs
                            (source, started_at, finished_at, status, fetched, new, error)
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            entry.source,
                            entry.started_at.isoformat(),
                            entry.finished_at.isoformat(),
                            entry.status,
                            entry.fetched,
                            entry.new,
                            entry.error,
                        ),
                    )
        except sqlite3.Error as exc:
            raise StorageError(f"Writing run log for {entry.source} failed: {exc}") from exc

    def recent_runs(self, source: str | None = None, limit: int = 20) -> list[RunLogEntry]:
        query = "SELECT * FROM ingestion_runs"
        params: list[object] = []
        if source is not None:
            query += " WHERE source = ?"
            params.append(source)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)
        try:
            with self._lock:
                rows = self._conn.execute(query, params).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"Reading run log failed: {exc}") from exc
        return [
            RunLogEntry(
                source=row["source"],
                started_at=datetime.fromisoformat(row["started_at"]),
                finished_at=datetime.fromisoformat(row["finished_at"]),
                status=row["status"],
                fetched=row["fetched"],
                new=row["new"],
                error=row["error"],
            )
            for row in rows
        ]

    def reset(self) -> None:
        with self._lock:
            self.manager.reset(self.db_path)
            self._conn = self.manager.connect(self.db_path)

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> Record:
        links: Iterable[dict] = json.loads(row["download_links"] or "[]")
        return Record.from_dict(
            {
                "name": row["name"],
                "posted_date": row["posted_date"],
                "closing_date": row["closing_date"],
                "download_links": links,
                "source": row["source"],
            }
        )


__all__ = ["BaseRecordStore", "RunLogEntry", "SQLiteRecordStore"]
