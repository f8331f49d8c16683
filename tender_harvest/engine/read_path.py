"""Cache-first read path with record store fallback."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Sequence

from ..config import SourceConfig
from ..errors import CacheError, ReadPathError
from ..infra.cache import BaseCache
from ..logging_conf import configure_logging
from .models import Record, utc_now
from .store import BaseRecordStore

DEFAULT_TTL_SECONDS = 900


@dataclass
class ReadResult:
    """Typed response of the read path; ``success`` is False when degraded."""

    success: bool
    source: str
    data: list[Record] = field(default_factory=list)
    timestamp: str | None = None
    new_count: int = 0
    cached: bool = False
    fallback: str | None = None
    error: str | None = None

    @property
    def total(self) -> int:
        return len(self.data)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "source": self.source,
            "data": [record.to_dict() for record in self.data],
            "total": self.total,
            "new_count": self.new_count,
            "timestamp": self.timestamp,
            "cached": self.cached,
        }
        if self.fallback:
            payload["fallback"] = self.fallback
        if self.error:
            payload["error"] = self.error
        return payload

    def raise_for_error(self) -> "ReadResult":
        if not self.success:
            raise ReadPathError(self.source, self.error or "read failed", self.to_dict())
        return self


class TenderReadPath:
    """Serve a source's tenders from the cache, falling back to the record store."""

    def __init__(
        self,
        cache: BaseCache,
        store: BaseRecordStore,
        sources: Iterable[SourceConfig],
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        key_prefix: str = "tender",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.cache = cache
        self.store = store
        self.sources = {source.source_id: source for source in sources}
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix
        self._clock = clock
        self.logger = configure_logging().bind(component="read_path")

    def cache_key(self, source_id: str) -> str:
        return f"{self.key_prefix}:{source_id}"

    # ------------------------------------------------------------------
    def read(self, source_id: str) -> ReadResult:
        if source_id not in self.sources:
            return ReadResult(success=False, source=source_id, error="Source not found")

        cached = self._read_cache(source_id)
        if cached is not None:
            return cached

        self.logger.info("cache_miss", source=source_id)
        try:
            records = self.store.list_records(source_id)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("fallback_read_failed", source=source_id, error=str(exc))
            return ReadResult(
                success=False, source=source_id, error="Cache retrieval failed"
            )
        self.write(source_id, records, new_count=0, replace=False)
        return ReadResult(
            success=True,
            source=source_id,
            data=records,
            timestamp=self._clock().isoformat(),
            cached=False,
            fallback="database",
        )

    def write(
        self, source_id: str, records: Sequence[Record], new_count: int, replace: bool = True
    ) -> bool:
        """Store the cache entry for ``source_id``; False when nothing was written.

        With ``replace=False`` an entry that is already live is left untouched.
        """

        key = self.cache_key(source_id)
        timestamp = self._clock().isoformat()
        entry = {
            "source": source_id,
            "data": [record.to_dict() for record in records],
            "new_count": new_count,
            "timestamp": timestamp,
            "ttl": self.ttl_seconds,
        }
        meta = {
            "last_updated": timestamp,
            "total": len(records),
            "new_count": new_count,
            "source": source_id,
        }
        try:
            payload = json.dumps(entry, ensure_ascii=False)
            if replace:
                self.cache.set(key, payload, self.ttl_seconds)
            elif not self.cache.add(key, payload, self.ttl_seconds):
                self.logger.info("cache_refill_skipped", source=source_id)
                return False
            self.cache.set(f"{key}:meta", json.dumps(meta), self.ttl_seconds)
        except CacheError as exc:
            self.logger.warning("cache_write_failed", source=source_id, error=str(exc))
            return False
        self.logger.info("cache_written", source=source_id, total=len(records), new=new_count)
        return True

    def invalidate(self, source_id: str) -> bool:
        key = self.cache_key(source_id)
        try:
            self.cache.delete(key, f"{key}:meta")
        except CacheError as exc:
            self.logger.warning("cache_invalidate_failed", source=source_id, error=str(exc))
            return False
        return True

    def metadata(self, source_id: str) -> dict[str, Any] | None:
        try:
            raw = self.cache.get(f"{self.cache_key(source_id)}:meta")
        except CacheError:
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return None

    # ------------------------------------------------------------------
    def _read_cache(self, source_id: str) -> ReadResult | None:
        try:
            raw = self.cache.get(self.cache_key(source_id))
        except CacheError as exc:
            self.logger.warning("cache_read_failed", source=source_id, error=str(exc))
            return None
        if raw is None:
            return None
        try:
            entry: Mapping[str, Any] = json.loads(raw)
            records = [Record.from_dict(item) for item in entry["data"]]
        except (ValueError, KeyError, TypeError) as exc:
            self.logger.warning("cache_entry_corrupt", source=source_id, error=str(exc))
            self.invalidate(source_id)
            return None
        return ReadResult(
            success=True,
            source=source_id,
            data=records,
            timestamp=entry.get("timestamp"),
            new_count=int(entry.get("new_count") or 0),
            cached=True,
        )


__all__ = ["ReadResult", "TenderReadPath"]
