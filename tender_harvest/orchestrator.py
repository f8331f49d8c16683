"""Single-source ingestion run: fetch, dedup, persist, cache and notify."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

from .config import SourceConfig
from .engine.adapters import SourceAdapter
from .engine.dedup import Deduplicator
from .engine.models import Record
from .engine.notifier import LoggingNotifier, Notifier
from .engine.read_path import TenderReadPath
from .errors import FetchError, StorageError
from .logging_conf import configure_logging, source_logger


@dataclass(slots=True)
class RunSummary:
    source: str
    fetched: int
    new: int
    cached: bool


class IngestionPipeline:
    """Carry one source's fresh listing through to the store and cache.

    The pipeline holds no per-source state; the scheduler decides when it
    runs and records the outcome.
    """

    def __init__(
        self,
        adapters: Mapping[str, SourceAdapter],
        deduplicator: Deduplicator,
        read_path: TenderReadPath,
        notifier: Notifier | None = None,
    ) -> None:
        self.adapters = dict(adapters)
        self.deduplicator = deduplicator
        self.read_path = read_path
        self.notifier = notifier or LoggingNotifier()
        self.logger = configure_logging().bind(component="pipeline")

    def run(self, source: SourceConfig) -> RunSummary:
        log = source_logger(source.source_id)
        records = self._fetch(source)
        log.info("fetched", count=len(records))

        try:
            result = self.deduplicator.ingest(records, source.source_id)
        except StorageError as exc:
            exc.fetched_count = len(records)
            if exc.result is not None and exc.result.stored_records:
                # These rows are persisted and will never be reported as new again.
                self._notify(source, exc.result.stored_records)
            raise

        cached = self.read_path.write(source.source_id, records, len(result.new_records))
        if result.new_records:
            self._notify(source, result.new_records)
        log.info("run_completed", fetched=len(records), new=len(result.new_records), cached=cached)
        return RunSummary(
            source=source.source_id,
            fetched=len(records),
            new=len(result.new_records),
            cached=cached,
        )

    def _fetch(self, source: SourceConfig) -> list[Record]:
        adapter = self.adapters.get(source.source_id)
        if adapter is None:
            raise FetchError(source.source_id, f"No adapter registered for {source.source_id}")
        try:
            raw_records = adapter.fetch(source.source_id)
        except FetchError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise FetchError(source.source_id, str(exc) or type(exc).__name__) from exc
        if not raw_records:
            raise FetchError(source.source_id, "No tenders found")
        try:
            return [Record.from_raw(raw, source.source_id) for raw in raw_records]
        except (AttributeError, TypeError) as exc:
            raise FetchError(source.source_id, f"Invalid tender data: {exc}") from exc

    def _notify(self, source: SourceConfig, new_records: Sequence[Record]) -> None:
        try:
            self.notifier.notify(source.name, new_records)
        except Exception as exc:  # noqa: BLE001
            self.logger.error(
                "notify_failed", source=source.source_id, count=len(new_records), error=str(exc)
            )


__all__ = ["IngestionPipeline", "RunSummary"]
