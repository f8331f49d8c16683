"""Deduplication layer deciding which fetched tenders are genuinely new."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Sequence

from ..errors import StorageError
from ..logging_conf import configure_logging
from .models import Record, Signature
from .store import BaseRecordStore

DEFAULT_CHUNK_SIZE = 50


@dataclass
class IngestResult:
    new_records: list[Record] = field(default_factory=list)
    stored_records: list[Record] = field(default_factory=list)
    failed_chunks: list[int] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.new_records)

    @property
    def stored(self) -> int:
        return len(self.stored_records)

    @property
    def complete(self) -> bool:
        return self.stored >= self.attempted


def _chunked(records: Sequence[Record], size: int) -> Iterator[Sequence[Record]]:
    for start in range(0, len(records), size):
        yield records[start : start + size]


class Deduplicator:
    """Compare fetched tenders with the record store and persist the new ones.

    Existing signatures for a source are read once per batch. Writes go out
    in chunks with ignore-on-conflict semantics, so a concurrent writer that
    inserted the same tender first does not make the batch fail.
    """

    def __init__(self, store: BaseRecordStore, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self.store = store
        self.chunk_size = chunk_size
        self.logger = configure_logging().bind(component="dedup")

    def find_new(self, records: Iterable[Record], source_id: str) -> list[Record]:
        seen: set[Signature] = set(self.store.existing_signatures(source_id))
        fresh: list[Record] = []
        for record in records:
            if record.source != source_id:
                raise ValueError(
                    f"Record {record.name!r} belongs to {record.source!r}, not {source_id!r}"
                )
            signature = record.signature
            if signature in seen:
                continue
            seen.add(signature)
            fresh.append(record)
        return fresh

    def ingest(self, records: Sequence[Record], source_id: str) -> IngestResult:
        """Persist the new subset of ``records`` and return what was judged new.

        Raises ``StorageError`` carrying the partial ``IngestResult`` when any
        chunk failed to write.
        """

        result = IngestResult(new_records=self.find_new(records, source_id))
        self.logger.info(
            "dedup_checked", source=source_id, fetched=len(records), new=result.attempted
        )
        if not result.new_records:
            return result

        chunks = list(_chunked(result.new_records, self.chunk_size))
        for index, chunk in enumerate(chunks, start=1):
            try:
                self.store.upsert_many(chunk)
            except StorageError as exc:
                result.failed_chunks.append(index)
                self.logger.error(
                    "chunk_write_failed",
                    source=source_id,
                    chunk=index,
                    chunks=len(chunks),
                    size=len(chunk),
                    error=str(exc),
                )
                continue
            result.stored_records.extend(chunk)

        self.logger.info(
            "dedup_persisted",
            source=source_id,
            stored=result.stored,
            attempted=result.attempted,
            failed_chunks=result.failed_chunks,
        )
        if not result.complete:
            raise StorageError(
                f"Stored {result.stored}/{result.attempted} new tenders for {source_id}",
                result=result,
            )
        return result


__all__ = ["DEFAULT_CHUNK_SIZE", "Deduplicator", "IngestResult"]
