"""Error taxonomy shared by the ingestion pipeline and the read path."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover
    from .engine.dedup import IngestResult


class HarvestError(Exception):
    """Base class for every error raised by tender_harvest."""


class FetchError(HarvestError):
    """A source adapter failed or returned no usable records."""

    def __init__(self, source_id: str, message: str) -> None:
        super().__init__(message)
        self.source_id = source_id
        self.message = message


class StorageError(HarvestError):
    """Reading from or writing to the record store failed.

    ``result`` holds the partial ingest outcome when some chunks were
    written before the failure; ``fetched_count`` is filled in by the
    pipeline so the scheduler can keep it for diagnostics.
    """

    def __init__(
        self,
        message: str,
        *,
        result: "IngestResult | None" = None,
        fetched_count: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.result = result
        self.fetched_count = fetched_count


class CacheError(HarvestError):
    """The cache backend rejected an operation."""


class ReadPathError(HarvestError):
    """A degraded read result was turned into an exception by the caller."""

    def __init__(self, source_id: str, message: str, payload: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.source_id = source_id
        self.payload = payload or {}


class UnknownSourceError(HarvestError, KeyError):
    """Lookup for a source identifier the scheduler does not own."""

    def __str__(self) -> str:
        return Exception.__str__(self)


__all__ = [
    "CacheError",
    "FetchError",
    "HarvestError",
    "ReadPathError",
    "StorageError",
    "UnknownSourceError",
]
