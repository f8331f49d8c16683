from __future__ import annotations

import json

import pytest

from tender_harvest.engine.read_path import TenderReadPath
from tender_harvest.errors import CacheError, ReadPathError, StorageError
from tender_harvest.infra import MemoryCache


class BrokenStore:
    def list_records(self, source=None):
        raise StorageError("database is locked")


class BrokenCache(MemoryCache):
    def get(self, key):
        raise CacheError("cache down")

    def set(self, key, value, ttl_seconds):
        raise CacheError("cache down")

    def add(self, key, value, ttl_seconds):
        raise CacheError("cache down")


@pytest.fixture
def read_path(store, clock, sample_source_config) -> TenderReadPath:
    sources = [sample_source_config(source_id="basar"), sample_source_config(source_id="ongole")]
    return TenderReadPath(MemoryCache(clock=clock), store, sources, ttl_seconds=900, clock=clock)


def test_write_then_read_serves_cache(read_path: TenderReadPath, record_batch) -> None:
    records = record_batch("basar", 3)
    assert read_path.write("basar", records, new_count=2)
    result = read_path.read("basar")
    assert result.success and result.cached
    assert result.fallback is None
    assert result.data == records
    assert result.new_count == 2
    assert result.total == 3
    assert read_path.metadata("basar")["total"] == 3


def test_miss_falls_back_to_store_and_repopulates(read_path: TenderReadPath, store, record_batch) -> None:
    store.upsert_many(record_batch("basar", 4))
    first = read_path.read("basar")
    assert first.success
    assert first.cached is False
    assert first.fallback == "database"
    assert first.total == 4
    second = read_path.read("basar")
    assert second.cached is True
    assert second.total == 4


def test_entry_expires_after_ttl(read_path: TenderReadPath, clock, record_batch) -> None:
    read_path.write("basar", record_batch("basar", 2), new_count=2)
    clock.advance(seconds=901)
    result = read_path.read("basar")
    assert result.fallback == "database"
    assert result.data == []


def test_empty_store_is_a_successful_read(read_path: TenderReadPath) -> None:
    result = read_path.read("ongole")
    assert result.success and result.data == []


def test_unknown_source(read_path: TenderReadPath) -> None:
    result = read_path.read("nowhere")
    assert result.success is False
    assert result.error == "Source not found"
    with pytest.raises(ReadPathError):
        result.raise_for_error()


def test_store_failure_yields_degraded_result(clock, sample_source_config) -> None:
    path = TenderReadPath(MemoryCache(clock=clock), BrokenStore(), [sample_source_config()], clock=clock)
    result = path.read("example")
    assert result.success is False
    assert result.error == "Cache retrieval failed"
    assert result.data == []
    payload = result.to_dict()
    assert payload["success"] is False and payload["error"] == "Cache retrieval failed"


def test_cache_outage_reads_through_to_store(store, clock, sample_source_config, record_batch) -> None:
    store.upsert_many(record_batch("example", 2))
    path = TenderReadPath(BrokenCache(clock=clock), store, [sample_source_config()], clock=clock)
    assert path.write("example", record_batch("example", 2), new_count=0) is False
    result = path.read("example")
    assert result.success and result.fallback == "database" and result.total == 2


def test_corrupt_entry_is_treated_as_miss(read_path: TenderReadPath) -> None:
    read_path.cache.set(read_path.cache_key("basar"), "{not json", 900)
    assert read_path.read("basar").fallback == "database"


def test_invalidate_drops_entry_and_meta(read_path: TenderReadPath, record_batch) -> None:
    read_path.write("basar", record_batch("basar", 1), new_count=1)
    assert read_path.invalidate("basar")
    assert read_path.cache.get("tender:basar") is None
    assert read_path.metadata("basar") is None


def test_cache_entry_layout(read_path: TenderReadPath, record_batch) -> None:
    read_path.write("basar", record_batch("basar", 1), new_count=1)
    entry = json.loads(read_path.cache.get("tender:basar"))
    assert set(entry) == {"source", "data", "new_count", "timestamp", "ttl"}
    assert entry["data"][0]["download_links"][0]["text"] == "Notice"


class IngestDuringSnapshot:
    """Store whose listing is taken just before a pipeline run lands."""

    def __init__(self, inner, on_listed) -> None:
        self.inner = inner
        self.on_listed = on_listed

    def list_records(self, source=None):
        snapshot = self.inner.list_records(source)
        self.on_listed()
        return snapshot


def test_refill_never_overwrites_fresher_entry(store, clock, sample_source_config, record_batch) -> None:
    store.upsert_many(record_batch("basar", 5))
    cache = MemoryCache(clock=clock)
    sources = [sample_source_config(source_id="basar")]
    writer = TenderReadPath(cache, store, sources, clock=clock)

    def pipeline_lands() -> None:
        records = record_batch("basar", 6)
        store.upsert_many(records[5:])
        writer.write("basar", store.list_records("basar"), new_count=1)

    reader = TenderReadPath(cache, IngestDuringSnapshot(store, pipeline_lands), sources, clock=clock)
    stale = reader.read("basar")
    assert stale.fallback == "database" and stale.total == 5

    after = reader.read("basar")
    assert after.cached is True
    assert after.total == 6
    assert after.new_count == 1


def test_corrupt_entry_is_replaced_by_refill(read_path: TenderReadPath, store, record_batch) -> None:
    store.upsert_many(record_batch("basar", 2))
    read_path.cache.set(read_path.cache_key("basar"), "{not json", 900)
    assert read_path.read("basar").fallback == "database"
    again = read_path.read("basar")
    assert again.cached and again.total == 2
