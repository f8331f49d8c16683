"""Shared fixtures: isolated harvest home, fake clock, stub adapters and stores."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

import pytest

from tender_harvest.config import ConfigLocator, ConfigRepository, SourceConfig
from tender_harvest.engine.models import DownloadLink, RawRecord, Record
from tender_harvest.engine.store import SQLiteRecordStore
from tender_harvest.infra import SQLiteManager
from tender_harvest.logging_conf import configure_logging


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now += timedelta(**delta)
        return self.now


class StubAdapter:
    """Replays scripted fetch outcomes; the last one repeats."""

    def __init__(self, *outcomes: Sequence[RawRecord] | Exception) -> None:
        self.outcomes = list(outcomes) or [[]]
        self.calls: list[str] = []

    def fetch(self, source_id: str) -> Sequence[RawRecord]:
        self.calls.append(source_id)
        index = min(len(self.calls), len(self.outcomes)) - 1
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        return list(outcome)


class RecordingNotifier:
    def __init__(self) -> None:
        self.batches: list[tuple[str, list[str]]] = []

    def notify(self, source_name: str, new_records: Sequence[Record]) -> None:
        self.batches.append((source_name, [record.name for record in new_records]))


def make_raw(count: int, prefix: str = "Tender", posted_date: str = "01-03-2024") -> list[RawRecord]:
    return [
        RawRecord(
            name=f"{prefix} {index}",
            posted_date=posted_date,
            closing_date="15-03-2024",
            download_links=[DownloadLink(text="Notice", url=f"https://example.com/{index}.pdf")],
        )
        for index in range(1, count + 1)
    ]


def make_records(source_id: str, count: int, prefix: str = "Tender") -> list[Record]:
    return [Record.from_raw(raw, source_id) for raw in make_raw(count, prefix)]


@pytest.fixture(autouse=True)
def harvest_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("TENDER_HARVEST_HOME", str(tmp_path))
    # Bind the console handler before any CliRunner swaps the std streams.
    configure_logging()
    return tmp_path


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sample_source_config() -> Callable[..., SourceConfig]:
    def _builder(**overrides: Any) -> SourceConfig:
        base: dict[str, Any] = {
            "source_id": "example",
            "name": "Example Campus",
            "adapter": "html_table",
            "priority": 1,
            "scrape_interval_minutes": 30,
            "options": {"url": "https://tenders.example.com/list"},
        }
        base.update(overrides)
        return SourceConfig(**base)

    return _builder


@pytest.fixture
def temp_config_repository(harvest_home: Path) -> Iterable[ConfigRepository]:
    repository = ConfigRepository(ConfigLocator(project_root=harvest_home))
    yield repository


@pytest.fixture
def store(tmp_path: Path, clock: FakeClock) -> Iterable[SQLiteRecordStore]:
    manager = SQLiteManager()
    record_store = SQLiteRecordStore(manager, tmp_path / "data" / "tenders.db", clock=clock)
    yield record_store
    manager.close_all()


@pytest.fixture
def stub_adapter() -> Callable[..., StubAdapter]:
    return StubAdapter


@pytest.fixture
def raw_batch() -> Callable[..., list[RawRecord]]:
    return make_raw


@pytest.fixture
def record_batch() -> Callable[..., list[Record]]:
    return make_records


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
