from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from tender_harvest.config import DEFAULT_SOURCES, ConfigLocator, ConfigRepository, GlobalConfig
from tender_harvest.config.loader import _slugify


def test_config_locator_uses_env_and_creates_directories(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    home = tmp_path / "home"
    monkeypatch.setenv("TENDER_HARVEST_HOME", str(home))
    locator = ConfigLocator()
    assert locator.project_root == home.resolve()
    for path in (locator.data_dir, locator.sources_dir, locator.logs_dir):
        assert path.exists()
    assert locator.global_config_path() == locator.data_dir / "global_config.yaml"


def test_global_config_created_on_first_load(temp_config_repository: ConfigRepository) -> None:
    path = temp_config_repository.locator.global_config_path()
    assert not path.exists()
    config = temp_config_repository.load_global_config()
    assert path.exists()
    assert config == GlobalConfig()


def test_global_config_roundtrip(temp_config_repository: ConfigRepository) -> None:
    config = GlobalConfig.model_validate(
        {"scheduler": {"tick_interval_seconds": 60, "max_workers": 4}, "cache": {"ttl_seconds": 120}}
    )
    temp_config_repository.save_global_config(config)
    reloaded = ConfigRepository(temp_config_repository.locator).load_global_config()
    assert reloaded == config
    assert temp_config_repository.database_path().name == "tenders.db"


def test_source_cycle(temp_config_repository: ConfigRepository, sample_source_config) -> None:
    source = sample_source_config(source_id="deep-tech", options={"url": "https://example.com/t"})
    path = temp_config_repository.save_source(source)
    assert path.exists()
    assert temp_config_repository.load_source("deep-tech") == source
    temp_config_repository.delete_source("deep-tech")
    with pytest.raises(FileNotFoundError):
        temp_config_repository.load_source("deep-tech")


def test_list_sources_orders_by_priority(
    temp_config_repository: ConfigRepository, sample_source_config
) -> None:
    temp_config_repository.save_source(sample_source_config(source_id="zeta", priority=1))
    temp_config_repository.save_source(sample_source_config(source_id="alpha", priority=2))
    temp_config_repository.save_source(sample_source_config(source_id="beta", priority=1))
    ids = [source.source_id for source in temp_config_repository.list_sources()]
    assert ids == ["beta", "zeta", "alpha"]


def test_list_sources_rejects_duplicate_ids(
    temp_config_repository: ConfigRepository, sample_source_config
) -> None:
    source = sample_source_config(source_id="dup")
    temp_config_repository.save_source(source)
    extra = temp_config_repository.locator.sources_dir / "copy.yaml"
    extra.write_text(yaml.safe_dump(source.model_dump(mode="json")), encoding="utf-8")
    with pytest.raises(ValueError, match="Duplicate source_id"):
        temp_config_repository.list_sources()


def test_install_default_sources(temp_config_repository: ConfigRepository) -> None:
    written = temp_config_repository.install_default_sources()
    assert len(written) == len(DEFAULT_SOURCES) == 6
    assert temp_config_repository.install_default_sources() == []
    assert len(temp_config_repository.install_default_sources(overwrite=True)) == 6

    sources = {source.source_id: source for source in temp_config_repository.list_sources()}
    assert sources["basar"].priority == 1 and sources["basar"].scrape_interval_minutes == 30
    assert sources["nuzvidu"].scrape_interval_minutes == 60
    assert sources["rgukt"].enabled is False
    assert all(source.adapter == "html_table" for source in sources.values())


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("basar", "basar"), ("RK Valley", "rk-valley"), ("a/b", "a-b")],
)
def test_slugify(raw: str, expected: str) -> None:
    assert _slugify(raw) == expected
