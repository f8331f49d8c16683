"""Built-in source table for the university tender boards."""

from __future__ import annotations

from .models import SourceConfig


def _table(url: str, **overrides: object) -> dict[str, object]:
    options: dict[str, object] = {
        "url": url,
        "row_selector": "table tr",
        "skip_rows": 1,
        "name_column": 0,
        "posted_column": 1,
        "closing_column": 2,
        "links_column": 3,
    }
    options.update(overrides)
    return options


DEFAULT_SOURCES: tuple[SourceConfig, ...] = (
    SourceConfig(
        source_id="basar",
        name="Basar",
        priority=1,
        scrape_interval_minutes=30,
        options=_table(
            "https://www.rgukt.ac.in/tenders.html",
            row_selector="table.table tbody tr",
            skip_rows=0,
        ),
    ),
    SourceConfig(
        source_id="ongole",
        name="Ongole",
        priority=1,
        scrape_interval_minutes=30,
        options=_table(
            "https://www.rguktong.ac.in/instituteinfo.php?data=tenders",
            row_selector="table.tenders-table tbody tr",
            skip_rows=0,
        ),
    ),
    SourceConfig(
        source_id="rkvalley",
        name="RK Valley",
        priority=2,
        scrape_interval_minutes=45,
        options=_table("https://www.rguktrkv.ac.in/Tenders.php"),
    ),
    SourceConfig(
        source_id="sklm",
        name="Srikakulam",
        priority=2,
        scrape_interval_minutes=45,
        options=_table("https://rguktsklm.ac.in/tenders/"),
    ),
    SourceConfig(
        source_id="nuzvidu",
        name="RGUKT Nuzvidu",
        priority=3,
        scrape_interval_minutes=60,
        options=_table("https://rguktn.ac.in/tenders/", links_column=-1),
    ),
    SourceConfig(
        source_id="rgukt",
        name="RGUKT Main",
        priority=4,
        scrape_interval_minutes=60,
        enabled=False,
        options=_table("https://www.rgukt.in/tenders.html"),
    ),
)


__all__ = ["DEFAULT_SOURCES"]
