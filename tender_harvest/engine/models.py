"""Record types flowing through the ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

Signature = tuple[str, str, str]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class DownloadLink:
    text: str
    url: str

    def to_dict(self) -> dict[str, str]:
        return {"text": self.text, "url": self.url}


def _coerce_links(value: Iterable[Any] | None) -> tuple[DownloadLink, ...]:
    links: list[DownloadLink] = []
    for item in value or ():
        if isinstance(item, DownloadLink):
            links.append(item)
        elif isinstance(item, Mapping):
            links.append(DownloadLink(text=str(item.get("text") or ""), url=str(item.get("url") or "")))
        else:
            raise TypeError(f"Unsupported download link: {item!r}")
    return tuple(links)


@dataclass(slots=True)
class RawRecord:
    """Tender exactly as a source adapter produced it."""

    name: str
    posted_date: str
    closing_date: str = ""
    download_links: list[DownloadLink] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class Record:
    """A tender attached to the source it was harvested from.

    Identity is the ``(name, posted_date, source)`` triple, compared as exact
    strings. Closing date and links do not take part in deduplication.
    """

    name: str
    posted_date: str
    closing_date: str
    download_links: tuple[DownloadLink, ...]
    source: str

    @property
    def signature(self) -> Signature:
        return (self.name, self.posted_date, self.source)

    @classmethod
    def from_raw(cls, raw: RawRecord, source_id: str) -> "Record":
        closing_date = "" if raw.closing_date is None else raw.closing_date
        for field_name, value in (
            ("name", raw.name),
            ("posted_date", raw.posted_date),
            ("closing_date", closing_date),
        ):
            if not isinstance(value, str):
                raise TypeError(f"{field_name} must be a string, got {value!r}")
        return cls(
            name=raw.name,
            posted_date=raw.posted_date,
            closing_date=closing_date,
            download_links=_coerce_links(raw.download_links),
            source=source_id,
        )

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Record":
        return cls(
            name=str(payload["name"]),
            posted_date=str(payload["posted_date"]),
            closing_date=str(payload.get("closing_date") or ""),
            download_links=_coerce_links(payload.get("download_links")),
            source=str(payload["source"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "posted_date": self.posted_date,
            "closing_date": self.closing_date,
            "download_links": [link.to_dict() for link in self.download_links],
            "source": self.source,
        }


__all__ = ["DownloadLink", "RawRecord", "Record", "Signature", "utc_now"]
