"""Generic adapter for tender boards published as HTML tables."""

from __future__ import annotations

from typing import Any
from urllib.parse import urljoin

import httpx
from pydantic import BaseModel, Field
from selectolax.lexbor import LexborHTMLParser, LexborNode

from ...config import SourceConfig
from ...errors import FetchError
from ...logging_conf import source_logger
from ..models import DownloadLink, RawRecord

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


class HtmlTableOptions(BaseModel):
    """Where the table lives and which columns hold which field."""

    url: str
    row_selector: str = "table tr"
    skip_rows: int = Field(default=1, ge=0)
    name_column: int = 0
    posted_column: int = 1
    closing_column: int | None = 2
    links_column: int | None = 3
    link_base_url: str | None = None
    timeout: float = Field(default=20.0, gt=0)
    headers: dict[str, str] = Field(default_factory=dict)


def _cell(cells: list[LexborNode], index: int | None) -> LexborNode | None:
    if index is None:
        return None
    try:
        return cells[index]
    except IndexError:
        return None


def _text(node: LexborNode | None) -> str:
    if node is None:
        return ""
    return " ".join(node.text(separator=" ").split())


class HtmlTableAdapter:
    """Read one tender per table row using column positions from the options."""

    def __init__(self, source: SourceConfig, client: httpx.Client | None = None) -> None:
        self.source = source
        self.options = HtmlTableOptions.model_validate(source.plain_options())
        self._client = client
        self.logger = source_logger(source.source_id).bind(component="html_table")

    def fetch(self, source_id: str) -> list[RawRecord]:
        html, final_url = self._download()
        records = self.parse(html, final_url)
        self.logger.info("table_parsed", url=final_url, rows=len(records))
        return records

    def parse(self, html: str, page_url: str) -> list[RawRecord]:
        opts = self.options
        base_url = opts.link_base_url or page_url
        parser = LexborHTMLParser(html)
        rows = parser.css(opts.row_selector)[opts.skip_rows :]
        records: list[RawRecord] = []
        for row in rows:
            cells = row.css("td")
            if not cells:
                continue
            name = _text(_cell(cells, opts.name_column))
            if not name:
                continue
            records.append(
                RawRecord(
                    name=name,
                    posted_date=_text(_cell(cells, opts.posted_column)),
                    closing_date=_text(_cell(cells, opts.closing_column)),
                    download_links=self._links(_cell(cells, opts.links_column), base_url),
                )
            )
        return records

    def _links(self, cell: LexborNode | None, base_url: str) -> list[DownloadLink]:
        if cell is None:
            return []
        links: list[DownloadLink] = []
        for anchor in cell.css("a"):
            href = (anchor.attributes.get("href") or "").strip()
            if not href or href.startswith(("javascript:", "#")):
                continue
            links.append(DownloadLink(text=_text(anchor) or "Download", url=urljoin(base_url, href)))
        return links

    def _download(self) -> tuple[str, str]:
        headers: dict[str, Any] = {"User-Agent": DEFAULT_USER_AGENT, **self.options.headers}
        client = self._client or httpx.Client(follow_redirects=True)
        try:
            response = client.get(self.options.url, headers=headers, timeout=self.options.timeout)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise FetchError(self.source.source_id, f"GET {self.options.url} failed: {exc}") from exc
        finally:
            if self._client is None:
                client.close()
        return response.text, str(response.url)


__all__ = ["HtmlTableAdapter", "HtmlTableOptions"]
