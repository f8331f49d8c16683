from __future__ import annotations

import sys
import types

import httpx
import pytest

from tender_harvest.engine.adapters import (
    FunctionAdapter,
    HtmlTableAdapter,
    builtin_adapters,
    resolve_adapter,
)
from tender_harvest.engine.models import RawRecord
from tender_harvest.errors import FetchError

TENDER_PAGE = """
<html><body>
<table>
  <tr><th>Name</th><th>Posted</th><th>Closing</th><th>Documents</th></tr>
  <tr>
    <td>Supply of lab equipment</td><td>01-03-2024</td><td>15-03-2024</td>
    <td><a href="/docs/lab.pdf">Notice</a> <a href="javascript:void(0)">Print</a> <a href="#top">Top</a></td>
  </tr>
  <tr>
    <td>  Hostel
        catering  </td><td>03-03-2024</td><td></td>
    <td><a href="https://cdn.example.com/catering.pdf"></a></td>
  </tr>
  <tr><td></td><td>04-03-2024</td><td></td><td></td></tr>
</table>
</body></html>
"""


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_html_table_adapter_parses_rows(sample_source_config) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text=TENDER_PAGE)

    source = sample_source_config(options={"url": "https://tenders.example.com/list/index.html"})
    records = HtmlTableAdapter(source, client=_client(handler)).fetch(source.source_id)

    assert seen[0].headers["User-Agent"].startswith("Mozilla/5.0")
    assert [record.name for record in records] == ["Supply of lab equipment", "Hostel catering"]
    first, second = records
    assert first.posted_date == "01-03-2024"
    assert first.closing_date == "15-03-2024"
    assert [(link.text, link.url) for link in first.download_links] == [
        ("Notice", "https://tenders.example.com/docs/lab.pdf")
    ]
    assert second.closing_date == ""
    assert [(link.text, link.url) for link in second.download_links] == [
        ("Download", "https://cdn.example.com/catering.pdf")
    ]


def test_html_table_adapter_respects_column_options(sample_source_config) -> None:
    html = "<table><tr><td>x</td><td>Printer cartridges</td><td>05-03-2024</td></tr></table>"
    source = sample_source_config(
        options={
            "url": "https://tenders.example.com",
            "skip_rows": 0,
            "name_column": 1,
            "posted_column": 2,
            "closing_column": None,
            "links_column": None,
        }
    )
    records = HtmlTableAdapter(source).parse(html, "https://tenders.example.com")
    assert records == [RawRecord(name="Printer cartridges", posted_date="05-03-2024")]


def test_html_table_adapter_wraps_http_errors(sample_source_config) -> None:
    source = sample_source_config()
    adapter = HtmlTableAdapter(source, client=_client(lambda request: httpx.Response(503)))
    with pytest.raises(FetchError) as excinfo:
        adapter.fetch(source.source_id)
    assert excinfo.value.source_id == "example"
    assert "503" in excinfo.value.message


def test_resolve_builtin_adapter(sample_source_config) -> None:
    assert "html_table" in builtin_adapters()
    assert isinstance(resolve_adapter(sample_source_config()), HtmlTableAdapter)


def test_resolve_adapter_references(monkeypatch: pytest.MonkeyPatch, sample_source_config) -> None:
    module = types.ModuleType("campus_adapters")

    def fetch_listing(source_id: str) -> list[RawRecord]:
        return [RawRecord(name=f"{source_id} tender", posted_date="01-03-2024")]

    class ClassAdapter:
        def __init__(self, source) -> None:
            self.source = source

        def fetch(self, source_id: str) -> list[RawRecord]:
            return []

    module.fetch_listing = fetch_listing
    module.ClassAdapter = ClassAdapter
    module.instance = ClassAdapter(None)
    module.not_callable = 42
    monkeypatch.setitem(sys.modules, "campus_adapters", module)

    function_adapter = resolve_adapter(sample_source_config(adapter="campus_adapters:fetch_listing"))
    assert isinstance(function_adapter, FunctionAdapter)
    assert function_adapter.fetch("ongole")[0].name == "ongole tender"

    class_adapter = resolve_adapter(sample_source_config(adapter="campus_adapters:ClassAdapter"))
    assert isinstance(class_adapter, ClassAdapter)
    assert class_adapter.source.source_id == "example"

    assert resolve_adapter(sample_source_config(adapter="campus_adapters:instance")) is module.instance

    for bad in ("campus_adapters:not_callable", "campus_adapters:missing", "no-colon"):
        with pytest.raises(ValueError):
            resolve_adapter(sample_source_config(adapter=bad))


def test_html_table_adapter_uses_lexbor_backend_and_custom_headers(sample_source_config) -> None:
    from tender_harvest.engine.adapters import html_table

    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text=TENDER_PAGE)

    source = sample_source_config(
        options={"url": "https://tenders.example.com/list", "headers": {"Accept-Language": "te-IN"}}
    )
    records = HtmlTableAdapter(source, client=_client(handler)).fetch(source.source_id)

    assert html_table.LexborHTMLParser.__module__.startswith("selectolax.lexbor")
    assert seen[0].headers["Accept-Language"] == "te-IN"
    assert len(records) == 2
