import asyncio

import httpx
import pytest

from pipelines.errors import SourceUnavailable
from pipelines.sources import geography_table


def test_load_hierarchy_from_local_file(geography_csv):
    hierarchy = asyncio.run(geography_table.load_hierarchy(geography_csv))

    assert set(hierarchy.countries["COUNTRY1"].councils) == {"C01", "C02"}
    assert hierarchy.summary.valid_rows == 5


def test_byte_order_mark_is_ignored(tmp_path, geography_lines):
    path = tmp_path / "bom.csv"
    path.write_text("\n".join(geography_lines), encoding="utf-8-sig")

    lines = asyncio.run(geography_table.read_geography_lines(path))

    assert lines[0].startswith("col0")


def test_missing_file_is_source_unavailable(tmp_path):
    with pytest.raises(SourceUnavailable):
        asyncio.run(geography_table.load_hierarchy(tmp_path / "missing.csv"))


def test_empty_file_is_source_unavailable(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("", encoding="utf-8")

    with pytest.raises(SourceUnavailable):
        asyncio.run(geography_table.load_hierarchy(path))


def test_url_source_is_fetched_over_http(monkeypatch, geography_lines):
    requested = []

    async def fake_fetch_text(url, **kwargs):
        requested.append(url)
        return "\n".join(geography_lines)

    monkeypatch.setattr(geography_table, "fetch_text", fake_fetch_text)

    hierarchy = asyncio.run(
        geography_table.load_hierarchy("https://example.test/data/DataZone2022.csv")
    )

    assert requested == ["https://example.test/data/DataZone2022.csv"]
    assert hierarchy.summary.ward_count == 4


def test_http_failure_is_source_unavailable(monkeypatch):
    async def fake_fetch_text(url, **kwargs):
        raise httpx.ConnectError("unreachable")

    monkeypatch.setattr(geography_table, "fetch_text", fake_fetch_text)

    with pytest.raises(SourceUnavailable):
        asyncio.run(geography_table.read_geography_lines("https://example.test/missing.csv"))
