import asyncio
import logging

import pytest
from conftest import observation

from pipelines.errors import FetchFailure
from pipelines.model import Council, MeasureKind, Ward, WardComparisonEntry
from pipelines.ward_comparison import (
    build_entry,
    compare_wards,
    latest_price_measures,
    rank_entries,
)


def _council(*codes: str) -> Council:
    return Council(
        code="C01",
        name="CouncilOne",
        wards={code: Ward(code=code, name=f"Ward {code}") for code in codes},
    )


def _complete(mean: float, *, median: float = 100, lower: float = 50, upper: float = 150):
    return [
        observation("2019", "mean", str(mean / 2)),
        observation("2020", "mean", str(mean)),
        observation("2020", "median", str(median)),
        observation("2020", "lower-quartile", str(lower)),
        observation("2020", "upper-quartile", str(upper)),
        observation("2020", "count", "12"),
    ]


def _fetcher(responses):
    async def fetch(ward_code: str):
        await asyncio.sleep(0)
        response = responses[ward_code]
        if isinstance(response, Exception):
            raise response
        return response

    return fetch


def test_failed_ward_is_excluded_and_rest_ranked():
    fetcher = _fetcher(
        {
            "W1": _complete(200000),
            "W2": FetchFailure("upstream down", status_code=502),
            "W3": _complete(250000),
        }
    )

    ranking = asyncio.run(compare_wards(_council("W1", "W2", "W3"), fetcher))

    assert [entry.ward_code for entry in ranking] == ["W3", "W1"]
    assert ranking[0].mean_price == pytest.approx(250000)
    assert ranking[0].ward_name == "Ward W3"


def test_incomplete_or_non_positive_wards_are_dropped():
    fetcher = _fetcher(
        {
            "W1": _complete(200000),
            "W2": _complete(180000)[:-2],
            "W3": _complete(190000, lower=0),
            "W4": [],
        }
    )

    ranking = asyncio.run(compare_wards(_council("W1", "W2", "W3", "W4"), fetcher))

    assert [entry.ward_code for entry in ranking] == ["W1"]


def test_unexpected_errors_and_timeouts_do_not_fail_comparison():
    async def fetch(ward_code: str):
        if ward_code == "W1":
            raise RuntimeError("boom")
        if ward_code == "W2":
            await asyncio.sleep(5)
        return _complete(100000)

    ranking = asyncio.run(
        compare_wards(_council("W1", "W2", "W3"), fetch, timeout=0.05)
    )

    assert [entry.ward_code for entry in ranking] == ["W3"]


def test_concurrency_cap_is_respected():
    in_flight = 0
    peak = 0

    async def fetch(ward_code: str):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return _complete(100000 + int(ward_code[1:]))

    codes = [f"W{index}" for index in range(10)]
    ranking = asyncio.run(compare_wards(_council(*codes), fetch, max_concurrency=3))

    assert peak == 3
    assert len(ranking) == 10


def test_unbounded_fan_out_starts_every_fetch():
    started = []

    async def scenario():
        gate = asyncio.Event()

        async def fetch(ward_code: str):
            started.append(ward_code)
            if len(started) == 4:
                gate.set()
            await gate.wait()
            return _complete(100000)

        return await compare_wards(_council("W1", "W2", "W3", "W4"), fetch, max_concurrency=None)

    ranking = asyncio.run(scenario())

    assert sorted(started) == ["W1", "W2", "W3", "W4"]
    assert len(ranking) == 4


def test_ranking_is_non_increasing_with_ward_code_tie_break():
    fetcher = _fetcher(
        {
            "W5": _complete(150000),
            "W2": _complete(150000),
            "W9": _complete(300000),
            "W1": _complete(90000),
        }
    )

    ranking = asyncio.run(compare_wards(_council("W5", "W2", "W9", "W1"), fetcher))

    assert [entry.ward_code for entry in ranking] == ["W9", "W2", "W5", "W1"]
    means = [entry.mean_price for entry in ranking]
    assert means == sorted(means, reverse=True)


def test_empty_council_returns_empty_list():
    assert asyncio.run(compare_wards(_council(), _fetcher({}))) == []


def test_latest_measure_follows_period_order():
    observations = [
        observation("2021", "mean", "300"),
        observation("2019", "mean", "100"),
        observation("2020", "mean", "200"),
    ]

    latest = latest_price_measures(observations)

    assert latest[MeasureKind.MEAN] == pytest.approx(300)


def test_build_entry_treats_unparsable_latest_value_as_missing(caplog):
    observations = _complete(100000) + [observation("2021", "median", "n/a")]

    with caplog.at_level(logging.WARNING, logger="pipelines.ward_comparison"):
        entry = build_entry(Ward(code="W1", name="One"), observations)

    assert entry is None
    assert "Could not parse latest median value 'n/a' for ward One (W1)" in caplog.text


def test_rank_entries_skips_missing_results():
    entry = WardComparisonEntry(
        ward_code="W1",
        ward_name="One",
        mean_price=1,
        median_price=1,
        lower_quartile=1,
        upper_quartile=1,
    )

    assert rank_entries([None, entry, None]) == [entry]
