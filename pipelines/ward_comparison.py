"""Rank the wards of a council by their latest price measures.

Every ward is fetched concurrently (bounded by a semaphore and a per-fetch
timeout). A ward whose fetch fails, times out or returns incomplete measures is
left out; the comparison itself only fails if the caller's council is invalid.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sequence

from pipelines.errors import FetchFailure
from pipelines.model import (
    PRICE_KINDS,
    Council,
    MeasureKind,
    ObservationRecord,
    Ward,
    WardComparisonEntry,
)
from pipelines.observations import coerce_price

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 8
DEFAULT_FETCH_TIMEOUT_SECONDS = 30.0

ObservationFetcher = Callable[[str], Awaitable[Sequence[ObservationRecord]]]


def latest_price_measures(
    observations: Sequence[ObservationRecord],
    *,
    area_label: str = "area",
) -> dict[MeasureKind, float | None]:
    """Return the last value of each price measure after ordering by period.

    A latest value that cannot be parsed counts as missing and is logged.
    """

    latest_records: dict[MeasureKind, ObservationRecord] = {}
    for record in sorted(observations, key=lambda obs: obs.period):
        kind = record.kind
        if kind in PRICE_KINDS:
            latest_records[kind] = record

    latest: dict[MeasureKind, float | None] = {kind: None for kind in PRICE_KINDS}
    for kind, record in latest_records.items():
        value = coerce_price(record.value)
        if value is None:
            logger.warning(
                "Could not parse latest %s value %r for %s (period %s).",
                kind.value,
                record.value,
                area_label,
                record.period,
            )
        latest[kind] = value
    return latest


def build_entry(ward: Ward, observations: Sequence[ObservationRecord]) -> WardComparisonEntry | None:
    """Build a comparison entry, or ``None`` unless all four prices are positive."""

    latest = latest_price_measures(observations, area_label=f"ward {ward.name} ({ward.code})")
    if any(value is None or value <= 0 for value in latest.values()):
        logger.info("Ward %s (%s) has incomplete price measures; excluding.", ward.name, ward.code)
        return None
    return WardComparisonEntry(
        ward_code=ward.code,
        ward_name=ward.name,
        mean_price=latest[MeasureKind.MEAN],
        median_price=latest[MeasureKind.MEDIAN],
        lower_quartile=latest[MeasureKind.LOWER_QUARTILE],
        upper_quartile=latest[MeasureKind.UPPER_QUARTILE],
    )


async def _compare_ward(
    ward: Ward,
    fetcher: ObservationFetcher,
    semaphore: asyncio.Semaphore | None,
    timeout: float | None,
) -> WardComparisonEntry | None:
    try:
        if semaphore is None:
            observations = await asyncio.wait_for(fetcher(ward.code), timeout)
        else:
            async with semaphore:
                observations = await asyncio.wait_for(fetcher(ward.code), timeout)
    except FetchFailure as exc:
        logger.warning("Fetch failed for ward %s (%s): %s", ward.name, ward.code, exc)
        return None
    except asyncio.TimeoutError:
        logger.warning("Fetch timed out for ward %s (%s) after %ss.", ward.name, ward.code, timeout)
        return None
    except Exception:
        logger.exception("Unexpected error fetching ward %s (%s).", ward.name, ward.code)
        return None

    return build_entry(ward, observations)


def rank_entries(entries: Sequence[WardComparisonEntry | None]) -> list[WardComparisonEntry]:
    """Drop missing entries and order by mean price (desc), then ward code."""

    complete = [entry for entry in entries if entry is not None]
    return sorted(complete, key=lambda entry: (-entry.mean_price, entry.ward_code))


async def compare_wards(
    council: Council,
    fetcher: ObservationFetcher,
    *,
    max_concurrency: int | None = DEFAULT_MAX_CONCURRENCY,
    timeout: float | None = DEFAULT_FETCH_TIMEOUT_SECONDS,
) -> list[WardComparisonEntry]:
    """Fetch every ward of ``council`` and return the ranked comparison.

    Returns only once every ward fetch has settled. ``max_concurrency`` of
    ``None`` (or below 1) leaves the fan-out unbounded; ``timeout`` of ``None``
    waits indefinitely for each fetch.
    """

    wards = list(council.wards.values())
    if not wards:
        return []

    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency and max_concurrency > 0 else None
    results = await asyncio.gather(
        *(_compare_ward(ward, fetcher, semaphore, timeout) for ward in wards)
    )
    ranked = rank_entries(results)
    logger.info(
        "Ward comparison for %s (%s): %s of %s wards ranked.",
        council.name,
        council.code,
        len(ranked),
        len(wards),
    )
    return ranked


__all__ = [
    "DEFAULT_FETCH_TIMEOUT_SECONDS",
    "DEFAULT_MAX_CONCURRENCY",
    "ObservationFetcher",
    "build_entry",
    "compare_wards",
    "latest_price_measures",
    "rank_entries",
]
