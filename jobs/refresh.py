"""End-to-end refresh: geography hierarchy, area aggregates and ward rankings."""

from __future__ import annotations

import asyncio
import logging
import os
from functools import partial

from dotenv import load_dotenv

from jobs.config import DashboardSettings, get_area_by_key
from pipelines.errors import FetchFailure, SourceUnavailable
from pipelines.model import (
    AreaSnapshot,
    GeographyHierarchy,
    WardComparisonEntry,
    YearlySummary,
)
from pipelines.observations import (
    AggregationDiagnostics,
    aggregate_dwelling_counts,
    aggregate_observations,
    yearly_series,
)
from pipelines.sources.geography_table import load_hierarchy
from pipelines.sources.statistics_gov_scot import (
    fetch_dwelling_counts,
    fetch_price_observations,
)
from pipelines.ward_comparison import ObservationFetcher, compare_wards

load_dotenv()

logger = logging.getLogger(__name__)


class UnknownCouncil(LookupError):
    """The requested council is not part of the loaded hierarchy."""


async def load_geography(settings: DashboardSettings) -> GeographyHierarchy:
    return await load_hierarchy(settings.geography_table, timeout=settings.http_timeout)


def price_fetcher(settings: DashboardSettings) -> ObservationFetcher:
    return partial(
        fetch_price_observations,
        endpoint=settings.sparql_endpoint,
        timeout=settings.http_timeout,
    )


async def dwelling_totals_async(area_code: str, settings: DashboardSettings) -> dict[str, int]:
    """Dwelling totals per type for an area; empty when the feed fails."""

    try:
        rows = await fetch_dwelling_counts(
            area_code, endpoint=settings.sparql_endpoint, timeout=settings.http_timeout
        )
    except FetchFailure as exc:
        logger.warning("Dwelling counts unavailable for %s: %s", area_code, exc)
        return {}
    return aggregate_dwelling_counts(rows)


async def yearly_summaries_async(
    area_code: str, settings: DashboardSettings
) -> list[YearlySummary]:
    """Yearly price summaries for an area in ascending year order.

    The price feed is required: its failure raises :class:`SourceUnavailable`.
    """

    try:
        observations = await price_fetcher(settings)(area_code)
    except FetchFailure as exc:
        raise SourceUnavailable(f"Price feed unavailable for {area_code}: {exc}") from exc

    diagnostics = AggregationDiagnostics()
    summaries = aggregate_observations(observations, diagnostics=diagnostics)
    if diagnostics.dropped_periods or diagnostics.field_parse_failures:
        logger.warning(
            "Aggregated %s observations for %s with %s dropped periods and %s parse failures.",
            diagnostics.records_seen,
            area_code,
            diagnostics.dropped_periods,
            diagnostics.field_parse_failures,
        )
    return yearly_series(summaries)


async def refresh_area_async(area_code: str, settings: DashboardSettings) -> AreaSnapshot:
    """Fetch and aggregate price and dwelling data for one area concurrently."""

    yearly, dwellings = await asyncio.gather(
        yearly_summaries_async(area_code, settings),
        dwelling_totals_async(area_code, settings),
    )
    return AreaSnapshot(area_code=area_code, yearly=tuple(yearly), dwellings=dwellings)


async def compare_council_wards_async(
    hierarchy: GeographyHierarchy,
    council_code: str,
    settings: DashboardSettings,
    *,
    country_code: str | None = None,
    fetcher: ObservationFetcher | None = None,
) -> list[WardComparisonEntry]:
    council = hierarchy.find_council(council_code, country_code)
    if council is None:
        raise UnknownCouncil(council_code)
    return await compare_wards(
        council,
        fetcher or price_fetcher(settings),
        max_concurrency=settings.ward_fetch_concurrency,
        timeout=settings.ward_fetch_timeout,
    )


def resolve_area_code(area: str) -> str:
    """Map a preset key such as ``dundee_city`` to its area code; codes pass through."""

    preset = get_area_by_key(area)
    return preset.area_code if preset else area


async def refresh_async(
    settings: DashboardSettings | None = None, area: str | None = None
) -> int:
    """Run one refresh cycle for ``area`` (a preset key or area code) and the default council."""

    settings = settings or DashboardSettings.from_env()
    hierarchy = await load_geography(settings)

    snapshot = await refresh_area_async(resolve_area_code(area or settings.default_area), settings)
    logger.info(
        "Area %s: %s yearly summaries, %s dwelling types.",
        snapshot.area_code,
        len(snapshot.yearly),
        len(snapshot.dwellings),
    )

    if settings.default_council:
        ranking = await compare_council_wards_async(
            hierarchy,
            settings.default_council,
            settings,
            country_code=settings.default_country,
        )
        for position, entry in enumerate(ranking, start=1):
            logger.info(
                "%s. %s mean=%.0f median=%.0f", position, entry.ward_name, entry.mean_price, entry.median_price
            )
    return 0


def main(settings: DashboardSettings | None = None, area: str | None = None) -> int:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    try:
        return asyncio.run(refresh_async(settings, area))
    except (SourceUnavailable, UnknownCouncil) as exc:
        logger.error("Refresh failed: %s", exc)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
