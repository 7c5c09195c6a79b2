"""Reduce raw feed rows into per-year price summaries and dwelling totals."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping

from pipelines.model import (
    DwellingTypeCount,
    MeasureKind,
    ObservationRecord,
    YearlySummary,
)

logger = logging.getLogger(__name__)

# reference.data.gov.uk interval URIs, e.g. .../id/year/2020 or .../id/quarter/2020-Q1
_REFERENCE_PERIOD = re.compile(
    r"/id/(?:year|quarter|month|week|day|government-year|gregorian-interval)/(\d{4})"
)
_BARE_YEAR = re.compile(r"^\d{4}$")
# 2020-01, 2020/01/01, 2020-Q1
_LEADING_YEAR = re.compile(r"^(\d{4})[-/]")
_PERIOD_FORMATS = ("%Y-%m", "%Y/%m/%d", "%Y/%m", "%B %Y", "%b %Y", "%d %B %Y", "%d/%m/%Y")

_SUMMARY_FIELDS: Mapping[MeasureKind, str] = {
    MeasureKind.MEAN: "mean_price",
    MeasureKind.MEDIAN: "median_price",
    MeasureKind.LOWER_QUARTILE: "lower_quartile",
    MeasureKind.UPPER_QUARTILE: "upper_quartile",
    MeasureKind.COUNT: "sales_count",
}


@dataclass
class AggregationDiagnostics:
    """Counters for records recovered locally during aggregation."""

    records_seen: int = 0
    dropped_periods: int = 0
    field_parse_failures: int = 0
    unclassified_measures: int = 0


def parse_period_year(raw_period: str) -> int | None:
    """Return the calendar year of a feed period, or ``None`` when unrecognised."""

    period = raw_period.strip()
    if not period:
        return None
    if _BARE_YEAR.match(period):
        return int(period)
    try:
        return datetime.fromisoformat(period.replace("Z", "+00:00")).year
    except ValueError:
        pass
    for fmt in _PERIOD_FORMATS:
        try:
            return datetime.strptime(period, fmt).year
        except ValueError:
            continue
    match = _REFERENCE_PERIOD.search(period) or _LEADING_YEAR.match(period)
    if match:
        return int(match.group(1))
    return None


def coerce_price(value: Any) -> float | None:
    if isinstance(value, (int, float)):
        numeric = float(value)
    elif isinstance(value, str):
        try:
            numeric = float(value.strip())
        except ValueError:
            return None
    else:
        return None

    if math.isnan(numeric) or math.isinf(numeric):
        return None
    return numeric


def coerce_count(value: Any) -> int | None:
    if isinstance(value, str):
        stripped = value.strip()
        try:
            return int(stripped)
        except ValueError:
            pass
    numeric = coerce_price(value)
    if numeric is None or not numeric.is_integer():
        return None
    return int(numeric)


def aggregate_observations(
    observations: Iterable[ObservationRecord],
    *,
    diagnostics: AggregationDiagnostics | None = None,
) -> dict[str, YearlySummary]:
    """Fold observations into one :class:`YearlySummary` per calendar year.

    Later observations for the same year and measure overwrite earlier ones.
    Records whose period has no recognisable year are dropped, unparsable values
    default to zero; both are logged and counted in ``diagnostics``.
    """

    stats = diagnostics if diagnostics is not None else AggregationDiagnostics()
    by_year: dict[str, dict[str, Any]] = {}

    for record in observations:
        stats.records_seen += 1
        year = parse_period_year(record.period)
        if year is None:
            stats.dropped_periods += 1
            logger.warning("Dropping observation with unparsable period %r.", record.period)
            continue

        key = f"{year:04d}"
        fields = by_year.setdefault(key, {"year": key})

        kind = record.kind
        if kind is None:
            stats.unclassified_measures += 1
            logger.debug("Ignoring observation with unknown measure %r.", record.measure)
            continue

        if kind is MeasureKind.COUNT:
            parsed: float | int | None = coerce_count(record.value)
        else:
            parsed = coerce_price(record.value)
        if parsed is None:
            stats.field_parse_failures += 1
            logger.warning(
                "Could not parse %s value %r for period %s; defaulting to 0.",
                kind.value,
                record.value,
                record.period,
            )
            parsed = 0
        fields[_SUMMARY_FIELDS[kind]] = parsed

    return {key: YearlySummary(**fields) for key, fields in by_year.items()}


def yearly_series(summaries: Mapping[str, YearlySummary]) -> list[YearlySummary]:
    """Summaries in ascending year order, as charts expect them."""

    return [summaries[key] for key in sorted(summaries)]


def aggregate_dwelling_counts(rows: Iterable[DwellingTypeCount]) -> dict[str, int]:
    """Sum dwelling totals per dwelling type label."""

    totals: dict[str, int] = {}
    for row in rows:
        total = coerce_count(row.total)
        if total is None:
            logger.warning(
                "Could not parse dwelling total %r for %r; defaulting to 0.",
                row.total,
                row.dwelling_type,
            )
            total = 0
        totals[row.dwelling_type] = totals.get(row.dwelling_type, 0) + total
    return totals


__all__ = [
    "AggregationDiagnostics",
    "aggregate_dwelling_counts",
    "aggregate_observations",
    "coerce_count",
    "coerce_price",
    "parse_period_year",
    "yearly_series",
]
