"""Canonical data model for geography and housing statistics."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class DataZone(_FrozenModel):
    """Finest-grained statistical geography nested under a ward."""

    code: str = Field(..., description="Small-area code (e.g. 'S02002345').")
    name: str = Field(..., description="Display label for the small area.")


class Ward(_FrozenModel):
    """Multi-member ward with its data zones in first-seen order."""

    level: Literal["ward"] = "ward"
    code: str
    name: str
    datazones: tuple[DataZone, ...] = Field(
        default=(), description="Data zones deduplicated by code, first occurrence wins."
    )


class Council(_FrozenModel):
    """Local authority keyed wards."""

    level: Literal["council"] = "council"
    code: str
    name: str
    wards: dict[str, Ward] = Field(default_factory=dict)


class Country(_FrozenModel):
    level: Literal["country"] = "country"
    code: str
    name: str
    councils: dict[str, Council] = Field(default_factory=dict)


class HierarchySummary(_FrozenModel):
    """Diagnostics collected while building a hierarchy; not authoritative state."""

    total_rows: int = 0
    valid_rows: int = 0
    rejected_rows: int = 0
    country_count: int = 0
    council_count: int = 0
    ward_count: int = 0
    datazone_count: int = 0


class GeographyHierarchy(_FrozenModel):
    """Read-only country -> council -> ward -> data zone tree."""

    countries: dict[str, Country] = Field(default_factory=dict)
    summary: HierarchySummary = Field(default_factory=HierarchySummary)

    def find_country(self, code: str) -> Country | None:
        return self.countries.get(code)

    def find_council(self, code: str, country_code: str | None = None) -> Council | None:
        """Return the council with ``code``, searching every country unless one is given."""

        if country_code is not None:
            country = self.find_country(country_code)
            return country.councils.get(code) if country else None
        for country in self.countries.values():
            council = country.councils.get(code)
            if council is not None:
                return council
        return None

    def is_empty(self) -> bool:
        return not self.countries


class MeasureKind(str, Enum):
    MEAN = "mean"
    MEDIAN = "median"
    LOWER_QUARTILE = "lower_quartile"
    UPPER_QUARTILE = "upper_quartile"
    COUNT = "count"


# Tested in order; the first marker found in the identifier wins.
MEASURE_MARKERS: tuple[tuple[str, MeasureKind], ...] = (
    ("mean", MeasureKind.MEAN),
    ("median", MeasureKind.MEDIAN),
    ("lower-quartile", MeasureKind.LOWER_QUARTILE),
    ("upper-quartile", MeasureKind.UPPER_QUARTILE),
    ("count", MeasureKind.COUNT),
)

PRICE_KINDS: tuple[MeasureKind, ...] = (
    MeasureKind.MEAN,
    MeasureKind.MEDIAN,
    MeasureKind.LOWER_QUARTILE,
    MeasureKind.UPPER_QUARTILE,
)


def classify_measure(identifier: str) -> MeasureKind | None:
    """Map a measure URI such as ``.../measure-properties/median`` onto a kind."""

    for marker, kind in MEASURE_MARKERS:
        if marker in identifier:
            return kind
    return None


class ObservationRecord(_FrozenModel):
    """A single raw (period, value, measure) triple from the price feed."""

    period: str = Field(..., description="Reference period as returned by the feed.")
    measure: str = Field(..., description="Measure identifier, usually a URI.")
    value: str = Field(..., description="Raw lexical value; parsed during aggregation.")

    @property
    def kind(self) -> MeasureKind | None:
        return classify_measure(self.measure)


class DwellingTypeCount(_FrozenModel):
    dwelling_type: str
    total: str


class YearlySummary(_FrozenModel):
    """Per-year price statistics for one area."""

    year: str = Field(..., description="Four digit calendar year.")
    mean_price: float = 0.0
    median_price: float = 0.0
    lower_quartile: float = 0.0
    upper_quartile: float = 0.0
    sales_count: int = 0


class WardComparisonEntry(_FrozenModel):
    """Latest price measures for one ward, used to rank wards within a council."""

    ward_code: str
    ward_name: str
    mean_price: float
    median_price: float
    lower_quartile: float
    upper_quartile: float


class FeedKind(str, Enum):
    PRICES = "prices"
    DWELLINGS = "dwellings"


class PriceFeed(_FrozenModel):
    kind: Literal[FeedKind.PRICES] = FeedKind.PRICES
    observations: tuple[ObservationRecord, ...] = ()


class DwellingFeed(_FrozenModel):
    kind: Literal[FeedKind.DWELLINGS] = FeedKind.DWELLINGS
    counts: tuple[DwellingTypeCount, ...] = ()


Feed = PriceFeed | DwellingFeed


class AreaSnapshot(_FrozenModel):
    """Display-ready aggregates for one area, recomputed on every refresh."""

    area_code: str
    yearly: tuple[YearlySummary, ...] = ()
    dwellings: dict[str, int] = Field(default_factory=dict)


__all__ = [
    "AreaSnapshot",
    "Council",
    "Country",
    "DataZone",
    "DwellingFeed",
    "DwellingTypeCount",
    "Feed",
    "FeedKind",
    "GeographyHierarchy",
    "HierarchySummary",
    "MEASURE_MARKERS",
    "MeasureKind",
    "ObservationRecord",
    "PRICE_KINDS",
    "PriceFeed",
    "Ward",
    "WardComparisonEntry",
    "YearlySummary",
    "classify_measure",
]
