"""Static configuration for preset areas and environment-driven settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Iterable

from pipelines.common import DEFAULT_TIMEOUT_SECONDS
from pipelines.sources.geography_table import DEFAULT_GEOGRAPHY_TABLE
from pipelines.sources.statistics_gov_scot import SPARQL_ENDPOINT
from pipelines.ward_comparison import DEFAULT_FETCH_TIMEOUT_SECONDS, DEFAULT_MAX_CONCURRENCY

SCOTLAND_CODE = "S92000003"


@dataclass(frozen=True)
class AreaConfig:
    """A council area offered as a quick selection."""

    key: str
    area_code: str
    name: str
    country_code: str = SCOTLAND_CODE


PRESET_AREAS: tuple[AreaConfig, ...] = (
    AreaConfig(key="glasgow_city", area_code="S12000049", name="Glasgow City"),
    AreaConfig(key="city_of_edinburgh", area_code="S12000036", name="City of Edinburgh"),
    AreaConfig(key="aberdeen_city", area_code="S12000033", name="Aberdeen City"),
    AreaConfig(key="dundee_city", area_code="S12000042", name="Dundee City"),
)


def get_area_by_key(key: str) -> AreaConfig | None:
    for area in PRESET_AREAS:
        if area.key == key:
            return area
    return None


def iter_areas(keys: Iterable[str] | None = None) -> Iterable[AreaConfig]:
    if keys is None:
        return PRESET_AREAS
    selected = []
    for key in keys:
        area = get_area_by_key(key)
        if area:
            selected.append(area)
    return tuple(selected)


def _optional_int(raw: str | None, default: int | None) -> int | None:
    if raw is None or not raw.strip():
        return default
    value = int(raw)
    return value if value > 0 else None


def _optional_float(raw: str | None, default: float | None) -> float | None:
    if raw is None or not raw.strip():
        return default
    value = float(raw)
    return value if value > 0 else None


@dataclass(frozen=True)
class DashboardSettings:
    """Runtime settings resolved from the environment.

    A non-positive ``WARD_FETCH_CONCURRENCY`` disables the concurrency cap and a
    non-positive ``WARD_FETCH_TIMEOUT_SECONDS`` disables the per-ward timeout.
    """

    sparql_endpoint: str = SPARQL_ENDPOINT
    geography_table: str = str(DEFAULT_GEOGRAPHY_TABLE)
    default_area: str = PRESET_AREAS[0].area_code
    default_country: str = SCOTLAND_CODE
    default_council: str | None = None
    ward_fetch_concurrency: int | None = DEFAULT_MAX_CONCURRENCY
    ward_fetch_timeout: float | None = DEFAULT_FETCH_TIMEOUT_SECONDS
    http_timeout: float = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "DashboardSettings":
        return cls(
            sparql_endpoint=os.getenv("SPARQL_ENDPOINT", SPARQL_ENDPOINT),
            geography_table=os.getenv("GEOGRAPHY_TABLE", str(DEFAULT_GEOGRAPHY_TABLE)),
            default_area=os.getenv("DEFAULT_AREA", PRESET_AREAS[0].area_code),
            default_country=os.getenv("DEFAULT_COUNTRY", SCOTLAND_CODE),
            default_council=os.getenv("DEFAULT_COUNCIL") or None,
            ward_fetch_concurrency=_optional_int(
                os.getenv("WARD_FETCH_CONCURRENCY"), DEFAULT_MAX_CONCURRENCY
            ),
            ward_fetch_timeout=_optional_float(
                os.getenv("WARD_FETCH_TIMEOUT_SECONDS"), DEFAULT_FETCH_TIMEOUT_SECONDS
            ),
            http_timeout=float(os.getenv("HTTP_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS))),
        )


__all__ = [
    "AreaConfig",
    "DashboardSettings",
    "PRESET_AREAS",
    "SCOTLAND_CODE",
    "get_area_by_key",
    "iter_areas",
]
