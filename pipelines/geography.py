"""Build the country -> council -> ward -> data zone hierarchy.

The reference table is the DataZone 2022 lookup: one row per small area with the
ward, council and country it belongs to at fixed column offsets. Rows are folded
into a local accumulator and frozen into a :class:`GeographyHierarchy`; malformed
rows are skipped and counted rather than aborting the build.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from functools import reduce
from typing import Iterable

from pipelines.model import (
    Council,
    Country,
    DataZone,
    GeographyHierarchy,
    HierarchySummary,
    Ward,
)

logger = logging.getLogger(__name__)

MIN_COLUMNS = 35


@dataclass(frozen=True)
class ColumnLayout:
    """Zero-based column offsets within a reference table row."""

    datazone_code: int = 2
    datazone_name: int = 3
    ward_code: int = 4
    ward_name: int = 5
    council_code: int = 6
    council_name: int = 7
    country_code: int = 34
    country_name: int = 35
    min_columns: int = MIN_COLUMNS


DEFAULT_LAYOUT = ColumnLayout()


@dataclass
class _WardAcc:
    name: str
    datazones: dict[str, str] = field(default_factory=dict)


@dataclass
class _CouncilAcc:
    name: str
    wards: dict[str, _WardAcc] = field(default_factory=dict)


@dataclass
class _CountryAcc:
    name: str
    councils: dict[str, _CouncilAcc] = field(default_factory=dict)


@dataclass
class _BuildState:
    countries: dict[str, _CountryAcc] = field(default_factory=dict)
    total_rows: int = 0
    valid_rows: int = 0
    rejected_rows: int = 0


def _clean(value: str) -> str:
    return value.strip().strip('"').strip()


def split_row(line: str) -> list[str]:
    """Split one CSV line into trimmed, unquoted fields."""

    parsed = next(csv.reader([line], skipinitialspace=True), [])
    return [_clean(column) for column in parsed]


def _column(columns: list[str], index: int) -> str:
    return columns[index] if index < len(columns) else ""


def _fold_row(state: _BuildState, row: tuple[int, str], layout: ColumnLayout) -> _BuildState:
    line_number, line = row
    if not line.strip():
        return state

    state.total_rows += 1
    columns = split_row(line)
    if len(columns) < layout.min_columns:
        logger.warning(
            "Row %s has insufficient columns (%s < %s); skipping.",
            line_number,
            len(columns),
            layout.min_columns,
        )
        state.rejected_rows += 1
        return state

    country_code = _column(columns, layout.country_code)
    council_code = _column(columns, layout.council_code)
    ward_code = _column(columns, layout.ward_code)
    if not country_code or not council_code or not ward_code:
        logger.warning(
            "Row %s missing required codes (country=%r council=%r ward=%r); skipping.",
            line_number,
            country_code,
            council_code,
            ward_code,
        )
        state.rejected_rows += 1
        return state

    state.valid_rows += 1
    country = state.countries.setdefault(
        country_code, _CountryAcc(name=_column(columns, layout.country_name))
    )
    council = country.councils.setdefault(
        council_code, _CouncilAcc(name=_column(columns, layout.council_name))
    )
    ward = council.wards.setdefault(ward_code, _WardAcc(name=_column(columns, layout.ward_name)))

    datazone_code = _column(columns, layout.datazone_code)
    if datazone_code and datazone_code not in ward.datazones:
        ward.datazones[datazone_code] = _column(columns, layout.datazone_name)
    return state


def _freeze(state: _BuildState) -> GeographyHierarchy:
    countries: dict[str, Country] = {}
    council_count = ward_count = datazone_count = 0
    for country_code, country_acc in state.countries.items():
        councils: dict[str, Council] = {}
        for council_code, council_acc in country_acc.councils.items():
            wards = {
                ward_code: Ward(
                    code=ward_code,
                    name=ward_acc.name,
                    datazones=tuple(
                        DataZone(code=code, name=name)
                        for code, name in ward_acc.datazones.items()
                    ),
                )
                for ward_code, ward_acc in council_acc.wards.items()
            }
            ward_count += len(wards)
            datazone_count += sum(len(ward.datazones) for ward in wards.values())
            councils[council_code] = Council(code=council_code, name=council_acc.name, wards=wards)
        council_count += len(councils)
        countries[country_code] = Country(code=country_code, name=country_acc.name, councils=councils)

    summary = HierarchySummary(
        total_rows=state.total_rows,
        valid_rows=state.valid_rows,
        rejected_rows=state.rejected_rows,
        country_count=len(countries),
        council_count=council_count,
        ward_count=ward_count,
        datazone_count=datazone_count,
    )
    return GeographyHierarchy(countries=countries, summary=summary)


def build_hierarchy(
    rows: Iterable[str],
    *,
    layout: ColumnLayout = DEFAULT_LAYOUT,
    has_header: bool = True,
) -> GeographyHierarchy:
    """Fold reference table lines into a :class:`GeographyHierarchy`.

    Parameters
    ----------
    rows
        Raw text lines of the table. The first line is a header unless
        ``has_header`` is false.
    layout
        Column offsets of the codes and names.
    """

    numbered = enumerate(rows)
    if has_header:
        next(numbered, None)

    state = reduce(lambda acc, row: _fold_row(acc, row, layout), numbered, _BuildState())
    hierarchy = _freeze(state)
    summary = hierarchy.summary
    logger.info(
        "Geography processing summary: rows=%s valid=%s rejected=%s countries=%s "
        "councils=%s wards=%s datazones=%s",
        summary.total_rows,
        summary.valid_rows,
        summary.rejected_rows,
        summary.country_count,
        summary.council_count,
        summary.ward_count,
        summary.datazone_count,
    )
    return hierarchy


__all__ = ["ColumnLayout", "DEFAULT_LAYOUT", "MIN_COLUMNS", "build_hierarchy", "split_row"]
