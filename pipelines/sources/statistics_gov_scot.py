"""statistics.gov.scot SPARQL client.

Builds the fixed price and dwelling queries for an area, posts them to the
SPARQL endpoint and validates the JSON result set into a :data:`Feed`.
"""

from __future__ import annotations

import logging
from typing import Any, cast

import httpx
from pydantic import BaseModel, ValidationError

from pipelines.common import DEFAULT_TIMEOUT_SECONDS, fetch_json
from pipelines.errors import FeedFormatError, FetchFailure
from pipelines.model import (
    DwellingFeed,
    DwellingTypeCount,
    Feed,
    FeedKind,
    ObservationRecord,
    PriceFeed,
)

SPARQL_ENDPOINT = "https://statistics.gov.scot/sparql"
STATISTICAL_GEOGRAPHY_BASE = "http://statistics.gov.scot/id/statistical-geography"
PRICE_DATASET = "http://statistics.gov.scot/data/residential-properties-sales-and-price"
DWELLING_DATASET = "http://statistics.gov.scot/data/dwellings-type"
SPARQL_RESULTS_MEDIA_TYPE = "application/sparql-results+json"

_PREFIXES = """\
PREFIX qb: <http://purl.org/linked-data/cube#>
PREFIX rdfs: <http://www.w3.org/2000/01/rdf-schema#>
PREFIX sdmx: <http://purl.org/linked-data/sdmx/2009/dimension#>
PREFIX xsd: <http://www.w3.org/2001/XMLSchema#>
"""

logger = logging.getLogger(__name__)


class _Term(BaseModel):
    value: str


class _PriceBinding(BaseModel):
    period: _Term
    value: _Term
    measure: _Term


class _DwellingBinding(BaseModel):
    type: _Term
    total: _Term


class _PriceBindings(BaseModel):
    bindings: list[_PriceBinding]


class _DwellingBindings(BaseModel):
    bindings: list[_DwellingBinding]


class _PriceResultSet(BaseModel):
    results: _PriceBindings


class _DwellingResultSet(BaseModel):
    results: _DwellingBindings


def area_uri(area_code: str) -> str:
    return f"{STATISTICAL_GEOGRAPHY_BASE}/{area_code.strip()}"


def build_price_query(area_code: str) -> str:
    """Mean/median/quartile prices and sales counts for one area, ordered by period."""

    return f"""{_PREFIXES}
SELECT ?period ?value ?measure
WHERE {{
  ?obs qb:dataSet <{PRICE_DATASET}> ;
       sdmx:refArea <{area_uri(area_code)}> ;
       sdmx:refPeriod ?period ;
       qb:measureType ?measure ;
       ?measure ?value .
}}
ORDER BY ?period
"""


def build_dwelling_query(area_code: str) -> str:
    return f"""{_PREFIXES}
SELECT ?type (SUM(?count) as ?total)
WHERE {{
  ?obs qb:dataSet <{DWELLING_DATASET}> ;
       sdmx:refArea <{area_uri(area_code)}> ;
       <http://statistics.gov.scot/def/dimension/typeOfDwelling> ?typeUri ;
       <http://statistics.gov.scot/def/measure-properties/count> ?count .

  ?typeUri rdfs:label ?type .
}}
GROUP BY ?type
"""


def parse_feed(payload: Any, kind: FeedKind) -> Feed:
    """Validate a SPARQL JSON result set into the feed shape for ``kind``."""

    try:
        if kind is FeedKind.PRICES:
            prices = _PriceResultSet.model_validate(payload)
            return PriceFeed(
                observations=tuple(
                    ObservationRecord(
                        period=binding.period.value,
                        measure=binding.measure.value,
                        value=binding.value.value,
                    )
                    for binding in prices.results.bindings
                )
            )
        dwellings = _DwellingResultSet.model_validate(payload)
        return DwellingFeed(
            counts=tuple(
                DwellingTypeCount(dwelling_type=binding.type.value, total=binding.total.value)
                for binding in dwellings.results.bindings
            )
        )
    except ValidationError as exc:
        raise FeedFormatError(
            f"Invalid {kind.value} result set: {exc.error_count()} validation error(s)"
        ) from exc


async def run_sparql_query(
    query: str,
    *,
    endpoint: str = SPARQL_ENDPOINT,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> Any:
    """POST ``query`` to the endpoint and return the decoded JSON result set."""

    try:
        return await fetch_json(
            endpoint,
            method="POST",
            headers={"Accept": SPARQL_RESULTS_MEDIA_TYPE},
            data={"query": query},
            timeout=timeout,
        )
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        logger.warning("SPARQL endpoint %s returned status %s.", endpoint, status)
        raise FetchFailure(
            f"SPARQL endpoint error: {exc.response.reason_phrase or 'HTTP error'}",
            status_code=status,
        ) from exc
    except httpx.HTTPError as exc:
        logger.warning("SPARQL request to %s failed: %s", endpoint, exc)
        raise FetchFailure(f"SPARQL request failed: {exc}") from exc
    except ValueError as exc:
        raise FeedFormatError(f"SPARQL endpoint returned non-JSON body: {exc}") from exc


async def fetch_feed(
    area_code: str,
    kind: FeedKind,
    *,
    endpoint: str = SPARQL_ENDPOINT,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> Feed:
    query = build_price_query(area_code) if kind is FeedKind.PRICES else build_dwelling_query(area_code)
    payload = await run_sparql_query(query, endpoint=endpoint, timeout=timeout)
    return parse_feed(payload, kind)


async def fetch_price_observations(
    area_code: str,
    *,
    endpoint: str = SPARQL_ENDPOINT,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> list[ObservationRecord]:
    """Fetch the raw price observations for an area (the default ward fetcher)."""

    feed = cast(
        PriceFeed,
        await fetch_feed(area_code, FeedKind.PRICES, endpoint=endpoint, timeout=timeout),
    )
    logger.debug("Fetched %s price observations for %s.", len(feed.observations), area_code)
    return list(feed.observations)


async def fetch_dwelling_counts(
    area_code: str,
    *,
    endpoint: str = SPARQL_ENDPOINT,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> list[DwellingTypeCount]:
    feed = cast(
        DwellingFeed,
        await fetch_feed(area_code, FeedKind.DWELLINGS, endpoint=endpoint, timeout=timeout),
    )
    return list(feed.counts)


__all__ = [
    "DWELLING_DATASET",
    "PRICE_DATASET",
    "SPARQL_ENDPOINT",
    "SPARQL_RESULTS_MEDIA_TYPE",
    "build_dwelling_query",
    "build_price_query",
    "fetch_dwelling_counts",
    "fetch_feed",
    "fetch_price_observations",
    "parse_feed",
    "run_sparql_query",
]
