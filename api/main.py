"""FastAPI service exposing the geography hierarchy and housing aggregates."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI, Form, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jobs.config import DashboardSettings, iter_areas
from jobs.refresh import (
    UnknownCouncil,
    compare_council_wards_async,
    dwelling_totals_async,
    load_geography,
    refresh_area_async,
    resolve_area_code,
    yearly_summaries_async,
)
from pipelines.errors import SourceUnavailable
from pipelines.model import GeographyHierarchy
from pipelines.sources.statistics_gov_scot import SPARQL_RESULTS_MEDIA_TYPE

load_dotenv()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = DashboardSettings.from_env()
    app.state.settings = settings
    try:
        app.state.hierarchy = await load_geography(settings)
    except SourceUnavailable as exc:
        logger.error("Starting with an empty geography hierarchy: %s", exc)
        app.state.hierarchy = GeographyHierarchy()
    yield


app = FastAPI(title="Scottish Housing Signals API", version="0.1.0", lifespan=lifespan)


def _configure_cors() -> None:
    raw_origins = os.getenv("API_CORS_ORIGINS", "*")
    origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )


_configure_cors()


def _settings(request: Request) -> DashboardSettings:
    return request.app.state.settings


def _hierarchy(request: Request) -> GeographyHierarchy:
    return request.app.state.hierarchy


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/api/sparql")
async def sparql_proxy(request: Request, query: str | None = Form(None)):
    """Forward a SPARQL query to the statistics endpoint and relay its JSON."""

    if not query:
        return JSONResponse({"error": "No query provided"}, status_code=400)

    settings = _settings(request)
    logger.debug("Forwarding SPARQL query: %s", query)
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
            upstream = await client.post(
                settings.sparql_endpoint,
                data={"query": query},
                headers={"Accept": SPARQL_RESULTS_MEDIA_TYPE},
            )
        if upstream.is_error:
            logger.error(
                "SPARQL endpoint error: status=%s reason=%s",
                upstream.status_code,
                upstream.reason_phrase,
            )
            return JSONResponse(
                {
                    "error": "SPARQL endpoint error",
                    "details": {
                        "status": upstream.status_code,
                        "statusText": upstream.reason_phrase,
                        "body": upstream.text,
                    },
                },
                status_code=upstream.status_code,
            )
        return JSONResponse(upstream.json())
    except (httpx.HTTPError, ValueError) as exc:
        logger.exception("SPARQL proxy error")
        return JSONResponse(
            {"error": "Failed to fetch data", "details": str(exc)},
            status_code=500,
        )


@app.get("/geography")
def get_geography(request: Request) -> dict[str, Any]:
    return _hierarchy(request).model_dump(mode="json")


@app.post("/geography/reload")
async def reload_geography(request: Request) -> dict[str, Any]:
    try:
        hierarchy = await load_geography(_settings(request))
    except SourceUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    request.app.state.hierarchy = hierarchy
    return hierarchy.summary.model_dump()


@app.get("/areas")
def list_areas() -> dict[str, Any]:
    areas = iter_areas()
    return {
        "count": len(areas),
        "items": [asdict(area) for area in areas],
    }


@app.get("/areas/{area_code}")
async def get_area_snapshot(request: Request, area_code: str) -> dict[str, Any]:
    area_code = resolve_area_code(area_code)
    try:
        snapshot = await refresh_area_async(area_code, _settings(request))
    except SourceUnavailable as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return snapshot.model_dump(mode="json")


@app.get("/areas/{area_code}/prices")
async def get_area_prices(request: Request, area_code: str) -> dict[str, Any]:
    area_code = resolve_area_code(area_code)
    try:
        yearly = await yearly_summaries_async(area_code, _settings(request))
    except SourceUnavailable as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {
        "area_code": area_code,
        "count": len(yearly),
        "items": [summary.model_dump(mode="json") for summary in yearly],
    }


@app.get("/areas/{area_code}/dwellings")
async def get_area_dwellings(request: Request, area_code: str) -> dict[str, Any]:
    area_code = resolve_area_code(area_code)
    totals = await dwelling_totals_async(area_code, _settings(request))
    return {
        "area_code": area_code,
        "count": len(totals),
        "items": [
            {"type": dwelling_type, "total": total} for dwelling_type, total in totals.items()
        ],
    }


@app.get("/councils/{council_code}/ward-comparison")
async def get_ward_comparison(
    request: Request,
    council_code: str,
    country: str | None = Query(None, description="Country code containing the council"),
) -> dict[str, Any]:
    try:
        ranking = await compare_council_wards_async(
            _hierarchy(request),
            council_code,
            _settings(request),
            country_code=country,
        )
    except UnknownCouncil as exc:
        raise HTTPException(status_code=404, detail=f"Unknown council '{council_code}'") from exc
    return {
        "council_code": council_code,
        "count": len(ranking),
        "items": [entry.model_dump(mode="json") for entry in ranking],
    }
