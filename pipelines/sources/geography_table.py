"""Reader for the DataZone 2022 geography lookup table."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import httpx

from pipelines.common import DEFAULT_TIMEOUT_SECONDS, fetch_text
from pipelines.errors import SourceUnavailable
from pipelines.geography import DEFAULT_LAYOUT, ColumnLayout, build_hierarchy
from pipelines.model import GeographyHierarchy

DEFAULT_GEOGRAPHY_TABLE = Path("data/DataZone2022.csv")

logger = logging.getLogger(__name__)


def _is_url(source: str | os.PathLike[str]) -> bool:
    return isinstance(source, str) and source.startswith(("http://", "https://"))


async def read_geography_lines(
    source: str | os.PathLike[str] = DEFAULT_GEOGRAPHY_TABLE,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> list[str]:
    """Return the lines of the lookup table from a local path or an HTTP(S) URL."""

    try:
        if _is_url(source):
            text = await fetch_text(str(source), timeout=timeout)
        else:
            text = Path(source).read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError, httpx.HTTPError) as exc:
        raise SourceUnavailable(f"Could not read geography table {source}: {exc}") from exc

    lines = text.splitlines()
    logger.info("Read %s lines from geography table %s.", len(lines), source)
    return lines


async def load_hierarchy(
    source: str | os.PathLike[str] = DEFAULT_GEOGRAPHY_TABLE,
    *,
    layout: ColumnLayout = DEFAULT_LAYOUT,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> GeographyHierarchy:
    """Read the lookup table and build the geography hierarchy from it."""

    lines = await read_geography_lines(source, timeout=timeout)
    if not lines:
        raise SourceUnavailable(f"Geography table {source} is empty.")
    return build_hierarchy(lines, layout=layout)


__all__ = ["DEFAULT_GEOGRAPHY_TABLE", "load_hierarchy", "read_geography_lines"]
