"""Shared utilities for retrieving external API responses."""

from __future__ import annotations

from typing import Any, Mapping, MutableMapping

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

DEFAULT_TIMEOUT_SECONDS = 30.0
_DEFAULT_WAIT = wait_exponential(min=1, max=16)
_DEFAULT_STOP = stop_after_attempt(5)


Headers = Mapping[str, str] | None
Params = Mapping[str, Any] | None
Data = MutableMapping[str, Any] | bytes | str | None


def is_transient_error(exc: BaseException) -> bool:
    """Connection problems, 5xx and 429 responses are worth retrying; other 4xx are not."""

    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status >= 500 or status == 429
    return isinstance(exc, httpx.TransportError)


@retry(
    wait=_DEFAULT_WAIT,
    stop=_DEFAULT_STOP,
    retry=retry_if_exception(is_transient_error),
    reraise=True,
)
async def fetch_json(
    url: str,
    *,
    headers: Headers = None,
    params: Params = None,
    method: str = "GET",
    data: Data = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> Any:
    """Execute an HTTP request and return the decoded JSON payload.

    Retries with exponential backoff when transient failures occur. The helper keeps
    the interface close to ``httpx.AsyncClient.request`` so the SPARQL client can
    forward form bodies and headers without reimplementing networking concerns.
    """

    request_method = method.upper()
    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.request(
            request_method,
            url,
            headers=headers,
            params=params,
            data=data,
        )

    response.raise_for_status()
    return response.json()


@retry(
    wait=_DEFAULT_WAIT,
    stop=_DEFAULT_STOP,
    retry=retry_if_exception(is_transient_error),
    reraise=True,
)
async def fetch_text(url: str, *, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> str:
    """GET ``url`` and return the body as text."""

    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        response = await client.get(url)
    response.raise_for_status()
    return response.text


__all__ = ["fetch_json", "fetch_text", "is_transient_error", "DEFAULT_TIMEOUT_SECONDS"]
