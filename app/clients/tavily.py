"""Async wrapper around the Tavily `/search` endpoint.

Only the fields the discovery pipeline reads are requested; the caller gets the
raw `results` objects back and normalizes them itself.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class TavilyError(RuntimeError):
    """Search call failed; `code` tells callers whether a retry makes sense."""

    def __init__(self, message: str, code: str = "TAVILY_ERROR") -> None:
        super().__init__(message)
        self.code = code


class TavilyRateLimitError(TavilyError):
    def __init__(self, message: str = "Search quota exhausted (HTTP 429)") -> None:
        super().__init__(message, code="TAVILY_429")


class TavilyTimeoutError(TavilyError):
    def __init__(self, message: str = "Search request did not complete in time") -> None:
        super().__init__(message, code="TAVILY_TIMEOUT")


class TavilySchemaError(TavilyError):
    def __init__(self, message: str = "Search response was not in the expected shape") -> None:
        super().__init__(message, code="TAVILY_SCHEMA_ERR")


_STATUS_ERRORS: dict[int, type[TavilyError]] = {
    408: TavilyTimeoutError,
    429: TavilyRateLimitError,
    504: TavilyTimeoutError,
}


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or body)[:200]
    return str(body)[:200]


def _raise_for_status(response: httpx.Response) -> None:
    status = response.status_code
    if status < 400:
        return
    mapped = _STATUS_ERRORS.get(status)
    if mapped is not None:
        raise mapped()
    raise TavilyError(f"Search returned HTTP {status}: {_error_detail(response)}")


def _parse_results(response: httpx.Response) -> list[dict[str, Any]]:
    try:
        body = response.json()
    except ValueError as exc:
        raise TavilySchemaError("Search response body is not JSON") from exc
    results = body.get("results") if isinstance(body, dict) else None
    if not isinstance(results, list):
        raise TavilySchemaError("Search response has no `results` list")
    if any(not isinstance(item, dict) for item in results):
        raise TavilySchemaError("Search `results` must contain objects only")
    return results


class TavilyClient:
    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.tavily.com",
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("A Tavily API key is required for live search.")
        self._headers = {"Authorization": f"Bearer {api_key}"}
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)

    async def search(self, *, query: str, max_results: int = 6) -> list[dict[str, Any]]:
        if max_results <= 0:
            raise ValueError("max_results must be a positive integer.")
        payload = {"query": query, "search_depth": "basic", "max_results": max_results}
        try:
            response = await self._http.post("/search", json=payload, headers=self._headers)
        except httpx.TimeoutException as exc:
            raise TavilyTimeoutError() from exc
        except httpx.HTTPError as exc:
            raise TavilyError(f"Search transport failure: {type(exc).__name__}") from exc

        _raise_for_status(response)
        results = _parse_results(response)
        logger.debug("tavily.search.ok", extra={"query": query, "result_count": len(results)})
        return results

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    async def __aenter__(self) -> TavilyClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
