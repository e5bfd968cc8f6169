"""Search providers that return ordered `SearchResult` lists."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from app.clients.tavily import TavilyClient, TavilyError
from app.config import settings
from app.models.prospect import SearchResult
from app.observability.metrics import metrics
from scripts.backoff import exponential_backoff

logger = logging.getLogger(__name__)

RETRYABLE_CODES = frozenset({"TAVILY_429", "TAVILY_TIMEOUT"})
DOMAIN_LOOKUP_SUFFIXES = ("official website", "company website", "home page")


class SearchProvider(Protocol):
    is_live: bool

    async def search(self, query: str, *, max_results: int = 6) -> list[SearchResult]:
        ...


def competitor_query(domain: str, industry: str) -> str:
    return f"{domain} competitors {industry}".strip()


def _to_result(item: dict[str, Any]) -> SearchResult:
    return SearchResult(
        title=str(item.get("title") or ""),
        snippet=str(item.get("content") or item.get("snippet") or ""),
        url=str(item.get("url") or ""),
    )


class TavilySearchProvider:
    """Tavily-backed provider retrying rate limits and timeouts with exponential backoff."""

    is_live = True

    def __init__(
        self,
        client: TavilyClient,
        *,
        retry_attempts: int | None = None,
        base_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._retry_attempts = retry_attempts or settings.search_retry_attempts
        self._base_delay = base_delay
        self._sleep = sleep

    async def search(self, query: str, *, max_results: int = 6) -> list[SearchResult]:
        for attempt, delay in exponential_backoff(
            max_attempts=self._retry_attempts, base_delay=self._base_delay, max_delay=8.0
        ):
            try:
                with metrics.timer("search.latency_ms", tags={"provider": "tavily"}):
                    raw = await self._client.search(query=query, max_results=max_results)
            except TavilyError as exc:
                logger.warning(
                    "search.tavily.error",
                    extra={"query": query, "attempt": attempt, "code": exc.code},
                )
                metrics.increment("search.errors", tags={"code": exc.code})
                if exc.code not in RETRYABLE_CODES or attempt == self._retry_attempts:
                    raise
                await self._sleep(delay)
                continue
            metrics.increment("search.success", tags={"provider": "tavily"})
            return [_to_result(item) for item in raw]
        return []

    async def aclose(self) -> None:
        await self._client.aclose()


class FixtureSearchProvider:
    """Deterministic offline provider.

    Domain lookups (queries ending in an official-website suffix) return nothing so
    candidate domains are never rewritten offline; other queries return three
    comparison-style results built from the query text.
    """

    is_live = False

    def __init__(self, responses: dict[str, list[SearchResult]] | None = None) -> None:
        self._responses = responses

    async def search(self, query: str, *, max_results: int = 6) -> list[SearchResult]:
        if self._responses is not None:
            return list(self._responses.get(query, []))[:max_results]
        subject = query.strip()
        if subject.lower().endswith(DOMAIN_LOOKUP_SUFFIXES):
            return []
        slug = "-".join(subject.lower().split())
        results = [
            SearchResult(
                title=f"{subject} - Competitors and Alternatives",
                snippet=f"Find the best alternatives for {subject}. Compare features, pricing, and reviews.",
                url=f"https://example.com/{slug}",
            ),
            SearchResult(
                title=f"Top Companies Like {subject}",
                snippet=f"Discover similar companies for {subject} and see how they compare.",
                url=f"https://example.com/similar-{slug}",
            ),
            SearchResult(
                title=f"{subject} vs Competitors Analysis",
                snippet=f"Comprehensive analysis of {subject} compared to its main competitors.",
                url=f"https://example.com/{slug}-analysis",
            ),
        ]
        return results[:max_results]

    async def aclose(self) -> None:
        return None
