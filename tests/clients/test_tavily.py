import asyncio
import json

import httpx
import pytest

from app.clients.tavily import (
    TavilyClient,
    TavilyError,
    TavilyRateLimitError,
    TavilySchemaError,
    TavilyTimeoutError,
)
from app.services.discovery.search import TavilySearchProvider


def _client(handler) -> TavilyClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://api.tavily.com")
    return TavilyClient("tvly-test", http_client=http_client)


def test_search_posts_query_and_returns_results():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"results": [{"title": "Acme", "url": "https://acme.com", "content": "x"}]})

    results = asyncio.run(_client(handler).search(query="acme competitors", max_results=4))

    assert results[0]["url"] == "https://acme.com"
    assert seen["path"] == "/search"
    assert seen["auth"] == "Bearer tvly-test"
    assert seen["body"] == {"query": "acme competitors", "search_depth": "basic", "max_results": 4}


@pytest.mark.parametrize(
    ("response", "error"),
    [
        (httpx.Response(429), TavilyRateLimitError),
        (httpx.Response(504), TavilyTimeoutError),
        (httpx.Response(500, json={"detail": "boom"}), TavilyError),
        (httpx.Response(200, json={"answer": "no results key"}), TavilySchemaError),
        (httpx.Response(200, json={"results": ["not-an-object"]}), TavilySchemaError),
    ],
)
def test_search_maps_failures(response, error):
    with pytest.raises(error):
        asyncio.run(_client(lambda request: response).search(query="q"))


def test_transport_timeout_is_mapped():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(TavilyTimeoutError):
        asyncio.run(_client(handler).search(query="q"))


def test_provider_retries_rate_limits_then_normalizes_results():
    attempts = {"count": 0}
    delays: list[float] = []

    def handler(request):
        attempts["count"] += 1
        if attempts["count"] == 1:
            return httpx.Response(429)
        return httpx.Response(200, json={"results": [{"title": "Acme", "url": "https://acme.com", "content": "CRM"}]})

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    provider = TavilySearchProvider(_client(handler), retry_attempts=3, sleep=fake_sleep)

    results = asyncio.run(provider.search("acme", max_results=2))

    assert attempts["count"] == 2
    assert len(delays) == 1
    assert results[0].snippet == "CRM"
    assert results[0].url == "https://acme.com"


def test_provider_does_not_retry_non_retryable_errors():
    attempts = {"count": 0}

    def handler(request):
        attempts["count"] += 1
        return httpx.Response(401, json={"message": "bad key"})

    async def fake_sleep(delay: float) -> None:
        raise AssertionError("should not sleep")

    provider = TavilySearchProvider(_client(handler), retry_attempts=3, sleep=fake_sleep)

    with pytest.raises(TavilyError):
        asyncio.run(provider.search("acme"))
    assert attempts["count"] == 1


def test_provider_gives_up_after_last_attempt():
    async def fake_sleep(delay: float) -> None:
        return None

    provider = TavilySearchProvider(_client(lambda request: httpx.Response(429)), retry_attempts=2, sleep=fake_sleep)

    with pytest.raises(TavilyRateLimitError):
        asyncio.run(provider.search("acme"))


def test_client_requires_api_key():
    with pytest.raises(ValueError):
        TavilyClient("")
