import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.services.repositories import (
    InMemoryProspectRepository,
    get_prospect_repository,
    reset_prospect_repository,
)


class _SyncASGIClient:
    """Minimal synchronous wrapper around httpx.AsyncClient for ASGI apps."""

    def __init__(self, app):
        transport = httpx.ASGITransport(app=app)
        self._client = httpx.AsyncClient(transport=transport, base_url="http://testserver")

    def request(self, method: str, url: str, **kwargs):
        return asyncio.run(self._client.request(method, url, **kwargs))

    def get(self, url: str, **kwargs):
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs):
        return self.request("POST", url, **kwargs)

    def close(self) -> None:
        asyncio.run(self._client.aclose())


@pytest.fixture
def client():
    """Create test client compatible with older/newer httpx releases."""
    try:
        test_client = TestClient(app)
        yield test_client
    except TypeError:
        fallback_client = _SyncASGIClient(app)
        try:
            yield fallback_client
        finally:
            fallback_client.close()


@pytest.fixture(autouse=True)
def _fresh_repository():
    """Each test starts with an empty singleton store."""
    reset_prospect_repository()
    yield
    reset_prospect_repository()


@pytest.fixture
def repository():
    """In-memory store injected into the prospect routes."""
    store = InMemoryProspectRepository()
    app.dependency_overrides[get_prospect_repository] = lambda: store
    try:
        yield store
    finally:
        app.dependency_overrides.pop(get_prospect_repository, None)
