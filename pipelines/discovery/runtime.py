"""Collaborator wiring for discovery runs, selected once from configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from app.clients.openai_client import OpenAIJSONClient
from app.clients.tavily import TavilyClient
from app.clients.website import FixtureWebsiteFetcher, WebsiteFetcher
from app.config import Settings, settings
from app.services.discovery.search import FixtureSearchProvider, SearchProvider, TavilySearchProvider
from app.services.discovery.strategies import (
    DiscoveryStrategy,
    FixtureDiscoveryStrategy,
    LiveDiscoveryStrategy,
)
from app.services.repositories import InMemoryProspectRepository, ProspectRepository
from app.services.scoring.policy import ScoringPolicy

logger = logging.getLogger("pipelines.discovery.runtime")

ONLINE_MODE = "online"
FIXTURE_MODE = "fixture"


class ModeError(RuntimeError):
    """Raised when the configured discovery mode cannot be satisfied."""

    def __init__(self, message: str, code: str = "MODE_ERROR") -> None:
        super().__init__(message)
        self.code = code


class WebsiteTextSource(Protocol):
    is_live: bool

    async def fetch_text(self, domain: str) -> str:
        ...


@dataclass
class Collaborators:
    strategy: DiscoveryStrategy
    search: SearchProvider
    fetcher: WebsiteTextSource
    repository: ProspectRepository
    policy: ScoringPolicy = field(default_factory=ScoringPolicy.from_settings)

    @property
    def is_live(self) -> bool:
        return bool(self.strategy.is_live and self.search.is_live and self.fetcher.is_live)

    async def aclose(self) -> None:
        for resource in (self.search, self.fetcher):
            closer: Any = getattr(resource, "aclose", None)
            if closer is not None:
                await closer()


def build_collaborators(
    config: Settings | None = None,
    *,
    repository: ProspectRepository | None = None,
) -> Collaborators:
    config = config or settings
    mode = (config.discovery_mode or FIXTURE_MODE).strip().lower()
    store = repository or InMemoryProspectRepository()
    policy = ScoringPolicy.from_settings(config)

    if mode == FIXTURE_MODE:
        logger.info("discovery.runtime.initialized", extra={"mode": mode})
        return Collaborators(
            strategy=FixtureDiscoveryStrategy(),
            search=FixtureSearchProvider(),
            fetcher=FixtureWebsiteFetcher(),
            repository=store,
            policy=policy,
        )
    if mode != ONLINE_MODE:
        raise ModeError(f"Unsupported discovery mode: {config.discovery_mode!r}", code="MODE_UNSUPPORTED")

    missing = [
        name
        for name, value in (
            ("OPENAI_API_KEY", config.openai_api_key),
            ("TAVILY_API_KEY", config.tavily_api_key),
        )
        if not value
    ]
    if missing:
        raise ModeError(
            f"Online discovery requires {', '.join(missing)}.", code="MODE_MISSING_CREDENTIALS"
        )

    tavily = TavilyClient(config.tavily_api_key or "", base_url=config.tavily_base_url)
    llm = OpenAIJSONClient(
        config.openai_api_key or "", model=config.llm_model, temperature=config.llm_temperature
    )
    logger.info("discovery.runtime.initialized", extra={"mode": mode})
    return Collaborators(
        strategy=LiveDiscoveryStrategy(llm),
        search=TavilySearchProvider(tavily, retry_attempts=config.search_retry_attempts),
        fetcher=WebsiteFetcher(
            timeout=config.fetch_timeout_seconds,
            max_bytes=config.fetch_max_bytes,
            max_chars=config.fetch_max_chars,
            user_agent=config.fetch_user_agent,
        ),
        repository=store,
        policy=policy,
    )
