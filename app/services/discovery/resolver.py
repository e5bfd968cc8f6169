"""Domain re-resolution through the search collaborator."""

from __future__ import annotations

import logging

from app.clients.tavily import TavilyError
from app.models.prospect import Candidate
from app.services.discovery.domains import hostname_from_url, is_aggregator_domain, normalize_domain
from app.services.discovery.search import DOMAIN_LOOKUP_SUFFIXES, SearchProvider

logger = logging.getLogger(__name__)


class DomainResolver:
    def __init__(self, search: SearchProvider) -> None:
        self._search = search

    async def reresolve(self, candidate: Candidate) -> Candidate:
        """Replace an invalid domain with the first "<name> official website" hit.

        Exactly one query is issued. Search failures leave the candidate untouched.
        """
        query = f"{candidate.name} official website"
        try:
            results = await self._search.search(query, max_results=3)
        except TavilyError as exc:
            logger.warning(
                "resolver.reresolve.failed",
                extra={"candidate": candidate.name, "code": exc.code},
            )
            return candidate
        if not results:
            logger.info("resolver.reresolve.no_results", extra={"candidate": candidate.name})
            return candidate
        domain = hostname_from_url(results[0].url)
        if not domain:
            return candidate
        logger.info(
            "resolver.reresolve.resolved",
            extra={"candidate": candidate.name, "domain": domain},
        )
        return candidate.model_copy(update={"domain": domain})

    async def correct_domain(self, name: str, failed_domain: str) -> str | None:
        """Find a different, non-aggregator domain for a company whose site failed to load."""
        failed = normalize_domain(failed_domain)
        for suffix in DOMAIN_LOOKUP_SUFFIXES:
            try:
                results = await self._search.search(f"{name} {suffix}", max_results=5)
            except TavilyError as exc:
                logger.warning(
                    "resolver.correct.failed",
                    extra={"candidate": name, "suffix": suffix, "code": exc.code},
                )
                continue
            domain = _first_company_domain(results, exclude=failed, min_length=5)
            if domain:
                logger.info(
                    "resolver.correct.resolved",
                    extra={"candidate": name, "from": failed, "to": domain},
                )
                return domain
        return None

    async def lookup_domain(self, name: str) -> str | None:
        """Aggregator-filtered domain lookup for a bare company name."""
        try:
            results = await self._search.search(f"{name} official website", max_results=3)
        except TavilyError as exc:
            logger.warning("resolver.lookup.failed", extra={"candidate": name, "code": exc.code})
            return None
        return _first_company_domain(results, exclude="", min_length=4)


def _first_company_domain(results, *, exclude: str, min_length: int) -> str | None:
    for result in results:
        domain = hostname_from_url(result.url)
        if not domain or domain == exclude:
            continue
        if is_aggregator_domain(domain):
            continue
        if len(domain) < min_length or "." not in domain:
            continue
        return domain
    return None
