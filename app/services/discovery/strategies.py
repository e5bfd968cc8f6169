"""Collaborator strategies: live (LLM-backed) and deterministic fixture implementations."""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Sequence
from typing import Any, Protocol

from pydantic import ValidationError

from app.models.icp import ICP, Customer, Firmographics
from app.models.prospect import Candidate, Evidence, FitAnalysis, SearchResult
from app.services.discovery import prompts
from app.services.discovery.domains import normalize_domain
from app.services.scoring.errors import ScoringValidationError

logger = logging.getLogger(__name__)


class JSONCompletionClient(Protocol):
    async def complete_json(self, *, system_prompt: str, user_prompt: str) -> Any:
        ...


class DiscoveryStrategy(Protocol):
    """Every LLM-shaped decision the pipelines delegate."""

    is_live: bool

    async def extract_icp(self, website_text: str) -> ICP:
        ...

    async def find_competitors(
        self,
        customer: Customer,
        icp: ICP,
        search_results: Sequence[SearchResult],
        limit: int,
    ) -> list[Candidate]:
        ...

    async def extract_companies(
        self,
        search_results: Sequence[SearchResult],
        icp: ICP,
        exclude_domains: Sequence[str],
        exemplars: Sequence[str],
        limit: int,
    ) -> list[Candidate]:
        ...

    async def extract_competitor_names(
        self,
        company_name: str,
        search_results: Sequence[SearchResult],
        limit: int,
    ) -> list[Candidate]:
        ...

    async def score_fit(self, website_text: str, name: str, domain: str, icp: ICP) -> FitAnalysis:
        ...

    async def generate_ad_copy(
        self, industry: str, workflow: str, buyer_roles: Sequence[str]
    ) -> dict[str, Any]:
        ...


def _as_int(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number):
        return 0
    return int(round(number))


def _entries(payload: Any, key: str) -> list[dict[str, Any]]:
    if isinstance(payload, dict):
        payload = payload.get(key, [])
    if not isinstance(payload, list):
        raise ScoringValidationError(
            f"Model response missing `{key}` list.", code="422_INVALID_MODEL_OUTPUT"
        )
    return [entry for entry in payload if isinstance(entry, dict)]


def _candidates_from(entries: list[dict[str, Any]], limit: int) -> list[Candidate]:
    candidates: list[Candidate] = []
    for entry in entries:
        try:
            candidates.append(Candidate.model_validate(entry))
        except ValidationError:
            logger.warning("strategy.candidate.invalid", extra={"entry": str(entry)[:200]})
            continue
        if len(candidates) >= limit:
            break
    return candidates


class LiveDiscoveryStrategy:
    """Strategy backed by an OpenAI JSON client. Provider failures propagate."""

    is_live = True

    def __init__(self, llm: JSONCompletionClient) -> None:
        self._llm = llm

    async def _ask(self, user_prompt: str) -> Any:
        return await self._llm.complete_json(system_prompt=prompts.SYSTEM_PROMPT, user_prompt=user_prompt)

    async def extract_icp(self, website_text: str) -> ICP:
        payload = await self._ask(prompts.ICP_PROMPT.format(website_text=website_text))
        try:
            return ICP.model_validate(payload)
        except ValidationError as exc:
            raise ScoringValidationError(
                "Model returned an invalid ICP.", code="422_INVALID_MODEL_OUTPUT"
            ) from exc

    async def find_competitors(
        self,
        customer: Customer,
        icp: ICP,
        search_results: Sequence[SearchResult],
        limit: int,
    ) -> list[Candidate]:
        payload = await self._ask(
            prompts.COMPETITOR_PROMPT.format(
                customer_name=customer.name,
                customer_domain=customer.domain,
                icp=prompts.render_icp(icp),
                search_results=prompts.render_search_results(search_results),
                limit=limit,
            )
        )
        return _candidates_from(_entries(payload, "competitors"), limit)

    async def extract_companies(
        self,
        search_results: Sequence[SearchResult],
        icp: ICP,
        exclude_domains: Sequence[str],
        exemplars: Sequence[str],
        limit: int,
    ) -> list[Candidate]:
        payload = await self._ask(
            prompts.COMPANY_EXTRACTION_PROMPT.format(
                icp=prompts.render_icp(icp),
                exemplars=", ".join(exemplars) or "None",
                exclude=", ".join(exclude_domains) or "None",
                search_results=prompts.render_search_results(search_results),
                limit=limit,
            )
        )
        return _candidates_from(_entries(payload, "companies"), limit)

    async def extract_competitor_names(
        self,
        company_name: str,
        search_results: Sequence[SearchResult],
        limit: int,
    ) -> list[Candidate]:
        payload = await self._ask(
            prompts.COMPETITOR_NAMES_PROMPT.format(
                company_name=company_name,
                search_results=prompts.render_search_results(search_results),
                limit=limit,
            )
        )
        return _candidates_from(_entries(payload, "competitors"), limit)

    async def score_fit(self, website_text: str, name: str, domain: str, icp: ICP) -> FitAnalysis:
        payload = await self._ask(
            prompts.FIT_PROMPT.format(
                name=name,
                domain=domain,
                icp=prompts.render_icp(icp),
                website_text=website_text,
            )
        )
        if not isinstance(payload, dict):
            raise ScoringValidationError(
                "Model response missing fit analysis.", code="422_INVALID_MODEL_OUTPUT"
            )
        evidence = [
            Evidence(url=str(item["url"]), snippet=item.get("snippet"))
            for item in payload.get("evidence") or []
            if isinstance(item, dict) and item.get("url")
        ]
        return FitAnalysis(
            rationale=str(payload.get("rationale") or ""),
            confidence=_as_int(payload.get("confidence")),
            evidence=evidence[:5],
            icp_score=_as_int(payload.get("icpScore", payload.get("icp_score"))),
        )

    async def generate_ad_copy(
        self, industry: str, workflow: str, buyer_roles: Sequence[str]
    ) -> dict[str, Any]:
        payload = await self._ask(
            prompts.ADS_PROMPT.format(
                industry=industry,
                workflow=workflow,
                buyer_roles=", ".join(buyer_roles) or "Decision makers",
            )
        )
        if not isinstance(payload, dict):
            raise ScoringValidationError(
                "Model response missing ad copy.", code="422_INVALID_MODEL_OUTPUT"
            )
        return payload


FIXTURE_ICP = ICP(
    solution="Software that helps technology teams replace manual work",
    workflows=["Manual processes", "Data silos", "Poor user experience"],
    industries=["Technology", "Software", "SaaS"],
    buyer_roles=["CTO", "VP Engineering", "Product Manager"],
    firmographics=Firmographics(size="Medium to Enterprise", geo="Global"),
)

_FIXTURE_COMPANY_SUFFIXES = (
    "Labs",
    "Systems",
    "Cloud",
    "Analytics",
    "Works",
    "Partners",
    "Digital",
    "Networks",
    "Platforms",
    "Solutions",
)


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


def _domain_stem(domain: str) -> str:
    bare = normalize_domain(domain)
    return bare.split(".", 1)[0] or _slug(bare) or "company"


def _matched(terms: Sequence[str], text: str) -> list[str]:
    lowered = text.lower()
    return [term for term in terms if term.lower() in lowered]


class FixtureDiscoveryStrategy:
    """Deterministic offline strategy used when discovery runs in fixture mode."""

    is_live = False

    async def extract_icp(self, website_text: str) -> ICP:
        return FIXTURE_ICP

    async def find_competitors(
        self,
        customer: Customer,
        icp: ICP,
        search_results: Sequence[SearchResult],
        limit: int,
    ) -> list[Candidate]:
        stem = _domain_stem(customer.domain)
        competitors = [
            Candidate(
                name=f"{customer.name} Alternative",
                domain=f"{stem}-alternative.com",
                rationale=f"Direct competitor to {customer.name} offering similar {icp.primary_industry} solutions",
                evidence_urls=[f"https://example.com/{stem}-competitors"],
                confidence=85,
            ),
            Candidate(
                name="TechCorp Solutions",
                domain="techcorp-solutions.com",
                rationale=f"Enterprise {icp.primary_industry} company competing in the same market space",
                evidence_urls=["https://example.com/techcorp-analysis"],
                confidence=78,
            ),
            Candidate(
                name="InnovateSoft",
                domain="innovatesoft.com",
                rationale=f"Growing {icp.primary_industry} competitor with a modern technology stack",
                evidence_urls=["https://example.com/innovatesoft-review"],
                confidence=72,
            ),
        ]
        return competitors[:limit]

    async def extract_companies(
        self,
        search_results: Sequence[SearchResult],
        icp: ICP,
        exclude_domains: Sequence[str],
        exemplars: Sequence[str],
        limit: int,
    ) -> list[Candidate]:
        excluded = {normalize_domain(domain) for domain in exclude_domains}
        industry = icp.primary_industry or "General"
        workflow = icp.primary_workflow or "operations"
        urls = [result.url for result in search_results if result.url]
        candidates: list[Candidate] = []
        round_number = 0
        while len(candidates) < limit and round_number < 10:
            for suffix in _FIXTURE_COMPANY_SUFFIXES:
                label = suffix if round_number == 0 else f"{suffix} {round_number + 1}"
                name = f"{industry} {label}"
                domain = f"{_slug(name)}.com"
                if domain in excluded:
                    continue
                excluded.add(domain)
                candidates.append(
                    Candidate(
                        name=name,
                        domain=domain,
                        rationale=f"{name} serves {industry} teams with {workflow}",
                        evidence_urls=urls[:1],
                        confidence=65,
                    )
                )
                if len(candidates) >= limit:
                    break
            round_number += 1
        return candidates

    async def extract_competitor_names(
        self,
        company_name: str,
        search_results: Sequence[SearchResult],
        limit: int,
    ) -> list[Candidate]:
        stem = _slug(company_name) or "company"
        names = [
            Candidate(name=f"{company_name} Alternative", domain=f"{stem}-alternative.com", confidence=85),
            Candidate(name="TechCorp Solutions", domain="techcorp-solutions.com", confidence=78),
            Candidate(name="InnovateSoft", domain="innovatesoft.com", confidence=72),
        ]
        return names[:limit]

    async def score_fit(self, website_text: str, name: str, domain: str, icp: ICP) -> FitAnalysis:
        industries = _matched(icp.industries, website_text) or icp.industries[:1]
        workflows = _matched(icp.workflows, website_text) or icp.workflows[:1]
        roles = _matched(icp.buyer_roles, website_text) or icp.buyer_roles[:1]
        hits = len(_matched(icp.industries + icp.workflows + icp.buyer_roles, website_text))
        industry = industries[0] if industries else "General"
        rationale = (
            f"{name} operates in {industry}"
            + (f" and supports {workflows[0]}" if workflows else "")
            + (f" for {roles[0]} buyers" if roles else "")
            + "."
        )
        base = f"https://{normalize_domain(domain) or _slug(name)}"
        return FitAnalysis(
            rationale=rationale,
            confidence=70,
            evidence=[
                Evidence(url=base, snippet=f"{name} home page"),
                Evidence(url=f"{base}/about", snippet=f"About {name}"),
                Evidence(url=f"{base}/customers", snippet=f"{name} customers"),
            ],
            icp_score=min(90, 75 + 5 * min(hits, 3)),
        )

    async def generate_ad_copy(
        self, industry: str, workflow: str, buyer_roles: Sequence[str]
    ) -> dict[str, Any]:
        return {
            "headline": f"Transform Your {industry} Operations",
            "lines": [
                f"Stop struggling with outdated {industry.lower()} processes",
                "Join 500+ companies already using our solution",
            ],
            "cta": "Get Started Today",
        }
