"""Competitor-discovery pipeline for a single named company."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from app.clients.tavily import TavilyError
from app.config import settings
from app.models.progress import RunResult, RunSummary
from app.models.prospect import Candidate, SearchResult
from app.models.requests import CompetitorsRequest
from app.services.discovery.domains import company_name_from_title, normalize_domain
from app.services.discovery.resolver import DomainResolver
from app.services.scoring.errors import ScoringEngineError
from pipelines.discovery.analysis import CandidateAnalyzer, PendingCandidate, dedupe_pending
from pipelines.discovery.progress import ProgressStream, RunBody
from pipelines.discovery.runtime import Collaborators

logger = logging.getLogger("pipelines.discovery.competitors")

PIPELINE = "competitors"
MAX_TITLE_NAMES = 15


def competitor_queries(company_name: str, industry: str) -> list[str]:
    queries = [
        f"{company_name} competitors {industry}",
        f"alternative to {company_name} {industry}",
        f"{industry} companies like {company_name}",
    ]
    return [" ".join(query.split()) for query in queries]


def names_from_titles(results: Sequence[SearchResult]) -> list[Candidate]:
    seen: set[str] = set()
    names: list[Candidate] = []
    for result in results:
        name = company_name_from_title(result.title)
        if not name or name.lower() in seen:
            continue
        seen.add(name.lower())
        names.append(Candidate(name=name))
        if len(names) >= MAX_TITLE_NAMES:
            break
    return names


async def competitors_body(
    payload: CompetitorsRequest | dict[str, Any],
    collaborators: Collaborators,
    *,
    owner_id: str,
) -> RunBody:
    request = (
        payload if isinstance(payload, CompetitorsRequest) else CompetitorsRequest.model_validate(payload)
    )
    icp = request.icp
    batch = request.batch_size
    pool_cap = batch * 2
    summary = RunSummary(requested=batch)
    company_domain = normalize_domain(request.company_domain)
    industry = icp.primary_industry
    yield f"Finding up to {batch} competitors of {request.company_name}..."

    existing_names = {p.name.strip().lower() for p in request.existing_prospects}
    stored_domains = await collaborators.repository.list_domains(owner_id)
    excluded_domains = (
        {normalize_domain(p.domain) for p in request.existing_prospects}
        | {normalize_domain(d) for d in stored_domains}
        | {company_domain}
    )

    results: list[SearchResult] = []
    for query in competitor_queries(request.company_name, industry):
        yield f"Searching: \"{query}\""
        try:
            found = await collaborators.search.search(query, max_results=settings.search_max_results)
        except TavilyError as exc:
            logger.warning("pipeline.competitors.search_failed", extra={"query": query, "code": exc.code})
            yield "Search failed, continuing..."
            continue
        results.extend(found)
    yield f"Collected {len(results)} search results"

    try:
        named = await collaborators.strategy.extract_competitor_names(request.company_name, results, pool_cap)
    except ScoringEngineError as exc:
        logger.warning("pipeline.competitors.extract_failed", extra={"code": exc.code})
        yield "Competitor extraction failed, using fallback method"
        named = []
    if not named:
        yield "Using basic extraction from titles..."
        named = names_from_titles(results)
    yield f"Found {len(named)} competitor names"

    resolver = DomainResolver(collaborators.search)
    pending: list[PendingCandidate] = []
    for competitor in named:
        if len(pending) >= pool_cap:
            break
        if competitor.name.strip().lower() in existing_names:
            yield f"Skipping {competitor.name} - already in your list"
            summary.skipped_duplicates += 1
            continue
        domain = normalize_domain(competitor.domain)
        if not domain:
            yield f"Looking up domain for {competitor.name}..."
            domain = await resolver.lookup_domain(competitor.name) or ""
            if not domain:
                summary.skipped_invalid += 1
                yield f"Could not find domain for {competitor.name}"
                continue
        if domain in excluded_domains:
            summary.skipped_duplicates += 1
            continue
        rationale = competitor.rationale or f"Competitor of {request.company_name} in {industry}"
        pending.append(
            PendingCandidate(
                competitor.model_copy(update={"domain": domain, "rationale": rationale}),
                company_domain,
            )
        )

    analyzer = CandidateAnalyzer(
        collaborators,
        owner_id=owner_id,
        icp=icp,
        threshold=collaborators.policy.competitor_min_icp_score,
        summary=summary,
        pipeline=PIPELINE,
    )
    accepted: list[PendingCandidate] = []
    async for message in analyzer.validate(pending, accepted):
        yield message
    unique = dedupe_pending(accepted, excluded_domains)
    summary.skipped_duplicates += len(accepted) - len(unique)
    yield f"Found {len(unique)} unique competitor domains"

    if not unique:
        message = f"No new competitors found for {request.company_name}."
        yield message
        yield RunResult(icp=icp, mock_data=not collaborators.is_live, summary=summary, message=message)
        return

    async for message in analyzer.analyse(unique, limit=batch):
        yield message

    summary.produced = len(analyzer.persisted)
    message = f"Added {summary.produced} competitors of {request.company_name}"
    yield message
    logger.info("pipeline.competitors.completed", extra={"owner_id": owner_id, **summary.model_dump()})
    yield RunResult(
        prospects=analyzer.persisted,
        icp=icp,
        mock_data=not collaborators.is_live,
        summary=summary,
        message=message,
    )


def run_competitors(
    payload: CompetitorsRequest | dict[str, Any],
    collaborators: Collaborators,
    *,
    owner_id: str,
) -> ProgressStream:
    return ProgressStream(competitors_body(payload, collaborators, owner_id=owner_id), pipeline=PIPELINE)
