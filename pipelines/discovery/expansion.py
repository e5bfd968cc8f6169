"""Seed-expansion pipeline: customers -> look-alike prospects -> clusters -> ads."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import AsyncIterator, Sequence
from pathlib import Path
from typing import Any

from app.clients.tavily import TavilyError
from app.clients.website import WebsiteFetchError
from app.config import settings
from app.models.icp import ICP, Customer
from app.models.progress import RunResult, RunSummary
from app.models.prospect import Ad, Cluster, Company
from app.models.requests import AnalyseRequest
from app.services.ad_copy import AdCopyGenerator, AdCopyValidationError
from app.services.clustering import build_clusters
from app.services.discovery.domains import normalize_domain
from app.services.discovery.search import competitor_query
from app.services.repositories import PersistenceError
from app.services.scoring.errors import ScoringEngineError
from pipelines.discovery.analysis import CandidateAnalyzer, PendingCandidate, dedupe_pending
from pipelines.discovery.progress import ProgressStream, RunBody, encode_ndjson
from pipelines.discovery.runtime import Collaborators, build_collaborators

logger = logging.getLogger("pipelines.discovery.expansion")

PIPELINE = "expansion"
BROADER_SEARCH_NAME = "Additional Search"


class ExpansionError(RuntimeError):
    """Unrecoverable run-level failure; surfaced as the terminal error frame."""

    def __init__(self, message: str, code: str = "EXPANSION_ERROR") -> None:
        super().__init__(message)
        self.code = code


async def _resolve_icp(request: AnalyseRequest, collaborators: Collaborators) -> AsyncIterator[str | ICP]:
    if request.icp is not None:
        yield f"Using confirmed ICP: {', '.join(request.icp.industries)}"
        yield request.icp
        return
    yield f"Fetching website content from {request.website_url}..."
    try:
        text = await collaborators.fetcher.fetch_text(normalize_domain(request.website_url))
    except WebsiteFetchError as exc:
        raise ExpansionError(exc.message, code=exc.code) from exc
    yield "Extracting Ideal Customer Profile..."
    try:
        icp = await collaborators.strategy.extract_icp(text)
    except ScoringEngineError as exc:
        raise ExpansionError(f"Failed to extract ICP: {exc}", code=exc.code) from exc
    if not icp.is_confirmed:
        raise ExpansionError("Extracted ICP is missing industries, workflows or buyer roles.")
    yield f"ICP extracted: {', '.join(icp.industries)}"
    yield icp


async def _expand_seeds(
    customers: Sequence[Customer],
    icp: ICP,
    collaborators: Collaborators,
    max_prospects: int,
    pool: list[PendingCandidate],
) -> AsyncIterator[str]:
    failures = 0
    yield f"Analysing {len(customers)} customer company(ies)..."
    for customer in customers:
        if len(pool) >= max_prospects:
            break
        yield f"Searching for competitors of {customer.name}..."
        try:
            results = await collaborators.search.search(
                competitor_query(customer.domain, icp.primary_industry),
                max_results=settings.search_max_results,
            )
            found = await collaborators.strategy.find_competitors(
                customer, icp, results, max_prospects - len(pool)
            )
        except (TavilyError, ScoringEngineError) as exc:
            failures += 1
            logger.warning(
                "pipeline.seed.failed",
                extra={"customer": customer.domain, "code": getattr(exc, "code", None)},
            )
            yield f"Search failed for {customer.name}, continuing..."
            continue
        yield f"Found {len(found)} potential competitors for {customer.name}"
        pool.extend(PendingCandidate(candidate, customer.domain) for candidate in found)
    if customers and failures == len(customers):
        raise ExpansionError("Seed expansion failed for every customer.")


def _broader_queries(icp: ICP) -> list[str]:
    geo = icp.firmographics.geo
    queries = [
        f"{icp.primary_industry} companies {geo}",
        f"{icp.primary_industry} services {geo}",
        f"{icp.primary_workflow} companies",
    ]
    return [" ".join(query.split()) for query in queries]


async def _broader_search(
    request: AnalyseRequest,
    icp: ICP,
    collaborators: Collaborators,
    analyzer: CandidateAnalyzer,
    unique: list[PendingCandidate],
    existing_domains: Sequence[str],
    max_prospects: int,
) -> AsyncIterator[str]:
    target = max_prospects * 2
    seed_domain = request.customers[0].domain
    pseudo_customer = Customer(name=BROADER_SEARCH_NAME, domain=seed_domain)
    yield (
        f"Need more prospects (have {len(unique)}, need {max_prospects}), "
        "searching with broader terms..."
    )
    for query in _broader_queries(icp):
        if len(unique) >= target:
            break
        yield f"Searching: \"{query}\""
        try:
            results = await collaborators.search.search(query, max_results=settings.search_max_results)
            found = await collaborators.strategy.find_competitors(
                pseudo_customer, icp, results, target - len(unique)
            )
        except (TavilyError, ScoringEngineError) as exc:
            logger.warning("pipeline.broader.failed", extra={"query": query, "code": exc.code})
            yield "Broader search failed, continuing..."
            continue
        accepted: list[PendingCandidate] = []
        async for message in analyzer.validate(
            [PendingCandidate(candidate, seed_domain) for candidate in found], accepted
        ):
            yield message
        before = len(unique)
        unique[:] = dedupe_pending(unique + accepted, existing_domains)
        analyzer.summary.skipped_duplicates += before + len(accepted) - len(unique)
        yield f"Found {len(unique) - before} additional candidates"
    yield f"Total prospect pool after broad search: {len(unique)} companies"


async def _cluster_and_advertise(
    prospects: Sequence[Company],
    icp: ICP,
    collaborators: Collaborators,
    owner_id: str,
    clusters_out: list[Cluster],
    ads_out: list[Ad],
) -> AsyncIterator[str]:
    repository = collaborators.repository
    generator = AdCopyGenerator(collaborators.strategy)
    yield "Creating clusters..."
    for draft in build_clusters(prospects, icp, collaborators.policy):
        try:
            cluster = await repository.insert_cluster(owner_id, draft)
        except PersistenceError as exc:
            logger.warning("pipeline.cluster.persist_failed", extra={"cluster": draft.label, "code": exc.code})
            yield f"Failed to save cluster {draft.label}"
            continue
        clusters_out.append(cluster)
        yield f"Created cluster \"{cluster.label}\" with {len(cluster.company_ids)} companies"

        try:
            copy = await generator.generate(cluster, icp)
        except (AdCopyValidationError, ScoringEngineError) as exc:
            logger.warning("pipeline.ad.failed", extra={"cluster": cluster.label, "code": exc.code})
            yield f"Ad copy generation failed for {cluster.label}"
            continue
        try:
            ad = await repository.insert_ad(
                Ad(cluster_id=cluster.id, headline=copy.headline, lines=copy.lines, cta=copy.cta)
            )
        except PersistenceError as exc:
            logger.warning("pipeline.ad.persist_failed", extra={"cluster": cluster.label, "code": exc.code})
            yield f"Failed to save ad for {cluster.label}"
            continue
        ads_out.append(ad)
        yield f"Generated ad copy for {cluster.label}"


async def expansion_body(
    payload: AnalyseRequest | dict[str, Any],
    collaborators: Collaborators,
    *,
    owner_id: str,
) -> RunBody:
    request = payload if isinstance(payload, AnalyseRequest) else AnalyseRequest.model_validate(payload)
    max_prospects = request.batch_size or settings.default_batch_size
    summary = RunSummary(requested=max_prospects)
    yield f"Starting analysis for {request.website_url} (target: {max_prospects} prospects)..."

    icp: ICP | None = None
    async for step in _resolve_icp(request, collaborators):
        if isinstance(step, ICP):
            icp = step
        else:
            yield step
    if icp is None:
        raise ExpansionError("No Ideal Customer Profile available for this run.")

    pool: list[PendingCandidate] = []
    async for message in _expand_seeds(request.customers, icp, collaborators, max_prospects, pool):
        yield message

    analyzer = CandidateAnalyzer(
        collaborators,
        owner_id=owner_id,
        icp=icp,
        threshold=collaborators.policy.expansion_min_icp_score,
        summary=summary,
        pipeline=PIPELINE,
    )
    yield "Validating company names and domains..."
    accepted: list[PendingCandidate] = []
    async for message in analyzer.validate(pool, accepted):
        yield message

    existing_domains = await collaborators.repository.list_domains(owner_id)
    unique = dedupe_pending(accepted, existing_domains)
    summary.skipped_duplicates += len(accepted) - len(unique)
    yield f"{len(unique)} unique candidates after removing duplicates"

    if len(unique) < max_prospects:
        async for message in _broader_search(
            request, icp, collaborators, analyzer, unique, existing_domains, max_prospects
        ):
            yield message

    async for message in analyzer.analyse(unique, limit=max_prospects):
        yield message

    prospects = analyzer.persisted
    summary.produced = len(prospects)
    clusters: list[Cluster] = []
    ads: list[Ad] = []
    if prospects:
        async for message in _cluster_and_advertise(prospects, icp, collaborators, owner_id, clusters, ads):
            yield message

    if summary.produced < max_prospects:
        message = (
            f"Only generated {summary.produced} of {max_prospects} requested prospects "
            f"({summary.skipped} skipped). Consider broader ICP criteria."
        )
    else:
        message = f"Generated {summary.produced} prospects ({summary.skipped} skipped)."
    yield message
    logger.info(
        "pipeline.expansion.completed",
        extra={"owner_id": owner_id, **summary.model_dump()},
    )
    yield RunResult(
        prospects=prospects,
        clusters=clusters,
        ads=ads,
        icp=icp,
        mock_data=not collaborators.is_live,
        summary=summary,
        message=message,
    )


def run_expansion(
    payload: AnalyseRequest | dict[str, Any],
    collaborators: Collaborators,
    *,
    owner_id: str,
) -> ProgressStream:
    return ProgressStream(expansion_body(payload, collaborators, owner_id=owner_id), pipeline=PIPELINE)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run seed expansion and print NDJSON progress frames.")
    parser.add_argument("--request", type=Path, required=True, help="Path to an analyse request JSON file.")
    parser.add_argument("--owner", default="cli", help="Owner id prospects are stored under.")
    return parser.parse_args(argv)


async def _run_cli(request_path: Path, owner_id: str) -> int:
    payload = json.loads(request_path.read_text(encoding="utf-8"))
    collaborators = build_collaborators()
    exit_code = 0
    try:
        async for event in run_expansion(payload, collaborators, owner_id=owner_id):
            sys.stdout.write(encode_ndjson(event))
            if event.error is not None:
                exit_code = 1
    finally:
        await collaborators.aclose()
    return exit_code


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
    args = parse_args(argv)
    return asyncio.run(_run_cli(args.request, args.owner))


if __name__ == "__main__":
    raise SystemExit(main())
