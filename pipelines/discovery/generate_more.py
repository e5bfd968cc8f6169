"""Generate-more pipeline: discovers additional prospects from rated existing ones."""

from __future__ import annotations

import logging
from typing import Any

from app.clients.tavily import TavilyError
from app.config import settings
from app.models.progress import RunResult, RunSummary
from app.models.requests import GenerateMoreRequest
from app.services.discovery.learning import build_learning_query, exemplar_names, icp_fallback_query, partition_rated
from app.services.scoring.errors import ScoringEngineError
from pipelines.discovery.analysis import CandidateAnalyzer, PendingCandidate, dedupe_pending
from pipelines.discovery.progress import ProgressStream, RunBody
from pipelines.discovery.runtime import Collaborators

logger = logging.getLogger("pipelines.discovery.generate_more")

PIPELINE = "generate_more"


async def generate_more_body(
    payload: GenerateMoreRequest | dict[str, Any],
    collaborators: Collaborators,
    *,
    owner_id: str,
) -> RunBody:
    request = (
        payload if isinstance(payload, GenerateMoreRequest) else GenerateMoreRequest.model_validate(payload)
    )
    icp = request.icp
    max_total = request.max_total_prospects or settings.max_total_prospects
    current = len(request.existing_prospects)

    if current >= max_total:
        message = f"Reached the maximum of {max_total} prospects. Remove some prospects to generate more."
        yield message
        yield RunResult(
            icp=icp,
            mock_data=not collaborators.is_live,
            summary=RunSummary(requested=0),
            message=message,
            reached_limit=True,
        )
        return

    batch = min(request.batch_size, max_total - current)
    summary = RunSummary(requested=batch)
    yield f"Generating {batch} more prospects (current: {current}, max: {max_total})..."

    partition = partition_rated(request.existing_prospects)
    exemplars = exemplar_names(request.existing_prospects)
    if partition.excellent:
        yield f"Learning from {len(partition.excellent)} excellent prospects: {', '.join(exemplars)}"

    stored_domains = await collaborators.repository.list_domains(owner_id)
    excluded = sorted(
        {p.domain.strip().lower() for p in request.existing_prospects} | {d.lower() for d in stored_domains}
    )

    analyzer = CandidateAnalyzer(
        collaborators,
        owner_id=owner_id,
        icp=icp,
        threshold=collaborators.policy.expansion_min_icp_score,
        summary=summary,
        pipeline=PIPELINE,
    )

    queries = [build_learning_query(request.existing_prospects, icp)]
    if icp_fallback_query(icp) not in queries:
        queries.append(icp_fallback_query(icp))
    unique: list[PendingCandidate] = []
    for round_index, query in enumerate(queries):
        if round_index > 0:
            if len(unique) >= batch * 2:
                break
            yield "Need more candidates, searching with the ICP profile..."
        yield f"Searching: \"{query}\""
        try:
            results = await collaborators.search.search(query, max_results=settings.search_max_results)
            found = await collaborators.strategy.extract_companies(
                results, icp, excluded, exemplars, batch * 2 - len(unique)
            )
        except (TavilyError, ScoringEngineError) as exc:
            logger.warning("pipeline.generate_more.search_failed", extra={"query": query, "code": exc.code})
            yield "Search failed, continuing..."
            continue
        found.sort(key=lambda candidate: candidate.confidence, reverse=True)
        yield f"Identified {len(found)} candidate companies"
        accepted: list[PendingCandidate] = []
        async for message in analyzer.validate([PendingCandidate(c) for c in found], accepted):
            yield message
        merged = dedupe_pending(unique + accepted, excluded)
        summary.skipped_duplicates += len(unique) + len(accepted) - len(merged)
        unique = merged

    if not unique:
        message = "No new prospects found. Try adjusting your ICP or rating more prospects."
        yield message
        yield RunResult(icp=icp, mock_data=not collaborators.is_live, summary=summary, message=message)
        return

    async for message in analyzer.analyse(unique, limit=batch):
        yield message

    summary.produced = len(analyzer.persisted)
    message = f"Generated {summary.produced} new high-quality prospects"
    yield message
    logger.info("pipeline.generate_more.completed", extra={"owner_id": owner_id, **summary.model_dump()})
    yield RunResult(
        prospects=analyzer.persisted,
        icp=icp,
        mock_data=not collaborators.is_live,
        summary=summary,
        message=message,
        reached_limit=current + summary.produced >= max_total,
    )


def run_generate_more(
    payload: GenerateMoreRequest | dict[str, Any],
    collaborators: Collaborators,
    *,
    owner_id: str,
) -> ProgressStream:
    return ProgressStream(generate_more_body(payload, collaborators, owner_id=owner_id), pipeline=PIPELINE)
