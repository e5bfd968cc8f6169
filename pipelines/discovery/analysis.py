"""Candidate hygiene and per-candidate analysis shared by the discovery pipelines."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable, Sequence
from dataclasses import dataclass

from app.clients.website import WebsiteFetchError
from app.models.icp import ICP
from app.models.progress import RunSummary
from app.models.prospect import Candidate, Company, Evidence, FitAnalysis, ProspectSource
from app.observability.metrics import metrics
from app.services.discovery.domains import (
    dedupe_candidates,
    is_invalid_domain,
    is_plausible_company_name,
    normalize_domain,
)
from app.services.discovery.resolver import DomainResolver
from app.services.repositories import DuplicateDomainError, PersistenceError
from app.services.scoring.errors import ScoringEngineError
from app.services.scoring.fallback import fallback_icp_score
from app.services.scoring.fit_scorer import FitScorer, dedupe_evidence
from pipelines.discovery.runtime import Collaborators

logger = logging.getLogger("pipelines.discovery.analysis")


@dataclass
class PendingCandidate:
    candidate: Candidate
    source_customer_domain: str | None = None

    @property
    def domain(self) -> str:
        return self.candidate.domain


def dedupe_pending(
    pending: Sequence[PendingCandidate],
    existing_domains: Iterable[str] = (),
) -> list[PendingCandidate]:
    """Domain dedup over pending candidates, keeping each survivor's source customer."""
    by_identity = {id(item.candidate): item for item in pending}
    survivors = dedupe_candidates([item.candidate for item in pending], existing_domains)
    return [by_identity[id(candidate)] for candidate in survivors]


class CandidateAnalyzer:
    """Validates, scores and persists candidates one at a time for a single run.

    Methods are async generators of progress messages; outcomes land in
    `summary` and `persisted`.
    """

    def __init__(
        self,
        collaborators: Collaborators,
        *,
        owner_id: str,
        icp: ICP,
        threshold: int,
        summary: RunSummary,
        pipeline: str,
        metrics_client=metrics,
    ) -> None:
        self._collaborators = collaborators
        self._policy = collaborators.policy
        self._resolver = DomainResolver(collaborators.search)
        self._scorer = FitScorer(collaborators.strategy, policy=self._policy, metrics_client=metrics_client)
        self._owner_id = owner_id
        self._icp = icp
        self._threshold = threshold
        self._metrics = metrics_client
        self._tags = {"pipeline": pipeline}
        self.summary = summary
        self.persisted: list[Company] = []

    def _skip(self, reason: str) -> None:
        self._metrics.increment("pipeline.candidates_skipped", tags={**self._tags, "reason": reason})

    async def validate(
        self, pending: Sequence[PendingCandidate], accepted: list[PendingCandidate]
    ) -> AsyncIterator[str]:
        """Name filter, evidence truncation, domain normalization and re-resolution."""
        for item in pending:
            candidate = item.candidate
            if not is_plausible_company_name(candidate.name):
                self.summary.skipped_invalid += 1
                self._skip("implausible_name")
                yield f"Filtered out invalid name: \"{candidate.name}\""
                continue
            candidate = candidate.model_copy(
                update={
                    "domain": normalize_domain(candidate.domain),
                    "evidence_urls": candidate.evidence_urls[: self._policy.evidence_url_limit],
                }
            )
            if is_invalid_domain(candidate.domain):
                yield f"Invalid domain for {candidate.name}, searching for the correct domain..."
                candidate = await self._resolver.reresolve(candidate)
                candidate = candidate.model_copy(update={"domain": normalize_domain(candidate.domain)})
                if is_invalid_domain(candidate.domain):
                    self.summary.skipped_invalid += 1
                    self._skip("invalid_domain")
                    yield f"Could not find a valid domain for {candidate.name}, skipping"
                    continue
                yield f"Found domain for {candidate.name}: {candidate.domain}"
            accepted.append(PendingCandidate(candidate, item.source_customer_domain))

    async def _fetch(self, candidate: Candidate, taken: set[str]) -> AsyncIterator[str | tuple[str, str]]:
        """Yields progress strings, then `(domain, text)` on success."""
        fetcher = self._collaborators.fetcher
        try:
            yield candidate.domain, await fetcher.fetch_text(candidate.domain)
            return
        except WebsiteFetchError as exc:
            first_error = exc
        yield f"Could not load {candidate.domain}: {first_error.message} Looking for the correct domain..."
        corrected = await self._resolver.correct_domain(candidate.name, candidate.domain)
        if not corrected or corrected in taken:
            raise first_error
        yield f"Trying corrected domain for {candidate.name}: {corrected}"
        yield corrected, await fetcher.fetch_text(corrected)

    def _fallback(self, candidate: Candidate) -> FitAnalysis:
        evidence = dedupe_evidence([Evidence(url=url) for url in candidate.evidence_urls])
        return FitAnalysis(
            rationale=candidate.rationale,
            confidence=self._policy.clamp_confidence(candidate.confidence, len(evidence)),
            evidence=evidence,
            icp_score=fallback_icp_score(candidate.rationale, candidate.confidence, self._icp, self._policy),
        )

    async def analyse(self, pending: Sequence[PendingCandidate], *, limit: int) -> AsyncIterator[str]:
        """Score and persist candidates in order until `limit` prospects are stored."""
        taken = {normalize_domain(item.domain) for item in pending}
        total = len(pending)
        for index, item in enumerate(pending, start=1):
            if len(self.persisted) >= limit:
                yield f"Reached the target of {limit} prospects, skipping remaining candidates"
                break
            candidate = item.candidate
            yield f"[{index}/{total}] Analysing {candidate.name}..."

            domain = candidate.domain
            website_text: str | None = None
            try:
                async for step in self._fetch(candidate, taken):
                    if isinstance(step, tuple):
                        domain, website_text = step
                    else:
                        yield step
            except WebsiteFetchError as exc:
                self.summary.skipped_errors += 1
                self._skip("fetch_failed")
                yield f"Skipping {candidate.name}: {exc.message}"
                continue
            except Exception:
                self.summary.skipped_errors += 1
                self._skip("fetch_error")
                logger.exception("pipeline.candidate.fetch_failed", extra={"domain": domain})
                yield f"Skipping {candidate.name}: the website could not be loaded"
                continue
            taken.add(domain)

            fallback_used = False
            try:
                analysis = await self._scorer.score(website_text or "", candidate.name, domain, self._icp)
            except ScoringEngineError as exc:
                fallback_used = True
                analysis = self._fallback(candidate)
                self.summary.fallback_scored += 1
                self._metrics.increment("pipeline.fallback_scored", tags=self._tags)
                logger.warning(
                    "pipeline.candidate.fallback",
                    extra={"domain": domain, "code": exc.code},
                )
                yield f"Scoring failed for {candidate.name}, using fallback scoring"
            self.summary.processed += 1

            if analysis.icp_score < self._threshold:
                self.summary.skipped_low_score += 1
                self._skip("low_score")
                yield (
                    f"Skipped {candidate.name}: ICP score {analysis.icp_score} is below "
                    f"the threshold of {self._threshold}"
                )
                continue

            company = Company(
                name=candidate.name,
                domain=domain,
                source=ProspectSource.EXPANDED,
                source_customer_domain=item.source_customer_domain,
                icp_score=analysis.icp_score,
                confidence=analysis.confidence,
                rationale=analysis.rationale or candidate.rationale,
                evidence=analysis.evidence,
            )
            try:
                stored = await self._collaborators.repository.insert_company(self._owner_id, company)
            except DuplicateDomainError:
                self.summary.skipped_duplicates += 1
                self._skip("duplicate")
                yield f"Skipped {candidate.name}: {domain} is already in your prospects"
                continue
            except PersistenceError as exc:
                if fallback_used:
                    self.summary.failed += 1
                else:
                    self.summary.skipped_errors += 1
                self._skip("persistence_error")
                logger.warning("pipeline.candidate.persist_failed", extra={"domain": domain, "code": exc.code})
                yield f"Failed to save {candidate.name}, skipping"
                continue
            except Exception:
                self.summary.failed += 1
                self._skip("unexpected_error")
                logger.exception("pipeline.candidate.persist_failed", extra={"domain": domain})
                yield f"Failed to save {candidate.name}, skipping"
                continue

            self.persisted.append(stored)
            self._metrics.increment("pipeline.prospects_persisted", tags=self._tags)
            yield (
                f"Added {stored.name} ({stored.domain}) - ICP score {stored.icp_score}, "
                f"confidence {stored.confidence}%"
            )
