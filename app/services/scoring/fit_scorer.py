"""Fit scorer: one provider call per candidate plus deterministic post-processing."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence

from app.models.icp import ICP
from app.models.prospect import Evidence, FitAnalysis
from app.observability.metrics import metrics
from app.services.discovery.strategies import DiscoveryStrategy
from app.services.scoring.errors import ScoringEngineError, ScoringProviderError
from app.services.scoring.policy import ScoringPolicy

logger = logging.getLogger(__name__)


def dedupe_evidence(evidence: Sequence[Evidence]) -> list[Evidence]:
    """Drop evidence whose URL (trimmed, case-insensitive) was already seen."""
    seen: set[str] = set()
    kept: list[Evidence] = []
    for item in evidence:
        key = (item.url or "").strip().lower()
        if key in seen:
            continue
        seen.add(key)
        kept.append(item)
    return kept


def finalize_analysis(raw: FitAnalysis, policy: ScoringPolicy) -> FitAnalysis:
    evidence = dedupe_evidence(raw.evidence)
    return FitAnalysis(
        rationale=raw.rationale,
        confidence=policy.clamp_confidence(raw.confidence, len(evidence)),
        evidence=evidence,
        icp_score=max(0, min(100, raw.icp_score)),
    )


class FitScorer:
    def __init__(
        self,
        strategy: DiscoveryStrategy,
        *,
        policy: ScoringPolicy | None = None,
        metrics_client=metrics,
    ) -> None:
        self._strategy = strategy
        self._policy = policy or ScoringPolicy.from_settings()
        self._metrics = metrics_client

    async def score(self, website_text: str, name: str, domain: str, icp: ICP) -> FitAnalysis:
        tags = {"live": str(self._strategy.is_live).lower()}
        start = time.perf_counter()
        try:
            raw = await self._strategy.score_fit(website_text, name, domain, icp)
        except ScoringEngineError as exc:
            self._metrics.increment("fit_scorer.errors", tags={**tags, "code": exc.code})
            logger.warning("fit_scorer.failed", extra={"domain": domain, "code": exc.code})
            raise
        except Exception as exc:
            self._metrics.increment("fit_scorer.errors", tags={**tags, "code": "502_OPENAI_UPSTREAM"})
            logger.warning("fit_scorer.failed", extra={"domain": domain, "error": type(exc).__name__})
            raise ScoringProviderError(
                f"Unexpected scoring failure: {exc}", code="502_OPENAI_UPSTREAM"
            ) from exc
        finally:
            self._metrics.timing("fit_scorer.latency_ms", (time.perf_counter() - start) * 1000, tags=tags)

        analysis = finalize_analysis(raw, self._policy)
        self._metrics.increment("fit_scorer.success", tags=tags)
        logger.info(
            "fit_scorer.scored",
            extra={
                "domain": domain,
                "icp_score": analysis.icp_score,
                "confidence": analysis.confidence,
                "evidence": len(analysis.evidence),
            },
        )
        return analysis
