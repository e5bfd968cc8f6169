"""Scoring policy: every threshold the pipelines apply, in one place."""

from __future__ import annotations

from dataclasses import dataclass

from app.config import Settings, settings


@dataclass(frozen=True)
class ScoringPolicy:
    expansion_min_icp_score: int = 50
    competitor_min_icp_score: int = 40

    # Confidence bands keyed by deduplicated evidence count.
    no_evidence_cap: int = 20
    single_evidence_cap: int = 55
    pair_evidence_floor: int = 60
    pair_evidence_cap: int = 70
    strong_evidence_floor: int = 75
    strong_evidence_cap: int = 90

    high_band_min: int = 80
    medium_band_min: int = 60
    cluster_min_size: int = 2
    evidence_url_limit: int = 3

    industry_weight: int = 40
    workflow_weight: int = 30
    buyer_role_weight: int = 20
    confidence_divisor: int = 10
    fallback_score_cap: int = 100

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> ScoringPolicy:
        config = config or settings
        return cls(
            expansion_min_icp_score=config.expansion_min_icp_score,
            competitor_min_icp_score=config.competitor_min_icp_score,
            cluster_min_size=config.cluster_min_size,
            evidence_url_limit=config.evidence_url_limit,
        )

    def clamp_confidence(self, raw: int, evidence_count: int) -> int:
        value = max(0, raw)
        if evidence_count <= 0:
            return min(value, self.no_evidence_cap)
        if evidence_count == 1:
            return min(value, self.single_evidence_cap)
        if evidence_count == 2:
            return max(self.pair_evidence_floor, min(value, self.pair_evidence_cap))
        return max(self.strong_evidence_floor, min(value, self.strong_evidence_cap))

    def band_prefix(self, icp_score: int) -> str:
        if icp_score >= self.high_band_min:
            return "high-"
        if icp_score >= self.medium_band_min:
            return "medium-"
        return "low-"
