"""Deterministic rubric used when the fit-scoring provider fails."""

from __future__ import annotations

from collections.abc import Sequence

from app.models.icp import ICP
from app.services.scoring.policy import ScoringPolicy


def _mentions_any(text: str, terms: Sequence[str]) -> bool:
    return any(term.lower() in text for term in terms if term)


def fallback_icp_score(rationale: str, confidence: int, icp: ICP, policy: ScoringPolicy) -> int:
    """Industry +40, workflow +30, buyer role +20, plus confidence // 10, capped at 100."""
    text = (rationale or "").lower()
    score = 0
    if _mentions_any(text, icp.industries):
        score += policy.industry_weight
    if _mentions_any(text, icp.workflows):
        score += policy.workflow_weight
    if _mentions_any(text, icp.buyer_roles):
        score += policy.buyer_role_weight
    score += max(0, confidence) // policy.confidence_divisor
    return min(score, policy.fallback_score_cap)
