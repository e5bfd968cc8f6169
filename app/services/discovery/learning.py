"""Learning-loop query builder for generate-more runs."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from app.models.icp import ICP
from app.models.prospect import RatedProspect

GOOD_SCORE_FLOOR = 70
MAX_EXEMPLARS = 3


@dataclass(frozen=True)
class RatedPartition:
    excellent: list[RatedProspect]
    good: list[RatedProspect]


def partition_rated(prospects: Sequence[RatedProspect]) -> RatedPartition:
    excellent: list[RatedProspect] = []
    good: list[RatedProspect] = []
    for prospect in prospects:
        quality = (prospect.quality or "").strip().lower()
        if quality == "excellent":
            excellent.append(prospect)
        elif quality == "good" or prospect.icp_score >= GOOD_SCORE_FLOOR:
            good.append(prospect)
    return RatedPartition(excellent=excellent, good=good)


def exemplar_names(prospects: Sequence[RatedProspect]) -> list[str]:
    """Names fed back into discovery: excellent first, else good."""
    partition = partition_rated(prospects)
    source = partition.excellent or partition.good
    return [prospect.name for prospect in source[:MAX_EXEMPLARS]]


def build_learning_query(prospects: Sequence[RatedProspect], icp: ICP) -> str:
    partition = partition_rated(prospects)
    industries = " or ".join(icp.industries)
    if partition.excellent:
        names = ", ".join(p.name for p in partition.excellent[:MAX_EXEMPLARS])
        return _squash(f"companies like {names} in {industries}")
    if partition.good:
        names = ", ".join(p.name for p in partition.good[:MAX_EXEMPLARS])
        return _squash(f"companies similar to {names} in {industries}")
    return icp_fallback_query(icp)


def icp_fallback_query(icp: ICP) -> str:
    return _squash(f"{icp.primary_industry} companies {icp.firmographics.geo} {icp.primary_workflow}")


def _squash(query: str) -> str:
    return " ".join(query.split())
