"""Cluster builder: groups persisted prospects by score band and dominant industry."""

from __future__ import annotations

import math
import re
from collections import Counter
from collections.abc import Sequence

from app.models.icp import ICP
from app.models.prospect import Cluster, ClusterCriteria, Company
from app.services.scoring.policy import ScoringPolicy

CATCH_ALL_KEY = "other"
CATCH_ALL_LABEL = "Other Prospects"
DEFAULT_INDUSTRY = "General"


def _first_mentioned(terms: Sequence[str], text: str) -> str | None:
    lowered = (text or "").lower()
    for term in terms:
        if term.lower() in lowered:
            return term
    return None


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def prospect_industry(prospect: Company, icp: ICP) -> str:
    return _first_mentioned(icp.industries, prospect.rationale) or icp.primary_industry or DEFAULT_INDUSTRY


def cluster_key(prospect: Company, icp: ICP, policy: ScoringPolicy) -> str:
    industry = prospect_industry(prospect, icp)
    return policy.band_prefix(prospect.icp_score) + re.sub(r"\s+", "-", industry.lower())


def label_for_key(key: str) -> str:
    """Title-case each hyphen-separated word: high-fintech -> High Fintech."""
    return " ".join(word[:1].upper() + word[1:] for word in key.split("-") if word)


def _dominant(terms: Sequence[str], members: Sequence[Company]) -> str | None:
    counts: Counter[str] = Counter()
    for member in members:
        lowered = member.rationale.lower()
        for term in terms:
            if term.lower() in lowered:
                counts[term] += 1
    if not counts:
        return None
    best = max(counts.values())
    # ICP order breaks ties.
    return next(term for term in terms if counts.get(term) == best)


def _criteria(members: Sequence[Company], icp: ICP, fallback_industry: str) -> ClusterCriteria:
    count = len(members)
    return ClusterCriteria(
        avg_icp_score=_round_half_up(sum(m.icp_score for m in members) / count),
        avg_confidence=_round_half_up(sum(m.confidence for m in members) / count),
        dominant_industry=_dominant(icp.industries, members) or fallback_industry,
        dominant_workflow=_dominant(icp.workflows, members) or icp.primary_workflow,
        company_count=count,
    )


def build_clusters(prospects: Sequence[Company], icp: ICP, policy: ScoringPolicy) -> list[Cluster]:
    """Group persisted prospects; undersized groups are merged into one catch-all, emitted last.

    Every prospect must already carry its store-assigned id.
    """
    groups: dict[str, list[Company]] = {}
    industries: dict[str, str] = {}
    for prospect in prospects:
        if prospect.id is None:
            raise ValueError(f"Prospect {prospect.domain} has not been persisted.")
        key = cluster_key(prospect, icp, policy)
        groups.setdefault(key, []).append(prospect)
        industries.setdefault(key, prospect_industry(prospect, icp))

    clusters: list[Cluster] = []
    singletons: list[Company] = []
    for key, members in groups.items():
        if len(members) < policy.cluster_min_size:
            singletons.extend(members)
            continue
        clusters.append(
            Cluster(
                key=key,
                label=label_for_key(key),
                criteria=_criteria(members, icp, industries[key]),
                company_ids=[m.id for m in members],
            )
        )

    if singletons:
        clusters.append(
            Cluster(
                key=CATCH_ALL_KEY,
                label=CATCH_ALL_LABEL,
                criteria=_criteria(singletons, icp, icp.primary_industry or DEFAULT_INDUSTRY),
                company_ids=[m.id for m in singletons],
            )
        )
    return clusters
