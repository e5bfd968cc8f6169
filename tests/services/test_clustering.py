import pytest

from app.models.icp import ICP
from app.models.prospect import Company
from app.services.clustering import CATCH_ALL_LABEL, build_clusters, cluster_key, label_for_key
from app.services.scoring.policy import ScoringPolicy

ICP_FIXTURE = ICP(
    industries=["Fintech", "Healthcare", "Retail", "Logistics", "Real Estate"],
    workflows=["Reconciliation", "Scheduling"],
    buyer_roles=["CFO"],
)


def _company(company_id: int, score: int, rationale: str, confidence: int = 70) -> Company:
    return Company(
        id=company_id,
        name=f"Company {company_id}",
        domain=f"company{company_id}.com",
        icp_score=score,
        confidence=confidence,
        rationale=rationale,
    )


def test_singletons_fold_into_one_catch_all_emitted_last():
    prospects = [
        _company(1, 85, "Fintech reconciliation platform", confidence=80),
        _company(2, 90, "Fintech lender with reconciliation pain", confidence=75),
        _company(3, 65, "Healthcare scheduling"),
        _company(4, 40, "Retail chain"),
        _company(5, 85, "Logistics broker"),
    ]

    clusters = build_clusters(prospects, ICP_FIXTURE, ScoringPolicy())

    assert [c.label for c in clusters] == ["High Fintech", CATCH_ALL_LABEL]
    genuine, catch_all = clusters
    assert genuine.company_ids == [1, 2]
    assert genuine.criteria.company_count == 2
    assert genuine.criteria.avg_icp_score == 88
    assert genuine.criteria.avg_confidence == 78
    assert genuine.criteria.dominant_industry == "Fintech"
    assert genuine.criteria.dominant_workflow == "Reconciliation"
    assert catch_all.company_ids == [3, 4, 5]
    assert catch_all.criteria.company_count == 3
    assert catch_all.criteria.dominant_industry == "Healthcare"


def test_every_prospect_lands_in_exactly_one_cluster():
    prospects = [_company(i, 50 + i * 7, "Fintech" if i % 2 else "Retail") for i in range(1, 7)]

    clusters = build_clusters(prospects, ICP_FIXTURE, ScoringPolicy())
    ids = [company_id for cluster in clusters for company_id in cluster.company_ids]

    assert sorted(ids) == [1, 2, 3, 4, 5, 6]


def test_no_catch_all_when_every_group_is_big_enough():
    prospects = [_company(1, 70, "Retail"), _company(2, 62, "retail stores")]

    clusters = build_clusters(prospects, ICP_FIXTURE, ScoringPolicy())

    assert [c.label for c in clusters] == ["Medium Retail"]


def test_unmatched_rationale_uses_primary_industry():
    prospect = _company(1, 30, "Bakery")

    assert cluster_key(prospect, ICP_FIXTURE, ScoringPolicy()) == "low-fintech"


def test_multi_word_industry_key_and_label():
    prospect = _company(1, 95, "Real Estate brokerage")

    key = cluster_key(prospect, ICP_FIXTURE, ScoringPolicy())

    assert key == "high-real-estate"
    assert label_for_key(key) == "High Real Estate"


def test_unpersisted_prospects_are_rejected():
    prospect = _company(1, 80, "Fintech").model_copy(update={"id": None})

    with pytest.raises(ValueError):
        build_clusters([prospect], ICP_FIXTURE, ScoringPolicy())
