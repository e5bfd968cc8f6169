from app.models.icp import ICP, Firmographics
from app.models.prospect import RatedProspect
from app.services.discovery.learning import (
    build_learning_query,
    exemplar_names,
    icp_fallback_query,
    partition_rated,
)

ICP_FIXTURE = ICP(
    industries=["Fintech", "Insurance"],
    workflows=["Claims processing"],
    buyer_roles=["COO"],
    firmographics=Firmographics(size="50-500", geo="United Kingdom"),
)


def _rated(prospect_id: int, name: str, quality: str | None = None, score: int = 0) -> RatedProspect:
    return RatedProspect(id=prospect_id, domain=f"{name.lower()}.com", name=name, quality=quality, icp_score=score)


def test_partition_splits_excellent_and_good():
    prospects = [
        _rated(1, "Alpha", "excellent"),
        _rated(2, "Beta", "good"),
        _rated(3, "Gamma", score=75),
        _rated(4, "Delta", "poor", score=40),
    ]

    partition = partition_rated(prospects)

    assert [p.name for p in partition.excellent] == ["Alpha"]
    assert [p.name for p in partition.good] == ["Beta", "Gamma"]


def test_query_prefers_excellent_exemplars():
    prospects = [_rated(i, name, "excellent") for i, name in enumerate(["A1", "B2", "C3", "D4"], start=1)]

    assert build_learning_query(prospects, ICP_FIXTURE) == "companies like A1, B2, C3 in Fintech or Insurance"
    assert exemplar_names(prospects) == ["A1", "B2", "C3"]


def test_query_uses_good_examples_when_no_excellent():
    prospects = [_rated(1, "Beta", "good"), _rated(2, "Gamma", score=90)]

    assert build_learning_query(prospects, ICP_FIXTURE) == "companies similar to Beta, Gamma in Fintech or Insurance"


def test_query_falls_back_to_icp_profile():
    prospects = [_rated(1, "Delta", score=20)]

    query = build_learning_query(prospects, ICP_FIXTURE)

    assert query == icp_fallback_query(ICP_FIXTURE)
    assert query == "Fintech companies United Kingdom Claims processing"
    assert exemplar_names(prospects) == []
