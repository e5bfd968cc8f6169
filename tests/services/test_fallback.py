from app.models.icp import ICP
from app.services.scoring.fallback import fallback_icp_score
from app.services.scoring.policy import ScoringPolicy

ICP_FIXTURE = ICP(industries=["Fintech"], workflows=["Reconciliation"], buyer_roles=["Controller"])


def test_all_terms_matched_plus_confidence_bonus():
    rationale = "Fintech platform automating reconciliation for the controller"

    assert fallback_icp_score(rationale, 85, ICP_FIXTURE, ScoringPolicy()) == 98


def test_partial_match_scores_only_matched_weights():
    assert fallback_icp_score("A fintech lender", 40, ICP_FIXTURE, ScoringPolicy()) == 44


def test_no_match_scores_confidence_bonus_only():
    assert fallback_icp_score("Bakery chain", 99, ICP_FIXTURE, ScoringPolicy()) == 9


def test_score_is_capped():
    policy = ScoringPolicy(fallback_score_cap=90)
    rationale = "fintech reconciliation controller"

    assert fallback_icp_score(rationale, 100, ICP_FIXTURE, policy) == 90


def test_band_prefix_boundaries():
    policy = ScoringPolicy()

    assert policy.band_prefix(80) == "high-"
    assert policy.band_prefix(79) == "medium-"
    assert policy.band_prefix(60) == "medium-"
    assert policy.band_prefix(59) == "low-"
