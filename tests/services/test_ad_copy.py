import asyncio

import pytest

from app.models.icp import ICP
from app.models.prospect import Cluster, ClusterCriteria
from app.services.ad_copy import AdCopyGenerator, AdCopyValidationError

ICP_FIXTURE = ICP(industries=["Fintech"], workflows=["Reconciliation"], buyer_roles=["CFO", "Controller"])

CLUSTER = Cluster(
    id=1,
    key="high-fintech",
    label="High Fintech",
    criteria=ClusterCriteria(
        avg_icp_score=85,
        avg_confidence=80,
        dominant_industry="Fintech",
        dominant_workflow="Reconciliation",
        company_count=2,
    ),
    company_ids=[1, 2],
)


class StubCopyStrategy:
    def __init__(self, payload):
        self.payload = payload
        self.arguments = None

    async def generate_ad_copy(self, industry, workflow, buyer_roles):
        self.arguments = (industry, workflow, list(buyer_roles))
        return self.payload


def test_generate_passes_cluster_criteria_and_validates_shape():
    strategy = StubCopyStrategy({"headline": "Close faster", "lines": ["One", "Two"], "cta": "Try it"})

    copy = asyncio.run(AdCopyGenerator(strategy).generate(CLUSTER, ICP_FIXTURE))

    assert copy.lines == ["One", "Two"]
    assert strategy.arguments == ("Fintech", "Reconciliation", ["CFO", "Controller"])


@pytest.mark.parametrize(
    "payload",
    [
        {"headline": "H", "lines": ["only one"], "cta": "Go"},
        {"headline": "H", "lines": ["a", "b", "c"], "cta": "Go"},
        {"headline": "", "lines": ["a", "b"], "cta": "Go"},
        {"headline": "H", "lines": ["a", "   "], "cta": "Go"},
        {"lines": ["a", "b"], "cta": "Go"},
    ],
)
def test_malformed_copy_is_rejected(payload):
    with pytest.raises(AdCopyValidationError) as excinfo:
        asyncio.run(AdCopyGenerator(StubCopyStrategy(payload)).generate(CLUSTER, ICP_FIXTURE))

    assert excinfo.value.code == "422_INVALID_AD_COPY"
