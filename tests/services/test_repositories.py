import asyncio

import pytest

from app.core import database
from app.models.prospect import Ad, Cluster, ClusterCriteria, Company, Evidence
from app.services.repositories import (
    DuplicateDomainError,
    InMemoryProspectRepository,
    SQLModelProspectRepository,
)


def _company(domain: str) -> Company:
    return Company(
        name=domain.split(".")[0].title(),
        domain=domain,
        source_customer_domain="seed.com",
        icp_score=81,
        confidence=77,
        rationale="SaaS billing",
        evidence=[Evidence(url=f"https://{domain}", snippet="home")],
    )


def _cluster(company_ids: list[int]) -> Cluster:
    return Cluster(
        key="high-saas",
        label="High Saas",
        criteria=ClusterCriteria(
            avg_icp_score=81,
            avg_confidence=77,
            dominant_industry="SaaS",
            dominant_workflow="Billing",
            company_count=len(company_ids),
        ),
        company_ids=company_ids,
    )


async def _exercise(repository) -> None:
    first = await repository.insert_company("owner-a", _company("acme.com"))
    second = await repository.insert_company("owner-a", _company("globex.io"))
    assert first.id is not None and second.id is not None and first.id != second.id

    with pytest.raises(DuplicateDomainError) as excinfo:
        await repository.insert_company("owner-a", _company("acme.com"))
    assert excinfo.value.code == "409_DUPLICATE_DOMAIN"

    other_owner = await repository.insert_company("owner-b", _company("acme.com"))
    assert other_owner.domain == "acme.com"

    assert sorted(await repository.list_domains("owner-a")) == ["acme.com", "globex.io"]
    companies = await repository.list_companies("owner-a")
    assert [c.domain for c in companies] == ["acme.com", "globex.io"]
    assert companies[0].evidence[0].url == "https://acme.com"
    assert companies[0].status.value == "New"

    cluster = await repository.insert_cluster("owner-a", _cluster([first.id, second.id]))
    assert cluster.id is not None
    assert cluster.key == "high-saas"
    assert cluster.company_ids == [first.id, second.id]

    ad = await repository.insert_ad(Ad(cluster_id=cluster.id, headline="H", lines=["a", "b"], cta="Go"))
    assert ad.id is not None
    assert ad.lines == ["a", "b"]


def test_in_memory_repository_contract():
    asyncio.run(_exercise(InMemoryProspectRepository()))


def test_sqlmodel_repository_contract(tmp_path):
    async def _run() -> None:
        await database.init_database(f"sqlite+aiosqlite:///{tmp_path / 'prospects.db'}")
        try:
            await database.create_schema()
            await _exercise(SQLModelProspectRepository(database.async_session))
        finally:
            await database.close_database()

    asyncio.run(_run())
