"""Persistence backends for prospects, clusters and ads."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core import database
from app.models.prospect import Ad, Cluster, Company
from app.models.records import AdRecord, ClusterRecord, CompanyRecord
from app.observability.metrics import metrics

logger = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """Raised when the store fails to save or load records."""

    def __init__(self, message: str, code: str = "500_INTERNAL") -> None:
        super().__init__(message)
        self.code = code


class DuplicateDomainError(PersistenceError):
    """Raised when an owner already has a prospect with the same domain."""

    def __init__(self, domain: str) -> None:
        super().__init__(f"Prospect with domain {domain} already exists.", code="409_DUPLICATE_DOMAIN")
        self.domain = domain


class ProspectRepository(Protocol):
    """Persistence contract for the discovery pipelines."""

    async def insert_company(self, owner_id: str, company: Company) -> Company:
        ...

    async def insert_cluster(self, owner_id: str, cluster: Cluster) -> Cluster:
        ...

    async def insert_ad(self, ad: Ad) -> Ad:
        ...

    async def list_domains(self, owner_id: str) -> list[str]:
        ...

    async def list_companies(self, owner_id: str) -> list[Company]:
        ...


class InMemoryProspectRepository:
    """Lock-protected repository used for fixture runs, local development and tests."""

    def __init__(self) -> None:
        self._companies: dict[str, dict[str, Company]] = {}
        self._clusters: dict[str, list[Cluster]] = {}
        self._ads: list[Ad] = []
        self._next_ids = {"company": 1, "cluster": 1, "ad": 1}
        self._lock = Lock()

    def _next_id(self, kind: str) -> int:
        value = self._next_ids[kind]
        self._next_ids[kind] = value + 1
        return value

    async def insert_company(self, owner_id: str, company: Company) -> Company:
        key = company.domain.strip().lower()
        with self._lock:
            owned = self._companies.setdefault(owner_id, {})
            if key in owned:
                metrics.increment("persistence.conflict", tags={"repository": "memory"})
                raise DuplicateDomainError(company.domain)
            stored = company.model_copy(update={"id": self._next_id("company")})
            owned[key] = stored
        metrics.increment("persistence.persisted", tags={"repository": "memory", "kind": "company"})
        logger.info(
            "persistence.company.persisted",
            extra={"owner_id": owner_id, "domain": stored.domain, "backend": "memory"},
        )
        return stored

    async def insert_cluster(self, owner_id: str, cluster: Cluster) -> Cluster:
        with self._lock:
            stored = cluster.model_copy(update={"id": self._next_id("cluster")})
            self._clusters.setdefault(owner_id, []).append(stored)
        return stored

    async def insert_ad(self, ad: Ad) -> Ad:
        with self._lock:
            stored = ad.model_copy(update={"id": self._next_id("ad")})
            self._ads.append(stored)
        return stored

    async def list_domains(self, owner_id: str) -> list[str]:
        with self._lock:
            return [company.domain for company in self._companies.get(owner_id, {}).values()]

    async def list_companies(self, owner_id: str) -> list[Company]:
        with self._lock:
            return list(self._companies.get(owner_id, {}).values())

    async def list_clusters(self, owner_id: str) -> list[Cluster]:
        with self._lock:
            return list(self._clusters.get(owner_id, []))

    async def list_ads(self) -> list[Ad]:
        with self._lock:
            return list(self._ads)


class SQLModelProspectRepository:
    """SQLModel-backed repository over an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, backend: str = "database") -> None:
        self._session_factory = session_factory
        self._metrics_tags = {"repository": backend}

    async def insert_company(self, owner_id: str, company: Company) -> Company:
        record = CompanyRecord.from_company(owner_id, company)
        async with self._session_factory() as session:
            try:
                session.add(record)
                await session.commit()
                await session.refresh(record)
            except IntegrityError as exc:
                await session.rollback()
                metrics.increment("persistence.conflict", tags=self._metrics_tags)
                logger.warning(
                    "persistence.company.conflict",
                    extra={"owner_id": owner_id, "domain": company.domain},
                )
                raise DuplicateDomainError(company.domain) from exc
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.exception(
                    "persistence.company.error",
                    extra={"owner_id": owner_id, "domain": company.domain},
                )
                raise PersistenceError("Failed to persist prospect.") from exc
        metrics.increment("persistence.persisted", tags={**self._metrics_tags, "kind": "company"})
        return record.to_company()

    async def insert_cluster(self, owner_id: str, cluster: Cluster) -> Cluster:
        record = ClusterRecord.from_cluster(owner_id, cluster)
        await self._save(record, "cluster")
        return record.to_cluster(key=cluster.key)

    async def insert_ad(self, ad: Ad) -> Ad:
        record = AdRecord.from_ad(ad)
        await self._save(record, "ad")
        return record.to_ad()

    async def list_domains(self, owner_id: str) -> list[str]:
        statement = select(CompanyRecord.domain).where(CompanyRecord.owner_id == owner_id)
        try:
            async with self._session_factory() as session:
                result = await session.execute(statement)
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            logger.exception("persistence.list.error", extra={"owner_id": owner_id})
            raise PersistenceError("Failed to list prospect domains.") from exc

    async def list_companies(self, owner_id: str) -> list[Company]:
        statement = (
            select(CompanyRecord)
            .where(CompanyRecord.owner_id == owner_id)
            .order_by(CompanyRecord.id)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(statement)
                return [record.to_company() for record in result.scalars().all()]
        except SQLAlchemyError as exc:
            logger.exception("persistence.list.error", extra={"owner_id": owner_id})
            raise PersistenceError("Failed to list prospects.") from exc

    async def _save(self, record: ClusterRecord | AdRecord, kind: str) -> None:
        async with self._session_factory() as session:
            try:
                session.add(record)
                await session.commit()
                await session.refresh(record)
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.exception("persistence.save.error", extra={"kind": kind})
                raise PersistenceError(f"Failed to persist {kind}.") from exc
        metrics.increment("persistence.persisted", tags={**self._metrics_tags, "kind": kind})


_REPOSITORY_INSTANCE: ProspectRepository | None = None


def build_prospect_repository() -> ProspectRepository:
    """Use the SQL store when a database is configured, memory otherwise."""
    if database.async_session is not None:
        logger.info("persistence.repository.initialized", extra={"backend": "database"})
        return SQLModelProspectRepository(database.async_session)
    logger.info("persistence.repository.initialized", extra={"backend": "memory"})
    return InMemoryProspectRepository()


def get_prospect_repository() -> ProspectRepository:
    """Singleton accessor used by API routes."""
    global _REPOSITORY_INSTANCE  # noqa: PLW0603
    if _REPOSITORY_INSTANCE is None:
        _REPOSITORY_INSTANCE = build_prospect_repository()
    return _REPOSITORY_INSTANCE


def reset_prospect_repository() -> None:
    global _REPOSITORY_INSTANCE  # noqa: PLW0603
    _REPOSITORY_INSTANCE = None
