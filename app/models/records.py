"""SQLModel mappings for stored prospects, clusters and ads."""
# ruff: noqa: UP017

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import sqlalchemy as sa
from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql import expression
from sqlmodel import Field, SQLModel

from app.models.prospect import (
    Ad,
    Cluster,
    ClusterCriteria,
    Company,
    Evidence,
    ProspectSource,
    ProspectStatus,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


JSON_BACKING_TYPE = sa.JSON().with_variant(JSONB(astext_type=sa.Text()), "postgresql")


class UtcNow(expression.FunctionElement):
    """Dialect-aware server default that pins timestamps to UTC."""

    type = DateTime(timezone=True)
    inherit_cache = True


@compiles(UtcNow)
def _utc_now_default(element, compiler, **kwargs) -> str:  # pragma: no cover - trivial sql generator
    return "CURRENT_TIMESTAMP"


@compiles(UtcNow, "postgresql")
def _utc_now_default_postgres(
    element, compiler, **kwargs
) -> str:  # pragma: no cover - trivial sql generator
    return "timezone('utc', now())"


class CompanyRecord(SQLModel, table=True):
    """ORM row for a prospect; one row per (owner, domain)."""

    __tablename__ = "companies"
    __table_args__ = (
        sa.UniqueConstraint("owner_id", "domain", name="uq_companies_owner_domain"),
        sa.Index("ix_companies_owner_id", "owner_id"),
    )

    id: int | None = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True),
    )
    owner_id: str = Field(sa_column=Column(String(length=255), nullable=False))
    name: str = Field(sa_column=Column(String(length=512), nullable=False))
    domain: str = Field(sa_column=Column(String(length=255), nullable=False))
    source: str = Field(sa_column=Column(String(length=32), nullable=False))
    source_customer_domain: str | None = Field(
        default=None,
        sa_column=Column(String(length=255), nullable=True),
    )
    icp_score: int = Field(sa_column=Column(Integer, nullable=False))
    confidence: int = Field(sa_column=Column(Integer, nullable=False))
    status: str = Field(sa_column=Column(String(length=32), nullable=False))
    rationale: str = Field(default="", sa_column=Column(Text, nullable=False))
    evidence: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON_BACKING_TYPE, nullable=False),
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=UtcNow()),
    )

    @classmethod
    def from_company(cls, owner_id: str, company: Company) -> CompanyRecord:
        return cls(
            owner_id=owner_id,
            name=company.name,
            domain=company.domain,
            source=company.source.value,
            source_customer_domain=company.source_customer_domain,
            icp_score=company.icp_score,
            confidence=company.confidence,
            status=company.status.value,
            rationale=company.rationale,
            evidence=[item.model_dump(mode="json") for item in company.evidence],
        )

    def to_company(self) -> Company:
        return Company(
            id=self.id,
            name=self.name,
            domain=self.domain,
            source=ProspectSource(self.source),
            source_customer_domain=self.source_customer_domain,
            icp_score=self.icp_score,
            confidence=self.confidence,
            status=ProspectStatus(self.status),
            rationale=self.rationale,
            evidence=[Evidence(**entry) for entry in self.evidence],
        )


class ClusterRecord(SQLModel, table=True):
    __tablename__ = "clusters"
    __table_args__ = (sa.Index("ix_clusters_owner_id", "owner_id"),)

    id: int | None = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True),
    )
    owner_id: str = Field(sa_column=Column(String(length=255), nullable=False))
    label: str = Field(sa_column=Column(String(length=255), nullable=False))
    criteria: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON_BACKING_TYPE, nullable=False),
    )
    company_ids: list[int] = Field(
        default_factory=list,
        sa_column=Column(JSON_BACKING_TYPE, nullable=False),
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=UtcNow()),
    )

    @classmethod
    def from_cluster(cls, owner_id: str, cluster: Cluster) -> ClusterRecord:
        return cls(
            owner_id=owner_id,
            label=cluster.label,
            criteria=cluster.criteria.model_dump(mode="json"),
            company_ids=list(cluster.company_ids),
        )

    def to_cluster(self, key: str = "") -> Cluster:
        return Cluster(
            id=self.id,
            key=key,
            label=self.label,
            criteria=ClusterCriteria(**self.criteria),
            company_ids=list(self.company_ids),
        )


class AdRecord(SQLModel, table=True):
    __tablename__ = "ads"
    __table_args__ = (sa.Index("ix_ads_cluster_id", "cluster_id"),)

    id: int | None = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True),
    )
    cluster_id: int = Field(sa_column=Column(Integer, nullable=False))
    headline: str = Field(sa_column=Column(String(length=512), nullable=False))
    lines: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON_BACKING_TYPE, nullable=False),
    )
    cta: str = Field(sa_column=Column(String(length=255), nullable=False))
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=UtcNow()),
    )

    @classmethod
    def from_ad(cls, ad: Ad) -> AdRecord:
        return cls(cluster_id=ad.cluster_id, headline=ad.headline, lines=list(ad.lines), cta=ad.cta)

    def to_ad(self) -> Ad:
        return Ad(
            id=self.id,
            cluster_id=self.cluster_id,
            headline=self.headline,
            lines=list(self.lines),
            cta=self.cta,
        )
