"""Domain models for candidates, persisted prospects, clusters and ads."""

from __future__ import annotations

from enum import Enum

from pydantic import Field, field_validator

from app.models.base import WireModel


class ProspectSource(str, Enum):
    EXPANDED = "expanded"
    IMPORTED = "imported"


class ProspectStatus(str, Enum):
    NEW = "New"
    RESEARCHING = "Researching"
    CONTACTED = "Contacted"
    WON = "Won"
    LOST = "Lost"


class SearchResult(WireModel):
    """One ordered hit returned by the search collaborator."""

    title: str = ""
    snippet: str = ""
    url: str = ""


class Evidence(WireModel):
    """A proof point backing a fit decision."""

    url: str
    snippet: str | None = None


class Candidate(WireModel):
    """An in-memory prospect produced by expansion, before scoring."""

    name: str
    domain: str = ""
    rationale: str = ""
    evidence_urls: list[str] = Field(default_factory=list)
    confidence: int = 0

    @field_validator("domain", "rationale", mode="before")
    @classmethod
    def _blank_if_missing(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("evidence_urls", mode="before")
    @classmethod
    def _urls_if_missing(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: object) -> int:
        try:
            number = int(round(float(value)))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 0
        return max(0, min(100, number))


class FitAnalysis(WireModel):
    """Fit decision for one candidate. Raw values are clamped by the fit scorer."""

    rationale: str = ""
    confidence: int = 0
    evidence: list[Evidence] = Field(default_factory=list)
    icp_score: int = 0


class Company(WireModel):
    """A prospect that cleared scoring (or was imported) and lives in the store."""

    id: int | None = None
    name: str
    domain: str
    source: ProspectSource = ProspectSource.EXPANDED
    source_customer_domain: str | None = None
    icp_score: int = Field(ge=0, le=100)
    confidence: int = Field(ge=0, le=100)
    status: ProspectStatus = ProspectStatus.NEW
    rationale: str = ""
    evidence: list[Evidence] = Field(default_factory=list)


class ClusterCriteria(WireModel):
    avg_icp_score: int
    avg_confidence: int
    dominant_industry: str
    dominant_workflow: str
    company_count: int


class Cluster(WireModel):
    """A labeled group of prospects sharing a score band and dominant industry."""

    id: int | None = None
    key: str = ""
    label: str
    criteria: ClusterCriteria
    company_ids: list[int]


class AdCopy(WireModel):
    """Copy returned by the ad-copy collaborator; the two-line shape is a hard contract."""

    headline: str = Field(min_length=1)
    lines: list[str] = Field(min_length=2, max_length=2)
    cta: str = Field(min_length=1)


class Ad(WireModel):
    id: int | None = None
    cluster_id: int
    headline: str
    lines: list[str]
    cta: str


class RatedProspect(WireModel):
    """An existing prospect, optionally rated by the user, fed back into discovery."""

    id: int
    domain: str
    name: str
    quality: str | None = None
    icp_score: int = 0
    rationale: str | None = None
