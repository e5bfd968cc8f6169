"""Validated request payloads for the discovery pipelines and prospect routes."""

from __future__ import annotations

import re

from pydantic import Field, field_validator, model_validator

from app.models.base import WireModel
from app.models.icp import ICP, Customer
from app.models.prospect import RatedProspect

_WEBSITE_PATTERN = re.compile(
    r"^(www\.)?[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(\.[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*\.[a-zA-Z]{2,}$"
)


def _require_confirmed(icp: ICP | None) -> ICP | None:
    if icp is not None and not icp.is_confirmed:
        raise ValueError("ICP must list at least one industry, workflow and buyer role")
    return icp


class AnalyseRequest(WireModel):
    """Seed-expansion request."""

    website_url: str = Field(min_length=1)
    customers: list[Customer] = Field(min_length=1)
    icp: ICP | None = None
    batch_size: int | None = Field(default=None, ge=1, le=100)

    @field_validator("website_url")
    @classmethod
    def _validate_website(cls, value: str) -> str:
        bare = re.sub(r"^https?://", "", value.strip()).rstrip("/")
        if not _WEBSITE_PATTERN.match(bare):
            raise ValueError(
                "Please enter a valid website URL (e.g., example.com, www.example.com, or https://example.com)"
            )
        return value.strip()

    @field_validator("icp")
    @classmethod
    def _validate_icp(cls, value: ICP | None) -> ICP | None:
        return _require_confirmed(value)


class GenerateMoreRequest(WireModel):
    """Learning-loop request driven by already-rated prospects."""

    batch_size: int = Field(ge=1, le=100)
    max_total_prospects: int | None = Field(default=None, ge=10, le=500)
    icp: ICP
    existing_prospects: list[RatedProspect] = Field(default_factory=list)

    @field_validator("icp")
    @classmethod
    def _validate_icp(cls, value: ICP) -> ICP:
        return _require_confirmed(value)


class CompetitorsRequest(WireModel):
    """Competitor-discovery request for a single named company."""

    company_name: str = Field(min_length=1)
    company_domain: str = Field(min_length=1)
    icp: ICP
    existing_prospects: list[RatedProspect] = Field(default_factory=list)
    batch_size: int = Field(default=10, ge=1, le=15)


class ImportedProspect(WireModel):
    name: str = Field(min_length=1)
    domain: str = Field(min_length=1)
    source_customer_domain: str | None = None
    confidence: int | None = Field(default=None, ge=0, le=100)
    icp_score: int | None = Field(default=None, ge=0, le=100)


class BulkImportRequest(WireModel):
    """Either structured prospects or pasted markdown-table / CSV text."""

    prospects: list[ImportedProspect] = Field(default_factory=list)
    text: str | None = None

    @model_validator(mode="after")
    def _require_rows(self) -> BulkImportRequest:
        if not self.prospects and not (self.text or "").strip():
            raise ValueError("Provide prospects or table text to import")
        return self
