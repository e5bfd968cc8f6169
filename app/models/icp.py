"""Ideal Customer Profile and seed customer models."""

from __future__ import annotations

from pydantic import Field, field_validator

from app.models.base import WireModel


def _clean_terms(values: list[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        term = (value or "").strip()
        if not term or term.lower() in seen:
            continue
        seen.add(term.lower())
        ordered.append(term)
    return ordered


class Firmographics(WireModel):
    size: str = ""
    geo: str = ""


class ICP(WireModel):
    """The profile every candidate is scored against. Immutable for the duration of a run."""

    solution: str = ""
    workflows: list[str] = Field(default_factory=list)
    industries: list[str] = Field(default_factory=list)
    buyer_roles: list[str] = Field(default_factory=list)
    firmographics: Firmographics = Field(default_factory=Firmographics)

    model_config = {"frozen": True}

    @field_validator("workflows", "industries", "buyer_roles")
    @classmethod
    def _normalize_terms(cls, values: list[str]) -> list[str]:
        return _clean_terms(values)

    @property
    def is_confirmed(self) -> bool:
        """An ICP is usable once industries, workflows and buyer roles are all present."""
        return bool(self.industries and self.workflows and self.buyer_roles)

    @property
    def primary_industry(self) -> str:
        return self.industries[0] if self.industries else ""

    @property
    def primary_workflow(self) -> str:
        return self.workflows[0] if self.workflows else ""


class Customer(WireModel):
    """A known customer used to seed look-alike expansion."""

    name: str = Field(min_length=1)
    domain: str = Field(min_length=1)
    notes: str | None = None
