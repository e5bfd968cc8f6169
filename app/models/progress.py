"""Run results and progress events emitted by the discovery pipelines."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import Field

from app.models.base import WireModel
from app.models.icp import ICP
from app.models.prospect import Ad, Cluster, Company


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RunSummary(WireModel):
    """Counters reported with every terminal result."""

    requested: int = 0
    produced: int = 0
    processed: int = 0
    skipped_duplicates: int = 0
    skipped_invalid: int = 0
    skipped_low_score: int = 0
    skipped_errors: int = 0
    fallback_scored: int = 0
    failed: int = 0

    @property
    def skipped(self) -> int:
        return (
            self.skipped_duplicates
            + self.skipped_invalid
            + self.skipped_low_score
            + self.skipped_errors
        )

    def to_wire(self) -> dict:
        payload = super().to_wire()
        payload["skipped"] = self.skipped
        return payload


class RunResult(WireModel):
    prospects: list[Company] = Field(default_factory=list)
    clusters: list[Cluster] = Field(default_factory=list)
    ads: list[Ad] = Field(default_factory=list)
    icp: ICP | None = None
    mock_data: bool = False
    summary: RunSummary = Field(default_factory=RunSummary)
    message: str = ""
    reached_limit: bool = False

    def to_wire(self) -> dict:
        payload = super().to_wire()
        payload["summary"] = self.summary.to_wire()
        return payload


class ProgressEvent(WireModel):
    """One frame of the progress protocol: a message, or exactly one terminal result/error."""

    message: str | None = None
    result: RunResult | None = None
    error: str | None = None

    @classmethod
    def progress(cls, message: str) -> ProgressEvent:
        return cls(message=message)

    @classmethod
    def completed(cls, result: RunResult) -> ProgressEvent:
        return cls(result=result)

    @classmethod
    def failed(cls, error: str) -> ProgressEvent:
        return cls(error=error)

    @property
    def is_terminal(self) -> bool:
        return self.result is not None or self.error is not None

    def to_wire(self) -> dict[str, Any]:
        if self.result is not None:
            return {"result": self.result.to_wire()}
        if self.error is not None:
            return {"error": self.error}
        return {"message": self.message or ""}
