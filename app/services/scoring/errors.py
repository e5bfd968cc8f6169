"""Shared error classes for fit scoring and the LLM client."""

from __future__ import annotations


class ScoringEngineError(RuntimeError):
    """Base exception raised by the fit scorer and its LLM collaborator."""

    def __init__(self, message: str, code: str = "SCORING_ENGINE_ERROR") -> None:
        super().__init__(message)
        self.code = code


class ScoringProviderError(ScoringEngineError):
    """Raised when an upstream AI provider fails."""


class ScoringValidationError(ScoringEngineError):
    """Raised when a model response cannot be parsed safely."""
