"""Async OpenAI wrapper that returns parsed JSON objects."""

from __future__ import annotations

import json
import logging
from typing import Any

from openai import APIError as OpenAIAPIError
from openai import AsyncOpenAI
from openai import OpenAIError as OpenAIBaseError

from app.config import settings
from app.services.scoring.errors import ScoringProviderError, ScoringValidationError

logger = logging.getLogger(__name__)


class OpenAIJSONClient:
    """Thin wrapper around chat completions in JSON mode."""

    is_live = True

    def __init__(
        self,
        api_key: str,
        *,
        model: str | None = None,
        temperature: float | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        if not api_key and client is None:
            raise ValueError("OPENAI_API_KEY is required to call OpenAI in online mode.")
        self._client = client or AsyncOpenAI(api_key=api_key)
        self._model = model or settings.llm_model
        self._temperature = settings.llm_temperature if temperature is None else temperature

    async def complete_json(self, *, system_prompt: str, user_prompt: str) -> Any:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                temperature=self._temperature,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except OpenAIAPIError as exc:
            code = "429_RATE_LIMIT" if getattr(exc, "status_code", 500) == 429 else "502_OPENAI_UPSTREAM"
            message = getattr(exc, "message", str(exc))
            raise ScoringProviderError(f"OpenAI request failed: {message}", code=code) from exc
        except OpenAIBaseError as exc:
            message = getattr(exc, "message", str(exc))
            raise ScoringProviderError(
                f"OpenAI request failed: {message}", code="502_OPENAI_UPSTREAM"
            ) from exc

        text = _extract_response_text(response)
        try:
            return parse_json_payload(text)
        except ValueError as exc:
            logger.error("openai.parse_error", extra={"model": self._model})
            raise ScoringValidationError(
                "Model response was not valid JSON.", code="502_OPENAI_UPSTREAM"
            ) from exc


def _extract_response_text(response: Any) -> str:
    """Normalize chat completion payloads across SDK versions."""
    choices = getattr(response, "choices", None) or []
    if choices:
        content = getattr(choices[0].message, "content", "")
        if isinstance(content, list):
            return "".join(part.get("text", "") for part in content if isinstance(part, dict)).strip()
        if isinstance(content, str) and content.strip():
            return content.strip()
    raise ScoringProviderError(
        "OpenAI response did not include text output.",
        code="502_OPENAI_UPSTREAM",
    )


def parse_json_payload(raw_text: str) -> Any:
    """Best-effort JSON decoding that tolerates code fences or prose."""
    candidate = raw_text.strip()
    if candidate.startswith("```"):
        candidate = "\n".join(
            line for line in candidate.splitlines() if not line.strip().startswith("```")
        ).strip()
    if (candidate.startswith("{") and candidate.endswith("}")) or (
        candidate.startswith("[") and candidate.endswith("]")
    ):
        return json.loads(candidate)
    start = candidate.find("{")
    end = candidate.rfind("}")
    if start != -1 and end != -1 and end > start:
        return json.loads(candidate[start : end + 1])
    raise ValueError("Response did not contain JSON object.")
