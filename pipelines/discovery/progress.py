"""Progress stream: a lazy, single-use sequence of progress events for one pipeline run."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncGenerator, AsyncIterator

from pydantic import ValidationError

from app.models.progress import ProgressEvent, RunResult, RunState
from app.observability.metrics import metrics

logger = logging.getLogger("pipelines.discovery.progress")

RunBody = AsyncGenerator["str | RunResult", None]


def format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return ", ".join(parts) or "Invalid request"


class ProgressStream:
    """Wraps an orchestrator body and turns what it yields into `ProgressEvent`s.

    The body yields progress strings and finally a `RunResult`. Exactly one
    terminal event is produced; the body is closed as soon as it is emitted, or
    when the consumer stops iterating.
    """

    def __init__(self, body: RunBody, *, pipeline: str = "expansion") -> None:
        self._body = body
        self._pipeline = pipeline
        self._consumed = False
        self.state = RunState.IDLE

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        if self._consumed:
            raise RuntimeError("Progress stream has already been consumed.")
        self._consumed = True
        return self._events()

    async def collect(self) -> list[ProgressEvent]:
        return [event async for event in self]

    async def _events(self) -> AsyncIterator[ProgressEvent]:
        self.state = RunState.RUNNING
        tags = {"pipeline": self._pipeline}
        try:
            try:
                async for item in self._body:
                    if isinstance(item, RunResult):
                        self.state = RunState.COMPLETED
                        metrics.increment("pipeline.runs_completed", tags=tags)
                        yield ProgressEvent.completed(item)
                        return
                    yield ProgressEvent.progress(str(item))
            except ValidationError as exc:
                error = format_validation_error(exc)
            except Exception as exc:
                logger.exception("pipeline.run.failed", extra={"pipeline": self._pipeline})
                error = str(exc) or type(exc).__name__
            else:
                error = "Run ended without a result."
            self.state = RunState.FAILED
            metrics.increment("pipeline.runs_failed", tags=tags)
            yield ProgressEvent.failed(error)
        finally:
            await self._body.aclose()


def encode_ndjson(event: ProgressEvent) -> str:
    return json.dumps(event.to_wire()) + "\n"


def encode_sse(event: ProgressEvent) -> str:
    return f"data: {json.dumps(event.to_wire())}\n\n"
