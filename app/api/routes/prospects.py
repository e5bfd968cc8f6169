from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from fastapi import APIRouter, Body, Depends, Header, HTTPException, status
from fastapi.responses import Response, StreamingResponse

from app.models.progress import ProgressEvent
from app.models.requests import BulkImportRequest
from app.services.prospect_io import ImportFormatError, export_csv, import_prospects, parse_prospects
from app.services.repositories import PersistenceError, ProspectRepository, get_prospect_repository
from pipelines.discovery.competitors import run_competitors
from pipelines.discovery.expansion import run_expansion
from pipelines.discovery.generate_more import run_generate_more
from pipelines.discovery.progress import ProgressStream, encode_sse
from pipelines.discovery.runtime import Collaborators, ModeError, build_collaborators

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_OWNER_ID = "anonymous"
SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}

RunFactory = Callable[..., ProgressStream]


def get_owner_id(x_owner_id: str | None = Header(default=None)) -> str:
    owner = (x_owner_id or "").strip()
    return owner or DEFAULT_OWNER_ID


def _map_error_code(code: str | None) -> int:
    if not code:
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    if code.startswith("409"):
        return status.HTTP_409_CONFLICT
    if code.startswith("422"):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    if code.startswith("429"):
        return status.HTTP_429_TOO_MANY_REQUESTS
    if code.startswith("502"):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def _error_frames(message: str) -> AsyncIterator[str]:
    yield encode_sse(ProgressEvent.failed(message))


async def _stream_frames(stream: ProgressStream, collaborators: Collaborators) -> AsyncIterator[str]:
    try:
        async for event in stream:
            yield encode_sse(event)
    finally:
        await collaborators.aclose()


def _stream_response(
    run: RunFactory,
    payload: dict[str, Any],
    repository: ProspectRepository,
    owner_id: str,
) -> StreamingResponse:
    try:
        collaborators = build_collaborators(repository=repository)
    except ModeError as exc:
        logger.error("prospects.stream.mode_error", extra={"code": exc.code, "owner_id": owner_id})
        return StreamingResponse(_error_frames(str(exc)), media_type="text/event-stream", headers=SSE_HEADERS)
    stream = run(payload, collaborators, owner_id=owner_id)
    return StreamingResponse(
        _stream_frames(stream, collaborators),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/analyse")
async def analyse(
    payload: dict[str, Any] = Body(...),
    owner_id: str = Depends(get_owner_id),
    repository: ProspectRepository = Depends(get_prospect_repository),
) -> StreamingResponse:
    """Stream a seed-expansion run as server-sent events."""
    return _stream_response(run_expansion, payload, repository, owner_id)


@router.post("/generate-more")
async def generate_more(
    payload: dict[str, Any] = Body(...),
    owner_id: str = Depends(get_owner_id),
    repository: ProspectRepository = Depends(get_prospect_repository),
) -> StreamingResponse:
    return _stream_response(run_generate_more, payload, repository, owner_id)


@router.post("/company/competitors")
async def company_competitors(
    payload: dict[str, Any] = Body(...),
    owner_id: str = Depends(get_owner_id),
    repository: ProspectRepository = Depends(get_prospect_repository),
) -> StreamingResponse:
    return _stream_response(run_competitors, payload, repository, owner_id)


@router.post("/prospects/bulk-import")
async def bulk_import(
    request: BulkImportRequest,
    owner_id: str = Depends(get_owner_id),
    repository: ProspectRepository = Depends(get_prospect_repository),
):
    """Import prospects given as JSON rows or pasted markdown-table / CSV text."""
    prospects = list(request.prospects)
    if request.text:
        try:
            prospects.extend(parse_prospects(request.text))
        except ImportFormatError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    try:
        report = await import_prospects(repository, owner_id, prospects)
    except PersistenceError as exc:
        raise HTTPException(
            status_code=_map_error_code(exc.code),
            detail={"code": exc.code, "message": str(exc)},
        ) from exc
    return report.to_wire()


@router.get("/prospects")
async def list_prospects(
    owner_id: str = Depends(get_owner_id),
    repository: ProspectRepository = Depends(get_prospect_repository),
):
    try:
        companies = await repository.list_companies(owner_id)
    except PersistenceError as exc:
        raise HTTPException(
            status_code=_map_error_code(exc.code),
            detail={"code": exc.code, "message": str(exc)},
        ) from exc
    return {"prospects": [company.to_wire() for company in companies]}


@router.get("/prospects/export.csv")
async def export_prospects(
    owner_id: str = Depends(get_owner_id),
    repository: ProspectRepository = Depends(get_prospect_repository),
) -> Response:
    try:
        companies = await repository.list_companies(owner_id)
    except PersistenceError as exc:
        raise HTTPException(
            status_code=_map_error_code(exc.code),
            detail={"code": exc.code, "message": str(exc)},
        ) from exc
    return Response(
        content=export_csv(companies),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="prospects.csv"'},
    )
