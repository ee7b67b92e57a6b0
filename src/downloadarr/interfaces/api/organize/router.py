"""Manual-resolution surface for the organize queue."""

from __future__ import annotations

from typing import cast

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from downloadarr.domain.entities.errors import ValidationError, ValidationErrorKind
from downloadarr.domain.entities.organize import OrganizeOverrides, OrganizeStatus
from downloadarr.domain.entities.preferences import ContentType
from downloadarr.interfaces.api.serializers import queue_item_to_dict, stats_to_dict
from downloadarr.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/organize", tags=["organize"])


class ProcessBody(BaseModel):
    title: str | None = None
    year: int | None = None
    season: int | None = None
    platform: str | None = None


@router.get("/queue")
async def list_queue(
    request: Request,
    status: list[str] | None = Query(default=None),
    content_type: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> JSONResponse:
    """Actionable items (PENDING, PROCESSING, FAILED) unless *status* is given."""
    state = cast(AppState, request.app.state)
    try:
        statuses = [OrganizeStatus(s.strip().upper()) for s in status] if status else None
        kind = ContentType.parse(content_type) if content_type else None
    except ValueError as e:
        raise ValidationError(ValidationErrorKind.INVALID_VALUE, str(e)) from e

    items, total = await state.organize_queue.list_queue(
        status=statuses, content_type=kind, limit=limit, offset=offset
    )
    return JSONResponse(
        content={
            "items": [queue_item_to_dict(i) for i in items],
            "total": total,
            "limit": limit,
            "offset": offset,
        }
    )


@router.get("/queue/stats")
async def queue_stats(request: Request) -> JSONResponse:
    state = cast(AppState, request.app.state)
    return JSONResponse(content=stats_to_dict(await state.organize_queue.stats()))


@router.post("/queue/{item_id}/process")
async def process_item(
    item_id: str, request: Request, body: ProcessBody | None = None
) -> JSONResponse:
    state = cast(AppState, request.app.state)
    overrides = OrganizeOverrides(**body.model_dump()) if body else None
    item = await state.organize_queue.process(item_id, overrides)
    return JSONResponse(content=queue_item_to_dict(item))


@router.post("/queue/{item_id}/skip")
async def skip_item(item_id: str, request: Request) -> JSONResponse:
    state = cast(AppState, request.app.state)
    return JSONResponse(
        content=queue_item_to_dict(await state.organize_queue.skip(item_id))
    )


@router.delete("/queue/{item_id}", status_code=204)
async def delete_item(item_id: str, request: Request) -> Response:
    state = cast(AppState, request.app.state)
    await state.organize_queue.delete(item_id)
    return Response(status_code=204)


@router.post("/scan")
async def scan(request: Request) -> JSONResponse:
    """Walk the download directories now and queue unmatched folders."""
    state = cast(AppState, request.app.state)
    handed = await state.reverse_indexer.scan()
    log.info("manual_scan_done", handed=handed)
    return JSONResponse(content={"scanned": handed})
