"""Preferences endpoints: read and partially update the stored record."""

from __future__ import annotations

from typing import Any, cast

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse

from downloadarr.interfaces.app_state import AppState

router = APIRouter(prefix="/preferences", tags=["preferences"])


@router.get("")
async def get_preferences(request: Request) -> JSONResponse:
    state = cast(AppState, request.app.state)
    prefs = await state.preferences.get()
    return JSONResponse(content=prefs.to_dict())


@router.put("")
async def update_preferences(
    request: Request,
    patch: dict[str, Any] = Body(..., description="Fields to change."),
) -> JSONResponse:
    """Partial merge; fields not in the body are kept as stored."""
    state = cast(AppState, request.app.state)
    prefs = await state.preferences.update(patch)
    return JSONResponse(content=prefs.to_dict())
