"""Raid API endpoints: 4 routes.

Preview (1), Execute (1), Loadout (1), History (1).
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from raidcity.auth.dependencies import get_caller_login
from raidcity.database import get_session
from raidcity.raids.catalog import save_loadout
from raidcity.raids.eligibility import build_preview, get_profile_by_login
from raidcity.raids.errors import ProfileNotClaimed, ValidationError
from raidcity.raids.execution import execute_raid
from raidcity.raids.history import get_raid_history
from raidcity.raids.rate_limiter import RateLimiter, get_rate_limiter
from raidcity.raids.schemas import (
    Err,
    ExecuteRequest,
    LoadoutRequest,
    LoadoutResponse,
    PreviewRequest,
    RaidExecuteResponse,
    RaidHistoryResponse,
    RaidPreviewResponse,
    parse_body,
)

router = APIRouter(prefix="/api/v1/raid", tags=["Raids"])


async def _read_json(request: Request) -> Any:  # noqa: ANN401
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("Request body must be valid JSON") from e


@router.post("/preview", response_model=RaidPreviewResponse)
async def preview_raid_endpoint(
    request: Request,
    login: str = Depends(get_caller_login),
    db: AsyncSession = Depends(get_session),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Check eligibility and show both scores. Read-only."""
    parsed = parse_body(PreviewRequest, await _read_json(request))
    if isinstance(parsed, Err):
        raise ValidationError(parsed.reason)

    preview = await build_preview(db, limiter, login, parsed.value.target_login)
    return RaidPreviewResponse(**preview)


@router.post("/execute", response_model=RaidExecuteResponse)
async def execute_raid_endpoint(
    request: Request,
    login: str = Depends(get_caller_login),
    db: AsyncSession = Depends(get_session),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Re-run the gate, resolve the raid, and grant rewards."""
    parsed = parse_body(ExecuteRequest, await _read_json(request))
    if isinstance(parsed, Err):
        raise ValidationError(parsed.reason)

    body = parsed.value
    result = await execute_raid(
        db,
        limiter,
        login,
        body.target_login,
        boost_purchase_id=body.boost_purchase_id,
        vehicle_id=body.vehicle_id,
    )
    return RaidExecuteResponse(**result)


@router.put("/loadout", response_model=LoadoutResponse)
async def save_loadout_endpoint(
    request: Request,
    login: str = Depends(get_caller_login),
    db: AsyncSession = Depends(get_session),
):
    """Save the caller's preferred raid vehicle and tag style."""
    parsed = parse_body(LoadoutRequest, await _read_json(request))
    if isinstance(parsed, Err):
        raise ValidationError(parsed.reason)

    profile = await get_profile_by_login(db, login)
    if profile is None or not profile.claimed:
        raise ProfileNotClaimed

    try:
        loadout = await save_loadout(db, profile.id, parsed.value.vehicle, parsed.value.tag_style)
        await db.commit()
    except ValueError as e:
        await db.rollback()
        raise ValidationError(str(e)) from e

    return LoadoutResponse(vehicle=loadout.vehicle, tag_style=loadout.tag_style)


@router.get("/history/{login}", response_model=RaidHistoryResponse)
async def raid_history_endpoint(
    login: str,
    limit: int = Query(20, ge=1, le=50),
    db: AsyncSession = Depends(get_session),
):
    """Recent raids on or by a building, plus its active tag (public)."""
    history = await get_raid_history(db, login, limit=limit)
    return RaidHistoryResponse(**history)
