"""Raid history for a profile's building."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from raidcity.db.models import Raid, RaidTag
from raidcity.raids.eligibility import get_profile_by_login
from raidcity.raids.errors import TargetNotFound
from raidcity.raids.windows import utc_now


def _as_utc(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


async def get_raid_history(
    db: AsyncSession,
    login: str,
    limit: int = 20,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Recent raids involving ``login`` (either side) plus its active tag, if any."""
    if now is None:
        now = utc_now()

    profile = await get_profile_by_login(db, login)
    if profile is None:
        raise TargetNotFound

    involved = or_(Raid.attacker_id == profile.id, Raid.defender_id == profile.id)
    total = (await db.execute(select(func.count(Raid.id)).where(involved))).scalar_one()
    result = await db.execute(
        select(Raid).where(involved).order_by(Raid.created_at.desc()).limit(limit)
    )
    raids = [
        {
            "id": r.id,
            "attacker_login": r.attacker.login,
            "defender_login": r.defender.login,
            "success": r.success,
            "created_at": _as_utc(r.created_at),
        }
        for r in result.unique().scalars()
    ]

    tag_result = await db.execute(
        select(RaidTag).where(RaidTag.building_id == profile.id, RaidTag.active.is_(True))
    )
    tag = tag_result.scalar_one_or_none()
    active_tag = None
    if tag is not None and _as_utc(tag.expires_at) > now:
        active_tag = {
            "attacker_login": tag.attacker_login,
            "tag_style": tag.tag_style,
            "expires_at": _as_utc(tag.expires_at),
        }

    return {"raids": raids, "total": total, "active_tag": active_tag}
