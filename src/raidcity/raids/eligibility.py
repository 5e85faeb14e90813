"""Raid eligibility gate and preview.

Checks, in order (each a hard precondition):
1. Caller passes the per-caller sliding-window rate limit
2. Caller resolves to a claimed profile
3. Target profile exists
4. Caller is not the target
5. Fewer than MAX_RAIDS_PER_DAY raids since UTC midnight
6. No raid on this exact pair since the ISO week started

The execution service runs the same gate again; a preview is never trusted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from raidcity.db.models import Profile, Raid
from raidcity.raids.catalog import get_available_vehicles, get_owned_boosts, resolve_loadout
from raidcity.raids.constants import MAX_RAIDS_PER_DAY
from raidcity.raids.errors import (
    DailyLimitExceeded,
    ProfileNotClaimed,
    RateLimited,
    SelfTargetForbidden,
    TargetNotFound,
    WeeklyCooldownActive,
)
from raidcity.raids.rate_limiter import RateLimiter
from raidcity.raids.scoring import (
    AttackInputs,
    DefenseInputs,
    calculate_attack_score,
    calculate_defense_score,
    estimate_building_height,
    get_strength_estimate,
)
from raidcity.raids.windows import get_raid_day, get_week_iso, utc_now

logger = logging.getLogger(__name__)


@dataclass
class GateResult:
    """Profiles and counters established by a passing gate."""

    attacker: Profile
    defender: Profile
    raids_today: int
    now: datetime


def normalize_login(login: str) -> str:
    return login.strip().lower()


async def get_profile_by_login(db: AsyncSession, login: str, *, for_update: bool = False) -> Profile | None:
    """Fetch a profile by login. ``for_update`` row-locks it until the transaction ends."""
    stmt = select(Profile).where(Profile.login == normalize_login(login))
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def count_raids_today(db: AsyncSession, attacker_id: int, now: datetime) -> int:
    result = await db.execute(
        select(func.count(Raid.id)).where(
            Raid.attacker_id == attacker_id,
            Raid.raid_day == get_raid_day(now),
        )
    )
    return result.scalar_one()


async def count_pair_raids_this_week(db: AsyncSession, attacker_id: int, defender_id: int, now: datetime) -> int:
    result = await db.execute(
        select(func.count(Raid.id)).where(
            Raid.attacker_id == attacker_id,
            Raid.defender_id == defender_id,
            Raid.week_iso == get_week_iso(now),
        )
    )
    return result.scalar_one()


async def check_raid_eligibility(
    db: AsyncSession,
    limiter: RateLimiter,
    caller_login: str,
    target_login: str,
    *,
    rate_key: str,
    now: datetime | None = None,
    lock_attacker: bool = False,
) -> GateResult:
    """Run every gate check. Raises the matching RaidError on the first failure."""
    if now is None:
        now = utc_now()

    if not await limiter.check(f"{rate_key}:{normalize_login(caller_login)}"):
        raise RateLimited(retry_after=int(limiter.window_seconds))

    attacker = await get_profile_by_login(db, caller_login, for_update=lock_attacker)
    if attacker is None or not attacker.claimed:
        raise ProfileNotClaimed

    defender = await get_profile_by_login(db, target_login)
    if defender is None:
        raise TargetNotFound

    if attacker.id == defender.id:
        raise SelfTargetForbidden

    raids_today = await count_raids_today(db, attacker.id, now)
    if raids_today >= MAX_RAIDS_PER_DAY:
        raise DailyLimitExceeded

    if await count_pair_raids_this_week(db, attacker.id, defender.id, now) > 0:
        raise WeeklyCooldownActive

    return GateResult(attacker=attacker, defender=defender, raids_today=raids_today, now=now)


def attack_inputs_for(profile: Profile, boost_bonus: int | None = None) -> AttackInputs:
    return AttackInputs(
        weekly_contributions=profile.current_week_contributions or 0,
        app_streak=profile.app_streak or 0,
        weekly_kudos_given=profile.current_week_kudos_given or 0,
        boost_bonus=boost_bonus,
    )


def defense_inputs_for(profile: Profile) -> DefenseInputs:
    return DefenseInputs(
        weekly_contributions=profile.current_week_contributions or 0,
        app_streak=profile.app_streak or 0,
        weekly_kudos_received=profile.current_week_kudos_received or 0,
    )


async def build_preview(
    db: AsyncSession,
    limiter: RateLimiter,
    caller_login: str,
    target_login: str,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Read-only raid preview. Performs no writes."""
    gate = await check_raid_eligibility(
        db, limiter, caller_login, target_login, rate_key="raid-preview", now=now,
    )
    attacker, defender = gate.attacker, gate.defender

    attack = calculate_attack_score(attack_inputs_for(attacker))
    defense = calculate_defense_score(defense_inputs_for(defender))

    boosts = await get_owned_boosts(db, attacker.id)
    vehicles, _ = await get_available_vehicles(db, attacker.id)
    loadout = await resolve_loadout(db, attacker.id)

    return {
        "can_raid": True,
        "raids_today": gate.raids_today,
        "raids_max": MAX_RAIDS_PER_DAY,
        "target_raided_this_week": False,
        "attack_estimate": get_strength_estimate(attack.total),
        "defense_estimate": get_strength_estimate(defense.total),
        "attack_score": attack.total,
        "defense_score": defense.total,
        "attack_breakdown": attack.breakdown,
        "defense_breakdown": defense.breakdown,
        "attacker_slug": attacker.login,
        "attacker_avatar": attacker.avatar_url,
        "defender_slug": defender.login,
        "defender_avatar": defender.avatar_url,
        "defender_building_height": estimate_building_height(defender.contributions or 0),
        "available_boosts": [
            {"purchase_id": b.purchase_id, "item_id": b.item_id, "name": b.name, "bonus": b.bonus}
            for b in boosts
        ],
        "available_vehicles": vehicles,
        "vehicle": loadout.vehicle,
    }
