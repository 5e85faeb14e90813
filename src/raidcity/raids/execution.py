"""Raid execution: re-validate, resolve, record, reward.

Two transactions per raid:

1. Gate + insert. The attacker's profile row is locked (FOR UPDATE) while
   the daily count and weekly pair count are read and the raid row is
   inserted. The ``raids`` unique constraints on
   ``(attacker_id, raid_day, daily_slot)`` and
   ``(attacker_id, defender_id, week_iso)`` reject any insert that slips
   past the count on dialects without row locks.
2. Rewards. Once the raid row is committed it is final; a failure while
   granting XP, achievements or the tag is logged and left for
   ``reconcile_raid_rewards`` to re-apply.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from raidcity.db.models import Raid, RaidXPLedger
from raidcity.raids.catalog import get_owned_boost, get_owned_item_ids, resolve_loadout
from raidcity.raids.constants import DEFAULT_VEHICLE, ITEM_TYPE_VEHICLE, MAX_RAIDS_PER_DAY
from raidcity.raids.eligibility import (
    attack_inputs_for,
    check_raid_eligibility,
    count_pair_raids_this_week,
    count_raids_today,
    defense_inputs_for,
    get_profile_by_login,
)
from raidcity.raids.errors import (
    DailyLimitExceeded,
    RaidError,
    StorageFailure,
    ValidationError,
    WeeklyCooldownActive,
)
from raidcity.raids.rate_limiter import RateLimiter
from raidcity.raids.rewards import (
    attacker_xp_for,
    grant_raid_rewards,
)
from raidcity.raids.scoring import (
    calculate_attack_score,
    calculate_defense_score,
    get_raid_title,
    resolve_outcome,
)
from raidcity.raids.windows import get_raid_day, get_week_iso, utc_now

logger = logging.getLogger(__name__)


async def _classify_conflict(
    db: AsyncSession, caller_login: str, target_login: str, now: datetime,
) -> RaidError:
    """Map a uniqueness violation on ``raids`` back to the gate error it stands for."""
    attacker = await get_profile_by_login(db, caller_login)
    defender = await get_profile_by_login(db, target_login)
    if attacker is None or defender is None:
        return StorageFailure()
    attacker_id, defender_id = attacker.id, defender.id
    if await count_raids_today(db, attacker_id, now) >= MAX_RAIDS_PER_DAY:
        return DailyLimitExceeded()
    if await count_pair_raids_this_week(db, attacker_id, defender_id, now) > 0:
        return WeeklyCooldownActive()
    return StorageFailure()


async def _choose_vehicle(db: AsyncSession, profile_id: int, vehicle_id: str | None, saved: str) -> str:
    if vehicle_id is None:
        return saved
    if vehicle_id == DEFAULT_VEHICLE:
        return vehicle_id
    if vehicle_id in await get_owned_item_ids(db, profile_id, ITEM_TYPE_VEHICLE):
        return vehicle_id
    return DEFAULT_VEHICLE


async def _record_raid(
    db: AsyncSession,
    limiter: RateLimiter,
    caller_login: str,
    target_login: str,
    boost_purchase_id: int | None,
    vehicle_id: str | None,
    now: datetime,
) -> tuple[Raid, dict[str, Any]]:
    """Transaction 1: gate, score and insert. Commits on success."""
    gate = await check_raid_eligibility(
        db, limiter, caller_login, target_login,
        rate_key="raid-execute", now=now, lock_attacker=True,
    )
    attacker, defender = gate.attacker, gate.defender

    boost_bonus = None
    if boost_purchase_id is not None:
        boost = await get_owned_boost(db, attacker.id, boost_purchase_id)
        if boost is None:
            raise ValidationError("Boost not available")
        boost_bonus = boost.bonus

    attack = calculate_attack_score(attack_inputs_for(attacker, boost_bonus))
    defense = calculate_defense_score(defense_inputs_for(defender))
    success = resolve_outcome(attack.total, defense.total)

    loadout = await resolve_loadout(db, attacker.id)
    vehicle = await _choose_vehicle(db, attacker.id, vehicle_id, loadout.vehicle)

    raid = Raid(
        attacker_id=attacker.id,
        defender_id=defender.id,
        attack_score=attack.total,
        defense_score=defense.total,
        attack_breakdown=attack.breakdown,
        defense_breakdown=defense.breakdown,
        success=success,
        xp_earned=attacker_xp_for(success),
        vehicle=vehicle,
        tag_style=loadout.tag_style if success else None,
        boost_purchase_id=boost_purchase_id if boost_bonus is not None else None,
        raid_day=get_raid_day(now),
        daily_slot=gate.raids_today + 1,
        week_iso=get_week_iso(now),
        created_at=now,
    )
    db.add(raid)
    await db.flush()

    # Snapshot everything the response needs before the reward transaction
    snapshot: dict[str, Any] = {
        "raid_id": raid.id,
        "success": success,
        "attack_score": attack.total,
        "defense_score": defense.total,
        "attack_breakdown": attack.breakdown,
        "defense_breakdown": defense.breakdown,
        "attacker": {"slug": attacker.login, "avatar": attacker.avatar_url},
        "defender": {"slug": defender.login, "avatar": defender.avatar_url},
        "xp_earned": raid.xp_earned,
        "vehicle": vehicle,
        "tag_style": loadout.tag_style,
        "attacker_login": attacker.login,
        "attacker_xp_before": attacker.raid_xp or 0,
    }
    await db.commit()
    return raid, snapshot


async def execute_raid(
    db: AsyncSession,
    limiter: RateLimiter,
    caller_login: str,
    target_login: str,
    boost_purchase_id: int | None = None,
    vehicle_id: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Resolve one raid end to end. Raises RaidError subclasses on failure."""
    if now is None:
        now = utc_now()

    try:
        raid, snapshot = await _record_raid(
            db, limiter, caller_login, target_login, boost_purchase_id, vehicle_id, now,
        )
    except RaidError:
        await db.rollback()
        raise
    except IntegrityError as e:
        await db.rollback()
        raise await _classify_conflict(db, caller_login, target_login, now) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Raid write failed for %s -> %s", caller_login, target_login)
        raise StorageFailure() from e

    logger.info(
        "raid_executed id=%s attacker=%s defender=%s attack=%d defense=%d success=%s",
        snapshot["raid_id"], snapshot["attacker"]["slug"], snapshot["defender"]["slug"],
        snapshot["attack_score"], snapshot["defense_score"], snapshot["success"],
    )

    new_achievements: list[str] = []
    try:
        rewards = await grant_raid_rewards(db, raid, snapshot["attacker_login"], now=now)
        await db.commit()
        new_raid_xp = rewards.attacker.raid_xp
        new_achievements = rewards.attacker.new_achievements
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Raid %s committed but reward granting failed; left for reconciliation", snapshot["raid_id"])
        new_raid_xp = snapshot["attacker_xp_before"] + snapshot["xp_earned"]

    return {
        "raid_id": snapshot["raid_id"],
        "success": snapshot["success"],
        "attack_score": snapshot["attack_score"],
        "defense_score": snapshot["defense_score"],
        "attack_breakdown": snapshot["attack_breakdown"],
        "defense_breakdown": snapshot["defense_breakdown"],
        "attacker": snapshot["attacker"],
        "defender": snapshot["defender"],
        "xp_earned": snapshot["xp_earned"],
        "new_raid_xp": new_raid_xp,
        "new_title": get_raid_title(new_raid_xp),
        "new_achievements": new_achievements,
        "vehicle": snapshot["vehicle"],
        "tag_style": snapshot["tag_style"],
    }


async def reconcile_raid_rewards(
    db: AsyncSession,
    since: datetime,
    limit: int = 200,
) -> int:
    """Re-apply rewards for raids since ``since`` that have no defender XP entry.

    Every committed raid grants the defender participation XP, so a missing
    defender ledger row means the reward step never completed.
    """
    rewarded = select(RaidXPLedger.raid_id).where(RaidXPLedger.role == "defender")
    result = await db.execute(
        select(Raid)
        .where(Raid.created_at >= since, Raid.id.not_in(rewarded))
        .order_by(Raid.created_at.asc())
        .limit(limit)
    )
    pending = [(raid.id, raid.attacker.login) for raid in result.unique().scalars()]

    repaired = 0
    for raid_id, attacker_login in pending:
        try:
            raid = await db.get(Raid, raid_id)
            if raid is None:
                continue
            await grant_raid_rewards(db, raid, attacker_login)
            await db.commit()
            repaired += 1
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("Reward reconciliation failed for raid %s", raid_id)
    if repaired:
        logger.info("Reconciled rewards for %d raids", repaired)
    return repaired
