"""Raid reward granting: XP, title achievements, and the defender's RaidTag.

Runs after the raid record is committed, in its own transaction. Every
write is keyed so re-running it for the same raid grants nothing twice:
XP via ``raid_xp_ledger.idempotency_key``, achievements via the
``(profile_id, achievement_id)`` unique constraint, tags via an upsert on
``building_id`` that never lets an older raid overwrite a newer tag.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from raidcity.db.models import Profile, ProfileAchievement, Raid, RaidTag, RaidXPLedger
from raidcity.db.upsert import insert_for
from raidcity.raids.constants import (
    DEFAULT_TAG_STYLE,
    RAID_TAG_DURATION_DAYS,
    XP_LOSE_DEFENDER,
    XP_WIN_ATTACKER,
    XP_WIN_DEFENDER,
)
from raidcity.raids.scoring import RAID_TITLES, crossed_title_achievements, get_raid_title
from raidcity.raids.windows import utc_now

logger = logging.getLogger(__name__)


@dataclass
class PartyReward:
    profile_id: int
    xp_granted: int
    raid_xp: int
    title: str | None
    new_achievements: list[str] = field(default_factory=list)


@dataclass
class RewardResult:
    attacker: PartyReward
    defender: PartyReward
    tag_applied: bool


def attacker_xp_for(success: bool) -> int:
    return XP_WIN_ATTACKER if success else 0


def defender_xp_for(success: bool) -> int:
    # Participation XP; the same either way with the current constants
    return XP_WIN_DEFENDER if success else XP_LOSE_DEFENDER


async def _grant_raid_xp(
    db: AsyncSession,
    profile_id: int,
    raid_id: str,
    role: str,
    amount: int,
    now: datetime,
) -> tuple[int, int, bool]:
    """Ledger-keyed XP grant. Returns (old_xp, new_xp, granted)."""
    current = (
        await db.execute(select(Profile.raid_xp).where(Profile.id == profile_id))
    ).scalar_one()
    if amount <= 0:
        return current, current, False

    stmt = (
        insert_for(db, RaidXPLedger)
        .values(
            profile_id=profile_id,
            raid_id=raid_id,
            amount=amount,
            role=role,
            idempotency_key=f"raid:{raid_id}:{role}",
            created_at=now,
        )
        .on_conflict_do_nothing(index_elements=["idempotency_key"])
        .returning(RaidXPLedger.id)
    )
    inserted = (await db.execute(stmt)).scalar_one_or_none()
    if inserted is None:
        return current, current, False

    new_xp = (
        await db.execute(
            update(Profile)
            .where(Profile.id == profile_id)
            .values(raid_xp=Profile.raid_xp + amount)
            .returning(Profile.raid_xp)
        )
    ).scalar_one()
    return new_xp - amount, new_xp, True


async def _award_title_achievements(
    db: AsyncSession,
    profile_id: int,
    candidates: list[str],
    now: datetime,
) -> list[str]:
    """Insert achievements that aren't held yet. Returns only the newly inserted ids."""
    awarded: list[str] = []
    for achievement_id in candidates:
        stmt = (
            insert_for(db, ProfileAchievement)
            .values(profile_id=profile_id, achievement_id=achievement_id, seen=False, created_at=now)
            .on_conflict_do_nothing(index_elements=["profile_id", "achievement_id"])
            .returning(ProfileAchievement.id)
        )
        if (await db.execute(stmt)).scalar_one_or_none() is not None:
            awarded.append(achievement_id)
    return awarded


async def _reward_party(
    db: AsyncSession,
    profile_id: int,
    raid_id: str,
    role: str,
    amount: int,
    now: datetime,
) -> PartyReward:
    old_xp, new_xp, granted = await _grant_raid_xp(db, profile_id, raid_id, role, amount, now)
    if granted:
        candidates = crossed_title_achievements(old_xp, new_xp)
    else:
        # Replay: make sure every threshold already reached is held
        candidates = [t["achievement"] for t in RAID_TITLES if t["achievement"] and new_xp >= t["xp"]]
    new_achievements = await _award_title_achievements(db, profile_id, candidates, now)
    return PartyReward(
        profile_id=profile_id,
        xp_granted=new_xp - old_xp,
        raid_xp=new_xp,
        title=get_raid_title(new_xp),
        new_achievements=new_achievements,
    )


async def upsert_raid_tag(
    db: AsyncSession,
    building_id: int,
    attacker_login: str,
    tag_style: str,
    raid_id: str,
    raided_at: datetime,
) -> None:
    """Place or replace the tag on a building. Last writer wins, by raid time."""
    expires_at = raided_at + timedelta(days=RAID_TAG_DURATION_DAYS)
    stmt = insert_for(db, RaidTag).values(
        building_id=building_id,
        attacker_login=attacker_login,
        tag_style=tag_style,
        raid_id=raid_id,
        active=True,
        expires_at=expires_at,
        created_at=raided_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["building_id"],
        set_={
            "attacker_login": stmt.excluded.attacker_login,
            "tag_style": stmt.excluded.tag_style,
            "raid_id": stmt.excluded.raid_id,
            "active": True,
            "expires_at": stmt.excluded.expires_at,
            "created_at": stmt.excluded.created_at,
        },
        where=RaidTag.created_at <= stmt.excluded.created_at,
    )
    await db.execute(stmt)


async def grant_raid_rewards(
    db: AsyncSession,
    raid: Raid,
    attacker_login: str,
    now: datetime | None = None,
) -> RewardResult:
    """Apply all rewards for a committed raid. Safe to call more than once.

    Does not commit; the caller owns the transaction.
    """
    if now is None:
        now = utc_now()

    attacker = await _reward_party(
        db, raid.attacker_id, raid.id, "attacker", attacker_xp_for(raid.success), now,
    )
    defender = await _reward_party(
        db, raid.defender_id, raid.id, "defender", defender_xp_for(raid.success), now,
    )

    tag_applied = False
    if raid.success:
        await upsert_raid_tag(
            db,
            building_id=raid.defender_id,
            attacker_login=attacker_login,
            tag_style=raid.tag_style or DEFAULT_TAG_STYLE,
            raid_id=raid.id,
            raided_at=raid.created_at,
        )
        tag_applied = True

    return RewardResult(attacker=attacker, defender=defender, tag_applied=tag_applied)
