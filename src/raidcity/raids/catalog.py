"""Raid items a profile owns: boosts, vehicles, tag styles, and the saved loadout.

Ownership is derived from completed purchases whose item metadata carries
the matching ``type``. Boosts are not consumed by a raid.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from raidcity.db.models import Item, ProfileCustomization, Purchase
from raidcity.db.upsert import insert_for
from raidcity.raids.constants import (
    DEFAULT_TAG_STYLE,
    DEFAULT_VEHICLE,
    ITEM_TYPE_BOOST,
    ITEM_TYPE_TAG,
    ITEM_TYPE_VEHICLE,
    RAID_LOADOUT_ITEM_ID,
)
from raidcity.raids.windows import utc_now

logger = logging.getLogger(__name__)

VEHICLE_META: dict[str, dict[str, str]] = {
    "airplane": {"name": "Airplane", "emoji": "✈️"},
    "raid_helicopter": {"name": "Helicopter", "emoji": "\U0001f681"},
    "raid_drone": {"name": "Stealth Drone", "emoji": "\U0001f6f8"},
    "raid_rocket": {"name": "Rocket", "emoji": "\U0001f680"},
}


@dataclass(frozen=True)
class OwnedBoost:
    purchase_id: int
    item_id: str
    name: str
    bonus: int


@dataclass(frozen=True)
class Loadout:
    vehicle: str = DEFAULT_VEHICLE
    tag_style: str = DEFAULT_TAG_STYLE


def _completed_purchases(profile_id: int, item_type: str):  # noqa: ANN202
    return (
        select(Purchase)
        .join(Item, Purchase.item_id == Item.id)
        .where(
            Purchase.profile_id == profile_id,
            Purchase.status == "completed",
            Item.item_metadata["type"].as_string() == item_type,
        )
        .order_by(Purchase.id)
    )


async def get_owned_boosts(db: AsyncSession, profile_id: int) -> list[OwnedBoost]:
    """All completed raid_boost purchases for a profile."""
    result = await db.execute(_completed_purchases(profile_id, ITEM_TYPE_BOOST))
    return [
        OwnedBoost(
            purchase_id=p.id,
            item_id=p.item_id,
            name=p.item.name,
            bonus=int((p.item.item_metadata or {}).get("bonus", 0)),
        )
        for p in result.unique().scalars()
    ]


async def get_owned_boost(db: AsyncSession, profile_id: int, purchase_id: int) -> OwnedBoost | None:
    """Re-verify one boost purchase: owned by the profile, completed, and a raid_boost."""
    for boost in await get_owned_boosts(db, profile_id):
        if boost.purchase_id == purchase_id:
            return boost
    return None


async def get_owned_item_ids(db: AsyncSession, profile_id: int, item_type: str) -> set[str]:
    result = await db.execute(_completed_purchases(profile_id, item_type))
    return {p.item_id for p in result.unique().scalars()}


async def get_available_vehicles(db: AsyncSession, profile_id: int) -> tuple[list[dict[str, str]], set[str]]:
    """Vehicle options for the picker (airplane first) plus the raw owned id set."""
    owned = await get_owned_item_ids(db, profile_id, ITEM_TYPE_VEHICLE)
    vehicles = [{"item_id": DEFAULT_VEHICLE, **VEHICLE_META[DEFAULT_VEHICLE]}]
    vehicles.extend(
        {"item_id": item_id, **VEHICLE_META[item_id]}
        for item_id in sorted(owned)
        if item_id in VEHICLE_META and item_id != DEFAULT_VEHICLE
    )
    return vehicles, owned


async def get_saved_loadout(db: AsyncSession, profile_id: int) -> dict[str, Any]:
    result = await db.execute(
        select(ProfileCustomization).where(
            ProfileCustomization.profile_id == profile_id,
            ProfileCustomization.item_id == RAID_LOADOUT_ITEM_ID,
        )
    )
    row = result.scalar_one_or_none()
    return dict(row.config or {}) if row else {}


async def resolve_loadout(db: AsyncSession, profile_id: int) -> Loadout:
    """Saved loadout re-validated against current ownership.

    Anything no longer owned silently falls back to the default.
    """
    saved = await get_saved_loadout(db, profile_id)

    vehicle = saved.get("vehicle") or DEFAULT_VEHICLE
    if vehicle != DEFAULT_VEHICLE:
        owned_vehicles = await get_owned_item_ids(db, profile_id, ITEM_TYPE_VEHICLE)
        if vehicle not in owned_vehicles:
            vehicle = DEFAULT_VEHICLE

    tag_style = saved.get("tag_style") or DEFAULT_TAG_STYLE
    if tag_style != DEFAULT_TAG_STYLE:
        owned_tags = await get_owned_item_ids(db, profile_id, ITEM_TYPE_TAG)
        if tag_style not in owned_tags:
            tag_style = DEFAULT_TAG_STYLE

    return Loadout(vehicle=vehicle, tag_style=tag_style)


async def save_loadout(
    db: AsyncSession,
    profile_id: int,
    vehicle: str | None = None,
    tag_style: str | None = None,
    now: datetime | None = None,
) -> Loadout:
    """Validate and upsert the raid loadout. Raises ValueError for unowned items."""
    current = await resolve_loadout(db, profile_id)

    if vehicle is not None and vehicle != DEFAULT_VEHICLE:
        if vehicle not in await get_owned_item_ids(db, profile_id, ITEM_TYPE_VEHICLE):
            raise ValueError(f"Vehicle not owned: {vehicle}")
    if tag_style is not None and tag_style != DEFAULT_TAG_STYLE:
        if tag_style not in await get_owned_item_ids(db, profile_id, ITEM_TYPE_TAG):
            raise ValueError(f"Tag style not owned: {tag_style}")

    loadout = Loadout(
        vehicle=vehicle if vehicle is not None else current.vehicle,
        tag_style=tag_style if tag_style is not None else current.tag_style,
    )
    config = {"vehicle": loadout.vehicle, "tag_style": loadout.tag_style}

    stmt = insert_for(db, ProfileCustomization).values(
        profile_id=profile_id,
        item_id=RAID_LOADOUT_ITEM_ID,
        config=config,
        updated_at=now or utc_now(),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["profile_id", "item_id"],
        set_={"config": stmt.excluded.config, "updated_at": stmt.excluded.updated_at},
    )
    await db.execute(stmt)
    logger.info("Raid loadout saved for profile %d: %s", profile_id, config)
    return loadout
