"""Seed data: raid title achievements and the raid item catalog."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from raidcity.db.models import Achievement, Item
from raidcity.db.upsert import insert_for

logger = logging.getLogger(__name__)

ACHIEVEMENT_SEED_DATA: list[dict] = [
    {
        "id": "raid_pickpocket",
        "name": "Pickpocket",
        "description": "Earn 100 raid XP",
        "tier": "bronze",
        "category": "raid",
        "threshold": 100,
    },
    {
        "id": "raid_burglar",
        "name": "Burglar",
        "description": "Earn 500 raid XP",
        "tier": "silver",
        "category": "raid",
        "threshold": 500,
    },
    {
        "id": "raid_heist_master",
        "name": "Heist Master",
        "description": "Earn 2,000 raid XP",
        "tier": "gold",
        "category": "raid",
        "threshold": 2000,
    },
    {
        "id": "raid_kingpin",
        "name": "Kingpin",
        "description": "Earn 10,000 raid XP. The city is yours.",
        "tier": "diamond",
        "category": "raid",
        "threshold": 10000,
    },
]

ITEM_SEED_DATA: list[dict] = [
    # Boosts (reusable, additive attack bonus)
    {"id": "raid_boost_small", "name": "Spray Can", "price_cents": 99,
     "item_metadata": {"type": "raid_boost", "bonus": 5}},
    {"id": "raid_boost_medium", "name": "Crowbar", "price_cents": 199,
     "item_metadata": {"type": "raid_boost", "bonus": 10}},
    {"id": "raid_boost_large", "name": "Battering Ram", "price_cents": 399,
     "item_metadata": {"type": "raid_boost", "bonus": 20}},
    # Vehicles
    {"id": "raid_helicopter", "name": "Helicopter", "price_cents": 299,
     "item_metadata": {"type": "raid_vehicle"}},
    {"id": "raid_drone", "name": "Stealth Drone", "price_cents": 399,
     "item_metadata": {"type": "raid_vehicle"}},
    {"id": "raid_rocket", "name": "Rocket", "price_cents": 499,
     "item_metadata": {"type": "raid_vehicle"}},
    # Tag styles
    {"id": "tag_neon", "name": "Neon Tag", "price_cents": 149,
     "item_metadata": {"type": "raid_tag"}},
    {"id": "tag_graffiti", "name": "Graffiti Tag", "price_cents": 149,
     "item_metadata": {"type": "raid_tag"}},
]


async def seed_raid_data(db: AsyncSession) -> int:
    """Upsert achievement definitions and raid catalog items. Returns rows seeded."""
    seeded = 0
    for data in ACHIEVEMENT_SEED_DATA:
        stmt = insert_for(db, Achievement).values(**data)
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={
                "name": stmt.excluded.name,
                "description": stmt.excluded.description,
                "tier": stmt.excluded.tier,
                "category": stmt.excluded.category,
                "threshold": stmt.excluded.threshold,
            },
        )
        await db.execute(stmt)
        seeded += 1

    for data in ITEM_SEED_DATA:
        stmt = insert_for(db, Item).values(**data)
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={
                "name": stmt.excluded.name,
                "price_cents": stmt.excluded.price_cents,
                "item_metadata": stmt.excluded.item_metadata,
            },
        )
        await db.execute(stmt)
        seeded += 1

    await db.commit()
    logger.info("Seeded %d raid definitions", seeded)
    return seeded
