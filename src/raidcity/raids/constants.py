"""Raid game-balance constants.

These values are shared with the city client; change both together.
"""

from __future__ import annotations

MAX_RAIDS_PER_DAY = 3
RAID_TAG_DURATION_DAYS = 3

XP_WIN_ATTACKER = 50
XP_WIN_DEFENDER = 30
XP_LOSE_DEFENDER = 30

# Strength estimate buckets (inclusive upper bounds)
STRENGTH_WEAK_MAX = 15
STRENGTH_MEDIUM_MAX = 40

# Defender building height estimate: clamp(contributions * factor, min, max)
BUILDING_HEIGHT_FACTOR = 0.15
BUILDING_HEIGHT_MIN = 20.0
BUILDING_HEIGHT_MAX = 300.0

DEFAULT_VEHICLE = "airplane"
DEFAULT_TAG_STYLE = "default"
RAID_LOADOUT_ITEM_ID = "raid_loadout"

ITEM_TYPE_BOOST = "raid_boost"
ITEM_TYPE_VEHICLE = "raid_vehicle"
ITEM_TYPE_TAG = "raid_tag"
