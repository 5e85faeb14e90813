"""Raid score engine: pure functions, no I/O.

Attack:  contributions x3 + streak x1 + kudos given x2 + boost
Defense: contributions x3 + streak x1 + kudos received x1

Kudos given weigh double on attack while kudos received count once on
defense. Ties go to the defender (see ``resolve_outcome``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from raidcity.raids.constants import (
    BUILDING_HEIGHT_FACTOR,
    BUILDING_HEIGHT_MAX,
    BUILDING_HEIGHT_MIN,
    STRENGTH_MEDIUM_MAX,
    STRENGTH_WEAK_MAX,
)

StrengthEstimate = Literal["weak", "medium", "strong"]

RAID_TITLES: list[dict] = [
    {"xp": 0, "title": None, "achievement": None},
    {"xp": 100, "title": "Pickpocket", "achievement": "raid_pickpocket"},
    {"xp": 500, "title": "Burglar", "achievement": "raid_burglar"},
    {"xp": 2000, "title": "Heist Master", "achievement": "raid_heist_master"},
    {"xp": 10000, "title": "Kingpin", "achievement": "raid_kingpin"},
]


@dataclass(frozen=True)
class AttackInputs:
    weekly_contributions: int
    app_streak: int
    weekly_kudos_given: int
    boost_bonus: int | None = None


@dataclass(frozen=True)
class DefenseInputs:
    weekly_contributions: int
    app_streak: int
    weekly_kudos_received: int


@dataclass(frozen=True)
class Score:
    total: int
    breakdown: dict[str, int | str] = field(default_factory=dict)


def calculate_attack_score(inputs: AttackInputs) -> Score:
    """Compute the attacker's score. ``boost`` only appears in the breakdown when positive."""
    commits = inputs.weekly_contributions * 3
    streak = inputs.app_streak * 1
    kudos = inputs.weekly_kudos_given * 2
    boost = inputs.boost_bonus or 0

    breakdown: dict[str, int | str] = {"commits": commits, "streak": streak, "kudos": kudos}
    if boost > 0:
        breakdown["boost"] = boost
    return Score(total=commits + streak + kudos + boost, breakdown=breakdown)


def calculate_defense_score(inputs: DefenseInputs) -> Score:
    """Compute the defender's score. Defense has no boost path."""
    commits = inputs.weekly_contributions * 3
    streak = inputs.app_streak * 1
    kudos = inputs.weekly_kudos_received * 1
    return Score(
        total=commits + streak + kudos,
        breakdown={"commits": commits, "streak": streak, "kudos": kudos},
    )


def resolve_outcome(attack_score: int, defense_score: int) -> bool:
    """True when the attacker wins. Strict: a tie is a successful defense."""
    return attack_score > defense_score


def get_strength_estimate(score: int) -> StrengthEstimate:
    if score <= STRENGTH_WEAK_MAX:
        return "weak"
    if score <= STRENGTH_MEDIUM_MAX:
        return "medium"
    return "strong"


def get_raid_title(xp: int) -> str | None:
    """Title of the highest threshold met. No title below 100 XP."""
    title = None
    for tier in RAID_TITLES:
        if xp >= tier["xp"]:
            title = tier["title"]
    return title


def crossed_title_achievements(old_xp: int, new_xp: int) -> list[str]:
    """Achievement ids for title thresholds in ``(old_xp, new_xp]``, ascending."""
    return [
        tier["achievement"]
        for tier in RAID_TITLES
        if tier["achievement"] is not None and old_xp < tier["xp"] <= new_xp
    ]


def estimate_building_height(contributions: int) -> float:
    """Rough building height for the raid animation when geometry isn't loaded yet."""
    return max(BUILDING_HEIGHT_MIN, min(BUILDING_HEIGHT_MAX, contributions * BUILDING_HEIGHT_FACTOR))
