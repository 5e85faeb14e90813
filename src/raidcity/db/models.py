"""ORM models for profiles, the item catalog and the raid subsystem.

Profiles, items and purchases are owned by other flows (claiming,
activity ingestion, checkout); the raid subsystem only reads them,
except for ``Profile.raid_xp`` which it increments.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    false,
    func,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from raidcity.db.base import Base, JSONType

# SQLite only autoincrements INTEGER PRIMARY KEY
_BigIntPK = BigInteger().with_variant(Integer(), "sqlite")


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


class Profile(Base):
    """A developer/protocol identity rendered as a building."""

    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(_BigIntPK, primary_key=True, autoincrement=True)
    login: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    claimed: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false())
    contributions: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    current_week_contributions: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    app_streak: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    current_week_kudos_given: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    current_week_kudos_received: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    raid_xp: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


# ---------------------------------------------------------------------------
# Catalog: Items, Purchases, Customizations
# ---------------------------------------------------------------------------


class Item(Base):
    """Shop catalog entry. ``item_metadata['type']`` tags raid items."""

    __tablename__ = "items"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    item_metadata: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=true())


class Purchase(Base):
    """A profile's purchase of a catalog item."""

    __tablename__ = "purchases"
    __table_args__ = (Index("idx_purchases_profile_status", "profile_id", "status"),)

    id: Mapped[int] = mapped_column(_BigIntPK, primary_key=True, autoincrement=True)
    profile_id: Mapped[int] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    item_id: Mapped[str] = mapped_column(ForeignKey("items.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    item: Mapped[Item] = relationship("Item", lazy="joined")


class ProfileCustomization(Base):
    """Per-profile configuration for an item, e.g. the saved raid loadout."""

    __tablename__ = "profile_customizations"
    __table_args__ = (UniqueConstraint("profile_id", "item_id", name="uq_customization_profile_item"),)

    id: Mapped[int] = mapped_column(_BigIntPK, primary_key=True, autoincrement=True)
    profile_id: Mapped[int] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    item_id: Mapped[str] = mapped_column(String(64), nullable=False)
    config: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


# ---------------------------------------------------------------------------
# Raids
# ---------------------------------------------------------------------------


class Raid(Base):
    """Immutable record of one resolved raid.

    ``daily_slot`` numbers the attacker's raids within ``raid_day``
    (1..MAX_RAIDS_PER_DAY). The two unique constraints make the daily cap
    and weekly cooldown hold even when concurrent inserts race.
    """

    __tablename__ = "raids"
    __table_args__ = (
        UniqueConstraint("attacker_id", "raid_day", "daily_slot", name="uq_raids_attacker_day_slot"),
        UniqueConstraint("attacker_id", "defender_id", "week_iso", name="uq_raids_pair_week"),
        CheckConstraint("attacker_id <> defender_id", name="ck_raids_not_self"),
        Index("idx_raids_defender_created", "defender_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    attacker_id: Mapped[int] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    defender_id: Mapped[int] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    attack_score: Mapped[int] = mapped_column(Integer, nullable=False)
    defense_score: Mapped[int] = mapped_column(Integer, nullable=False)
    attack_breakdown: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    defense_breakdown: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    xp_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    vehicle: Mapped[str] = mapped_column(String(64), nullable=False, default="airplane")
    tag_style: Mapped[str | None] = mapped_column(String(64), nullable=True)
    boost_purchase_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    raid_day: Mapped[date] = mapped_column(Date, nullable=False)
    daily_slot: Mapped[int] = mapped_column(Integer, nullable=False)
    week_iso: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    attacker: Mapped[Profile] = relationship("Profile", foreign_keys=[attacker_id], lazy="joined")
    defender: Mapped[Profile] = relationship("Profile", foreign_keys=[defender_id], lazy="joined")


class RaidTag(Base):
    """Cosmetic marker on a defeated building. One row per building, last writer wins."""

    __tablename__ = "raid_tags"

    id: Mapped[int] = mapped_column(_BigIntPK, primary_key=True, autoincrement=True)
    building_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    attacker_login: Mapped[str] = mapped_column(String(64), nullable=False)
    tag_style: Mapped[str] = mapped_column(String(64), nullable=False, default="default")
    raid_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=true())
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class RaidXPLedger(Base):
    """Append-only raid XP grants. ``idempotency_key`` prevents double grants."""

    __tablename__ = "raid_xp_ledger"

    id: Mapped[int] = mapped_column(_BigIntPK, primary_key=True, autoincrement=True)
    profile_id: Mapped[int] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    raid_id: Mapped[str] = mapped_column(ForeignKey("raids.id", ondelete="CASCADE"), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------


class Achievement(Base):
    """Achievement definition (seeded)."""

    __tablename__ = "achievements"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    tier: Mapped[str] = mapped_column(String(16), nullable=False, default="bronze")
    category: Mapped[str] = mapped_column(String(32), nullable=False, default="general")
    threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ProfileAchievement(Base):
    """An achievement earned by a profile. Unique per (profile, achievement)."""

    __tablename__ = "profile_achievements"
    __table_args__ = (
        UniqueConstraint("profile_id", "achievement_id", name="uq_profile_achievement"),
    )

    id: Mapped[int] = mapped_column(_BigIntPK, primary_key=True, autoincrement=True)
    profile_id: Mapped[int] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    achievement_id: Mapped[str] = mapped_column(ForeignKey("achievements.id"), nullable=False)
    seen: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
