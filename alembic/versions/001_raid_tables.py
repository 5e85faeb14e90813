"""Raid subsystem tables.

Creates profiles, the item catalog (items, purchases, customizations),
raids with their counting constraints, raid tags, the raid XP ledger,
and achievements.

Revision ID: 001_raid_tables
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_raid_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Profiles ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS profiles (
            id BIGSERIAL PRIMARY KEY,
            login VARCHAR(64) UNIQUE NOT NULL,
            avatar_url TEXT,
            claimed BOOLEAN NOT NULL DEFAULT false,
            contributions INTEGER NOT NULL DEFAULT 0,
            current_week_contributions INTEGER NOT NULL DEFAULT 0,
            app_streak INTEGER NOT NULL DEFAULT 0,
            current_week_kudos_given INTEGER NOT NULL DEFAULT 0,
            current_week_kudos_received INTEGER NOT NULL DEFAULT 0,
            raid_xp INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Catalog ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS items (
            id VARCHAR(64) PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            price_cents INTEGER NOT NULL DEFAULT 0,
            item_metadata JSONB NOT NULL DEFAULT '{}',
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS purchases (
            id BIGSERIAL PRIMARY KEY,
            profile_id BIGINT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            item_id VARCHAR(64) NOT NULL REFERENCES items(id),
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_purchases_profile_status
        ON purchases(profile_id, status)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS profile_customizations (
            id BIGSERIAL PRIMARY KEY,
            profile_id BIGINT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            item_id VARCHAR(64) NOT NULL,
            config JSONB NOT NULL DEFAULT '{}',
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_customization_profile_item UNIQUE (profile_id, item_id)
        )
    """)

    # --- Raids ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS raids (
            id VARCHAR(36) PRIMARY KEY,
            attacker_id BIGINT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            defender_id BIGINT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            attack_score INTEGER NOT NULL,
            defense_score INTEGER NOT NULL,
            attack_breakdown JSONB NOT NULL DEFAULT '{}',
            defense_breakdown JSONB NOT NULL DEFAULT '{}',
            success BOOLEAN NOT NULL,
            xp_earned INTEGER NOT NULL DEFAULT 0,
            vehicle VARCHAR(64) NOT NULL DEFAULT 'airplane',
            tag_style VARCHAR(64),
            boost_purchase_id BIGINT,
            raid_day DATE NOT NULL,
            daily_slot INTEGER NOT NULL CHECK (daily_slot >= 1),
            week_iso VARCHAR(10) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_raids_attacker_day_slot UNIQUE (attacker_id, raid_day, daily_slot),
            CONSTRAINT uq_raids_pair_week UNIQUE (attacker_id, defender_id, week_iso),
            CONSTRAINT ck_raids_not_self CHECK (attacker_id <> defender_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_raids_defender_created
        ON raids(defender_id, created_at)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS raid_tags (
            id BIGSERIAL PRIMARY KEY,
            building_id BIGINT UNIQUE NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            attacker_login VARCHAR(64) NOT NULL,
            tag_style VARCHAR(64) NOT NULL DEFAULT 'default',
            raid_id VARCHAR(36),
            active BOOLEAN NOT NULL DEFAULT true,
            expires_at TIMESTAMPTZ NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS raid_xp_ledger (
            id BIGSERIAL PRIMARY KEY,
            profile_id BIGINT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            raid_id VARCHAR(36) NOT NULL REFERENCES raids(id) ON DELETE CASCADE,
            amount INTEGER NOT NULL,
            role VARCHAR(16) NOT NULL,
            idempotency_key VARCHAR(128) UNIQUE NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_raid_xp_ledger_raid
        ON raid_xp_ledger(raid_id, role)
    """)

    # --- Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id VARCHAR(64) PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            description TEXT,
            tier VARCHAR(16) NOT NULL DEFAULT 'bronze',
            category VARCHAR(32) NOT NULL DEFAULT 'general',
            threshold INTEGER NOT NULL DEFAULT 0
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS profile_achievements (
            id BIGSERIAL PRIMARY KEY,
            profile_id BIGINT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            achievement_id VARCHAR(64) NOT NULL REFERENCES achievements(id),
            seen BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_profile_achievement UNIQUE (profile_id, achievement_id)
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS profile_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS raid_xp_ledger CASCADE")
    op.execute("DROP TABLE IF EXISTS raid_tags CASCADE")
    op.execute("DROP TABLE IF EXISTS raids CASCADE")
    op.execute("DROP TABLE IF EXISTS profile_customizations CASCADE")
    op.execute("DROP TABLE IF EXISTS purchases CASCADE")
    op.execute("DROP TABLE IF EXISTS items CASCADE")
    op.execute("DROP TABLE IF EXISTS profiles CASCADE")
