"""Loyalty ledger tables.

Creates users, businesses, cards, wallet_entries, checkin_events,
user_balances and balance_applications.

Revision ID: 001_loyalty_tables
Revises: None
Create Date: 2026-10-17
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_loyalty_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Directory ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id VARCHAR(64) PRIMARY KEY,
            email VARCHAR(320) UNIQUE NOT NULL,
            name VARCHAR(128) NOT NULL,
            role VARCHAR(16) NOT NULL DEFAULT 'user',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS businesses (
            id VARCHAR(64) PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            email VARCHAR(320) NOT NULL,
            owner_id VARCHAR(64) NOT NULL,
            logo TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS cards (
            id VARCHAR(64) PRIMARY KEY,
            business_id VARCHAR(64) NOT NULL,
            name VARCHAR(128) NOT NULL,
            description TEXT,
            logo TEXT,
            background_color VARCHAR(16),
            is_active BOOLEAN NOT NULL DEFAULT true,
            metadata JSONB,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_cards_business_id
        ON cards(business_id)
    """)

    # --- Wallet ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS wallet_entries (
            user_id VARCHAR(64) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            card_id VARCHAR(64) NOT NULL REFERENCES cards(id) ON DELETE CASCADE,
            added_at TIMESTAMPTZ NOT NULL,
            last_check_in TIMESTAMPTZ,
            PRIMARY KEY (user_id, card_id)
        )
    """)

    # --- Event log ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS checkin_events (
            id VARCHAR(64) PRIMARY KEY,
            sequence BIGINT GENERATED ALWAYS AS IDENTITY UNIQUE,
            user_id VARCHAR(64) NOT NULL,
            card_id VARCHAR(64) NOT NULL,
            business_id VARCHAR(64) NOT NULL,
            points_earned INTEGER NOT NULL,
            timestamp TIMESTAMPTZ NOT NULL,
            location VARCHAR(256),
            metadata JSONB
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_checkin_events_user_time
        ON checkin_events(user_id, timestamp, sequence)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_checkin_events_card_time
        ON checkin_events(card_id, timestamp, sequence)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_checkin_events_time
        ON checkin_events(timestamp, sequence)
    """)

    # --- Balance ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_balances (
            user_id VARCHAR(64) PRIMARY KEY,
            points BIGINT NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS balance_applications (
            event_id VARCHAR(64) PRIMARY KEY REFERENCES checkin_events(id) ON DELETE CASCADE,
            applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS balance_applications CASCADE")
    op.execute("DROP TABLE IF EXISTS user_balances CASCADE")
    op.execute("DROP TABLE IF EXISTS checkin_events CASCADE")
    op.execute("DROP TABLE IF EXISTS wallet_entries CASCADE")
    op.execute("DROP TABLE IF EXISTS cards CASCADE")
    op.execute("DROP TABLE IF EXISTS businesses CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
