"""Contest schema: users, stocks, predictions, follows, ranking snapshots.

Revision ID: 001_contest_schema
Revises:
Create Date: 2026-10-17
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_contest_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            nickname VARCHAR(50) NOT NULL DEFAULT 'Stock Picker',
            avatar_url TEXT,
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            level INTEGER NOT NULL DEFAULT 1,
            total_score INTEGER NOT NULL DEFAULT 0,
            current_score INTEGER NOT NULL DEFAULT 0,
            total_predictions INTEGER NOT NULL DEFAULT 0,
            success_predictions INTEGER NOT NULL DEFAULT 0,
            failed_predictions INTEGER NOT NULL DEFAULT 0,
            current_streak INTEGER NOT NULL DEFAULT 0,
            max_streak INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ,
            CONSTRAINT chk_users_status CHECK (status IN ('active', 'inactive', 'banned')),
            CONSTRAINT chk_users_prediction_totals
                CHECK (total_predictions = success_predictions + failed_predictions)
        )
    """)

    # --- Stocks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS stocks (
            id SERIAL PRIMARY KEY,
            symbol VARCHAR(16) NOT NULL UNIQUE,
            name VARCHAR(64) NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            current_price DOUBLE PRECISION,
            previous_close DOUBLE PRECISION,
            change_amount DOUBLE PRECISION,
            change_percent DOUBLE PRECISION,
            price_updated_at TIMESTAMPTZ,
            recommend_count INTEGER NOT NULL DEFAULT 0,
            success_rate DOUBLE PRECISION NOT NULL DEFAULT 0,
            avg_return DOUBLE PRECISION NOT NULL DEFAULT 0,
            CONSTRAINT chk_stocks_status CHECK (status IN ('active', 'suspended', 'delisted'))
        )
    """)

    # --- Predictions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS predictions (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            symbol VARCHAR(16) NOT NULL REFERENCES stocks(symbol),
            predicted_change DOUBLE PRECISION NOT NULL,
            reason TEXT NOT NULL DEFAULT '',
            confidence INTEGER NOT NULL DEFAULT 3,
            hold_period VARCHAR(8) NOT NULL,
            entry_price DOUBLE PRECISION NOT NULL,
            current_price DOUBLE PRECISION,
            current_return DOUBLE PRECISION,
            exit_price DOUBLE PRECISION,
            actual_return DOUBLE PRECISION,
            start_date TIMESTAMPTZ NOT NULL,
            end_date TIMESTAMPTZ NOT NULL,
            settled_at TIMESTAMPTZ,
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            follow_count INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ,
            CONSTRAINT chk_predictions_status
                CHECK (status IN ('active', 'success', 'failed', 'expired', 'cancelled')),
            CONSTRAINT chk_predictions_hold_period
                CHECK (hold_period IN ('1week', '2weeks', '1month', '3months')),
            CONSTRAINT chk_predictions_confidence CHECK (confidence BETWEEN 1 AND 5),
            CONSTRAINT chk_predictions_settlement CHECK (
                (status = 'active') = (exit_price IS NULL AND actual_return IS NULL AND settled_at IS NULL)
            )
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_predictions_user_created
        ON predictions(user_id, created_at)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_predictions_status_end
        ON predictions(status, end_date)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_predictions_symbol
        ON predictions(symbol)
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_predictions_user_symbol_active
        ON predictions(user_id, symbol) WHERE status = 'active'
    """)

    # --- Follows ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS follows (
            id BIGSERIAL PRIMARY KEY,
            follower_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            follow_type VARCHAR(16) NOT NULL,
            prediction_id BIGINT REFERENCES predictions(id) ON DELETE CASCADE,
            target_user_id BIGINT REFERENCES users(id) ON DELETE CASCADE,
            follow_amount DOUBLE PRECISION NOT NULL DEFAULT 10000,
            follow_price DOUBLE PRECISION,
            current_return DOUBLE PRECISION,
            actual_return DOUBLE PRECISION,
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            followed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            completed_at TIMESTAMPTZ,
            CONSTRAINT chk_follows_target CHECK (
                (follow_type = 'recommend' AND prediction_id IS NOT NULL AND target_user_id IS NULL)
                OR (follow_type = 'user' AND target_user_id IS NOT NULL AND prediction_id IS NULL)
            ),
            CONSTRAINT chk_follows_status CHECK (status IN ('active', 'completed', 'cancelled'))
        )
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_follows_follower_prediction
        ON follows(follower_id, prediction_id) WHERE prediction_id IS NOT NULL
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_follows_follower_target_user
        ON follows(follower_id, target_user_id) WHERE target_user_id IS NOT NULL
    """)

    # --- Ranking Snapshots ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS ranking_snapshots (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            ranking_type VARCHAR(16) NOT NULL,
            period VARCHAR(20) NOT NULL,
            rank INTEGER NOT NULL,
            previous_rank INTEGER,
            score INTEGER NOT NULL,
            period_score INTEGER NOT NULL DEFAULT 0,
            total_predictions INTEGER NOT NULL DEFAULT 0,
            success_predictions INTEGER NOT NULL DEFAULT 0,
            win_rate DOUBLE PRECISION NOT NULL DEFAULT 0,
            avg_return DOUBLE PRECISION NOT NULL DEFAULT 0,
            max_return DOUBLE PRECISION NOT NULL DEFAULT 0,
            current_streak INTEGER NOT NULL DEFAULT 0,
            max_streak INTEGER NOT NULL DEFAULT 0,
            period_start TIMESTAMPTZ,
            period_end TIMESTAMPTZ,
            badge VARCHAR(32),
            created_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ranking_snapshots_user_type_period_key UNIQUE (user_id, ranking_type, period),
            CONSTRAINT chk_ranking_snapshots_type CHECK (ranking_type IN ('weekly', 'monthly', 'total'))
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_ranking_snapshots_type_period_rank
        ON ranking_snapshots(ranking_type, period, rank)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ranking_snapshots CASCADE")
    op.execute("DROP TABLE IF EXISTS follows CASCADE")
    op.execute("DROP TABLE IF EXISTS predictions CASCADE")
    op.execute("DROP TABLE IF EXISTS stocks CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
