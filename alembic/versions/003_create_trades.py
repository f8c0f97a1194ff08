"""003: create trades table

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE trades (
            id              UUID            PRIMARY KEY,
            owner_id        UUID            NOT NULL REFERENCES users (id) ON DELETE CASCADE,
            title           VARCHAR(100)    NOT NULL,
            description     VARCHAR(1000)   NOT NULL,
            category        VARCHAR(32)     NOT NULL,
            subcategory     VARCHAR(64),
            condition       VARCHAR(20)     NOT NULL DEFAULT 'good',
            trade_type      VARCHAR(20)     NOT NULL DEFAULT 'product',
            base_value      DOUBLE PRECISION NOT NULL,
            currency        CHAR(3)         NOT NULL DEFAULT 'USD',
            age_months      DOUBLE PRECISION NOT NULL DEFAULT 0,
            quality         DOUBLE PRECISION NOT NULL DEFAULT 5,
            brand           VARCHAR(100),
            trade_points    INT             NOT NULL,
            images          JSONB           NOT NULL DEFAULT '[]',
            address         VARCHAR(255)    NOT NULL DEFAULT '',
            city            VARCHAR(128)    NOT NULL DEFAULT '',
            state           VARCHAR(128)    NOT NULL DEFAULT '',
            country         VARCHAR(128)    NOT NULL DEFAULT '',
            latitude        DOUBLE PRECISION,
            longitude       DOUBLE PRECISION,
            preferences     JSONB           NOT NULL DEFAULT '{}',
            status          VARCHAR(20)     NOT NULL DEFAULT 'active',
            views           INT             NOT NULL DEFAULT 0,
            likes           INT             NOT NULL DEFAULT 0,
            liked_by        TEXT[]          NOT NULL DEFAULT '{}',
            in_wishlist     TEXT[]          NOT NULL DEFAULT '{}',
            expires_at      TIMESTAMPTZ     NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_trades_category   CHECK (
                category IN (
                    'Electronics', 'Fashion', 'Books', 'Sports', 'Art', 'Music',
                    'Gaming', 'Jewelry', 'Tools', 'Furniture', 'Collectibles', 'Toys',
                    'Home Decor', 'Outdoor Gear', 'Vehicles', 'Services', 'Skills', 'Other'
                )
            ),
            CONSTRAINT ck_trades_condition  CHECK (
                condition IN ('new', 'like_new', 'good', 'fair', 'poor')
            ),
            CONSTRAINT ck_trades_trade_type CHECK (
                trade_type IN ('product', 'service', 'skill')
            ),
            CONSTRAINT ck_trades_status     CHECK (
                status IN ('active', 'pending', 'completed', 'cancelled', 'expired')
            ),
            CONSTRAINT ck_trades_base_value CHECK (base_value >= 0),
            CONSTRAINT ck_trades_age        CHECK (age_months >= 0),
            CONSTRAINT ck_trades_quality    CHECK (quality BETWEEN 1 AND 10),
            CONSTRAINT ck_trades_points     CHECK (trade_points >= 1),
            CONSTRAINT ck_trades_counters   CHECK (views >= 0 AND likes >= 0),
            CONSTRAINT ck_trades_likes_sync CHECK (likes = COALESCE(array_length(liked_by, 1), 0)),
            CONSTRAINT ck_trades_coordinates CHECK ((latitude IS NULL) = (longitude IS NULL))
        );
    """)
    op.execute("CREATE INDEX idx_trades_status_created ON trades (status, created_at DESC);")
    op.execute("CREATE INDEX idx_trades_category ON trades (category, status);")
    op.execute("CREATE INDEX idx_trades_points ON trades (trade_points);")
    op.execute("CREATE INDEX idx_trades_owner ON trades (owner_id, created_at DESC);")
    op.execute("""
        CREATE INDEX idx_trades_fulltext ON trades
            USING GIN (to_tsvector('english', title || ' ' || description));
    """)
    op.execute("CREATE INDEX idx_trades_in_wishlist ON trades USING GIN (in_wishlist);")
    op.execute("""
        CREATE TRIGGER trg_trades_updated_at
            BEFORE UPDATE ON trades
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE trades IS 'Barter listings with server-computed trade points';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS trades CASCADE;")
