"""004: create conversations table

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # No updated_at trigger: only a sent message moves a conversation up the list.
    op.execute("""
        CREATE TABLE conversations (
            id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            trade_id        UUID            NOT NULL REFERENCES trades (id) ON DELETE CASCADE,
            user_low_id     UUID            NOT NULL REFERENCES users (id),
            user_high_id    UUID            NOT NULL REFERENCES users (id),
            status          VARCHAR(20)     NOT NULL DEFAULT 'pending',
            last_message_id UUID,
            unread_counts   JSONB           NOT NULL DEFAULT '{}',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_conversations_pair_trade UNIQUE (user_low_id, user_high_id, trade_id),
            CONSTRAINT ck_conversations_pair_order CHECK (user_low_id < user_high_id),
            CONSTRAINT ck_conversations_status  CHECK (
                status IN ('pending', 'active', 'finished', 'archived')
            )
        );
    """)
    op.execute("CREATE INDEX idx_conversations_low ON conversations (user_low_id, updated_at DESC);")
    op.execute(
        "CREATE INDEX idx_conversations_high ON conversations (user_high_id, updated_at DESC);"
    )
    op.execute("COMMENT ON TABLE conversations IS 'One thread per participant pair per trade';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS conversations CASCADE;")
