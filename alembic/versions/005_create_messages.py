"""005: create messages table

Revision ID: 005
Revises: 004
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # clock_timestamp(): messages inserted in one transaction still get distinct times
    op.execute("""
        CREATE TABLE messages (
            id              UUID            PRIMARY KEY,
            conversation_id UUID            NOT NULL REFERENCES conversations (id) ON DELETE CASCADE,
            sender_id       UUID            NOT NULL REFERENCES users (id),
            content         TEXT            NOT NULL,
            type            VARCHAR(20)     NOT NULL DEFAULT 'text',
            read_by         TEXT[]          NOT NULL DEFAULT '{}',
            metadata        JSONB           NOT NULL DEFAULT '{}',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT clock_timestamp(),
            CONSTRAINT ck_messages_content  CHECK (LENGTH(content) >= 1),
            CONSTRAINT ck_messages_type     CHECK (
                type IN ('text', 'image', 'trade_offer', 'system')
            )
        );
    """)
    op.execute(
        "CREATE INDEX idx_messages_conversation ON messages (conversation_id, created_at, id);"
    )
    op.execute("""
        ALTER TABLE conversations
            ADD CONSTRAINT fk_conversations_last_message
            FOREIGN KEY (last_message_id) REFERENCES messages (id) ON DELETE SET NULL;
    """)
    op.execute("COMMENT ON TABLE messages IS 'Messages within a conversation';")


def downgrade() -> None:
    op.execute(
        "ALTER TABLE conversations DROP CONSTRAINT IF EXISTS fk_conversations_last_message;"
    )
    op.execute("DROP TABLE IF EXISTS messages CASCADE;")
