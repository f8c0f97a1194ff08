"""002: create users table

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE users (
            id                              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            external_id                     VARCHAR(128)    NOT NULL,
            email                           VARCHAR(255)    NOT NULL,
            phone                           VARCHAR(32),
            name                            VARCHAR(128),
            address                         JSONB           NOT NULL DEFAULT '{}',
            interests                       VARCHAR[]       NOT NULL DEFAULT '{}',
            offerings                       VARCHAR[]       NOT NULL DEFAULT '{}',
            trade_points                    INT             NOT NULL DEFAULT 0,
            rating_average                  DOUBLE PRECISION NOT NULL DEFAULT 0,
            rating_count                    INT             NOT NULL DEFAULT 0,
            is_verified                     BOOLEAN         NOT NULL DEFAULT FALSE,
            verification_status             VARCHAR(20)     NOT NULL DEFAULT 'pending',
            verification_submitted_at       TIMESTAMPTZ,
            verification_reviewed_at        TIMESTAMPTZ,
            verification_reviewed_by        UUID,
            verification_rejection_reason   VARCHAR(500),
            role                            VARCHAR(20)     NOT NULL DEFAULT 'user',
            profile_image                   VARCHAR(1024),
            is_active                       BOOLEAN         NOT NULL DEFAULT TRUE,
            last_login                      TIMESTAMPTZ,
            created_at                      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at                      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_users_external_id     UNIQUE (external_id),
            CONSTRAINT uq_users_email           UNIQUE (email),
            CONSTRAINT ck_users_verification    CHECK (
                verification_status IN ('pending', 'under_review', 'approved', 'rejected')
            ),
            CONSTRAINT ck_users_role            CHECK (
                role IN ('user', 'merchant', 'admin', 'superadmin')
            ),
            CONSTRAINT ck_users_rating          CHECK (rating_average BETWEEN 0 AND 5),
            CONSTRAINT ck_users_rating_count    CHECK (rating_count >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_users_updated_at
            BEFORE UPDATE ON users
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE users IS 'Local mirror of identity-provider users';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS users CASCADE;")
