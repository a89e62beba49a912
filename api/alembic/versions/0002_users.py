"""roles, users, sessions, policy rules

Revision ID: 0002
Revises: 0001
Create Date: 2024-01-15 00:00:01.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None

CI = "case_insensitive"

USER_TS = (
    "setweight(to_tsvector('english'::regconfig, coalesce(username, '')), 'A') || "
    "setweight(to_tsvector('russian'::regconfig, coalesce(username, '')), 'A') || "
    "setweight(to_tsvector('english'::regconfig, coalesce(display_name, '')), 'B') || "
    "setweight(to_tsvector('russian'::regconfig, coalesce(display_name, '')), 'B')"
)


def upgrade() -> None:
    op.create_table(
        "roles",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        schema="user",
    )

    op.create_table(
        "users",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("username", sa.String(90, collation=CI), nullable=False, unique=True),
        sa.Column("display_name", sa.String(90), nullable=True),
        sa.Column("email", sa.String(255, collation=CI), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column(
            "role_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("user.roles.id", ondelete="RESTRICT"),
            nullable=True,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("karma", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("profile_pic_key", sa.String(255), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("user_ts", postgresql.TSVECTOR(), sa.Computed(USER_TS, persisted=True)),
        sa.CheckConstraint("karma >= 0", name="users_karma_non_negative"),
        schema="user",
    )
    op.create_index("ix_users_role_id", "users", ["role_id"], schema="user")
    op.create_index(
        "ix_users_user_ts", "users", ["user_ts"], schema="user", postgresql_using="gin"
    )

    op.create_table(
        "sessions",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("user.users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        schema="user",
    )
    op.create_index("ix_sessions_user_id", "sessions", ["user_id"], schema="user")

    for table in ("roles", "users"):
        op.execute(
            f'CREATE TRIGGER {table}_version BEFORE UPDATE ON "user".{table} '
            "FOR EACH ROW EXECUTE FUNCTION increment_version()"
        )

    op.create_table(
        "policy_rules",
        sa.Column("id", sa.Integer(), sa.Identity(always=True), primary_key=True),
        sa.Column("ptype", sa.String(1), nullable=False),
        sa.Column("v0", sa.String(255), nullable=False),
        sa.Column("v1", sa.String(255), nullable=False),
        sa.Column("v2", sa.String(255), nullable=False, server_default=""),
        sa.UniqueConstraint("ptype", "v0", "v1", "v2", name="uq_policy_rules_tuple"),
    )
    op.create_index("ix_policy_rules_v1", "policy_rules", ["v1"])


def downgrade() -> None:
    op.drop_table("policy_rules")
    op.drop_table("sessions", schema="user")
    op.drop_table("users", schema="user")
    op.drop_table("roles", schema="user")
