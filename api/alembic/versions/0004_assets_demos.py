"""assets and demos

Revision ID: 0004
Revises: 0003
Create Date: 2024-01-15 00:00:03.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0004"
down_revision = "0003"
branch_labels = None
depends_on = None

TAGS = postgresql.ARRAY(sa.String(255, collation="case_insensitive"))


def search_vector(title: str, body: str) -> str:
    return " || ".join(
        [
            f"setweight(to_tsvector('english'::regconfig, coalesce({title}, '')), 'A')",
            f"setweight(to_tsvector('russian'::regconfig, coalesce({title}, '')), 'A')",
            f"setweight(to_tsvector('english'::regconfig, coalesce({body}, '')), 'B')",
            f"setweight(to_tsvector('russian'::regconfig, coalesce({body}, '')), 'B')",
        ]
    )


def upgrade() -> None:
    op.create_table(
        "assets",
        sa.Column("id", sa.Integer(), sa.Identity(always=True), primary_key=True),
        sa.Column("name", sa.String(90), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("link", sa.String(2048), nullable=True),
        sa.Column("object_key", sa.String(255), nullable=True),
        sa.Column("tags", TAGS, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "asset_ts", postgresql.TSVECTOR(), sa.Computed(search_vector("name", "description"), persisted=True)
        ),
        schema="asset",
    )
    op.create_index(
        "ix_assets_asset_ts", "assets", ["asset_ts"], schema="asset", postgresql_using="gin"
    )
    op.execute(
        "CREATE TRIGGER assets_version BEFORE UPDATE ON asset.assets "
        "FOR EACH ROW EXECUTE FUNCTION increment_version()"
    )

    # thread_id points into forum.threads; the link is kept by the application
    op.create_table(
        "demos",
        sa.Column("id", sa.Integer(), sa.Identity(always=True), primary_key=True),
        sa.Column("title", sa.String(90), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("link", sa.String(2048), nullable=False),
        sa.Column("tags", TAGS, nullable=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("thread_id", sa.Integer(), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("upvotes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("downvotes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("views", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("rating", sa.Integer(), sa.Computed("upvotes - downvotes", persisted=True)),
        sa.Column(
            "demo_ts", postgresql.TSVECTOR(), sa.Computed(search_vector("title", "description"), persisted=True)
        ),
        sa.CheckConstraint(
            "upvotes >= 0 AND downvotes >= 0 AND views >= 0", name="demos_counters_non_negative"
        ),
        schema="demo",
    )
    op.create_index("ix_demos_user_id", "demos", ["user_id"], schema="demo")
    op.create_index(
        "ix_demos_demo_ts", "demos", ["demo_ts"], schema="demo", postgresql_using="gin"
    )
    op.execute(
        "CREATE TRIGGER demos_version BEFORE UPDATE ON demo.demos "
        "FOR EACH ROW WHEN (OLD.views = NEW.views) EXECUTE FUNCTION increment_version()"
    )


def downgrade() -> None:
    op.drop_table("demos", schema="demo")
    op.drop_table("assets", schema="asset")
