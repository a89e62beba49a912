"""demo blobs and demo topic record

Revision ID: 0005
Revises: 0004
Create Date: 2024-01-15 00:00:04.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0005"
down_revision = "0004"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("demos", sa.Column("object_key", sa.String(255), nullable=True), schema="demo")
    op.add_column("demos", sa.Column("thumbnail_key", sa.String(255), nullable=True), schema="demo")

    # Which topic holds demo threads; the seed writes the single row
    op.create_table(
        "demo_topic",
        sa.Column(
            "topic_id",
            sa.Integer(),
            sa.ForeignKey("forum.topics.id", ondelete="RESTRICT"),
            primary_key=True,
        ),
        schema="forum",
    )


def downgrade() -> None:
    op.drop_table("demo_topic", schema="forum")
    op.drop_column("demos", "thumbnail_key", schema="demo")
    op.drop_column("demos", "object_key", schema="demo")
