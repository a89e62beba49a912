"""forum topics, threads, messages

Revision ID: 0003
Revises: 0002
Create Date: 2024-01-15 00:00:02.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0003"
down_revision = "0002"
branch_labels = None
depends_on = None

TAGS = postgresql.ARRAY(sa.String(255, collation="case_insensitive"))


def search_vector(title: str, body: str | None = None) -> str:
    parts = [
        f"setweight(to_tsvector('english'::regconfig, coalesce({title}, '')), 'A')",
        f"setweight(to_tsvector('russian'::regconfig, coalesce({title}, '')), 'A')",
    ]
    if body:
        parts += [
            f"setweight(to_tsvector('english'::regconfig, coalesce({body}, '')), 'B')",
            f"setweight(to_tsvector('russian'::regconfig, coalesce({body}, '')), 'B')",
        ]
    return " || ".join(parts)


def counters() -> list[sa.Column]:
    return [
        sa.Column("upvotes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("downvotes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("views", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("rating", sa.Integer(), sa.Computed("upvotes - downvotes", persisted=True)),
    ]


def timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "topics",
        sa.Column("id", sa.Integer(), sa.Identity(always=True), primary_key=True),
        sa.Column("name", sa.String(90), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        schema="forum",
    )

    op.create_table(
        "threads",
        sa.Column("id", sa.Integer(), sa.Identity(always=True), primary_key=True),
        sa.Column("title", sa.String(90), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "topic_id",
            sa.Integer(),
            sa.ForeignKey("forum.topics.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("tags", TAGS, nullable=True),
        *timestamps(),
        *counters(),
        sa.Column("thread_ts", postgresql.TSVECTOR(), sa.Computed(search_vector("title"), persisted=True)),
        sa.CheckConstraint(
            "upvotes >= 0 AND downvotes >= 0 AND views >= 0", name="threads_counters_non_negative"
        ),
        schema="forum",
    )
    op.create_index("ix_threads_user_id", "threads", ["user_id"], schema="forum")
    op.create_index("ix_threads_topic_id", "threads", ["topic_id"], schema="forum")
    op.create_index(
        "ix_threads_thread_ts", "threads", ["thread_ts"], schema="forum", postgresql_using="gin"
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), sa.Identity(always=True), primary_key=True),
        sa.Column(
            "thread_id",
            sa.Integer(),
            sa.ForeignKey("forum.threads.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(90), nullable=False),
        sa.Column("body", sa.Text(), nullable=False, server_default=""),
        sa.Column("tags", TAGS, nullable=True),
        *timestamps(),
        *counters(),
        sa.Column(
            "message_ts", postgresql.TSVECTOR(), sa.Computed(search_vector("title", "body"), persisted=True)
        ),
        sa.CheckConstraint(
            "upvotes >= 0 AND downvotes >= 0 AND views >= 0", name="messages_counters_non_negative"
        ),
        schema="forum",
    )
    op.create_index("ix_messages_thread_id", "messages", ["thread_id"], schema="forum")
    op.create_index("ix_messages_user_id", "messages", ["user_id"], schema="forum")
    op.create_index(
        "ix_messages_message_ts", "messages", ["message_ts"], schema="forum", postgresql_using="gin"
    )

    op.execute(
        "CREATE TRIGGER topics_version BEFORE UPDATE ON forum.topics "
        "FOR EACH ROW EXECUTE FUNCTION increment_version()"
    )
    # Read-side view increments leave the version alone
    for table in ("threads", "messages"):
        op.execute(
            f"CREATE TRIGGER {table}_version BEFORE UPDATE ON forum.{table} "
            "FOR EACH ROW WHEN (OLD.views = NEW.views) EXECUTE FUNCTION increment_version()"
        )


def downgrade() -> None:
    op.drop_table("messages", schema="forum")
    op.drop_table("threads", schema="forum")
    op.drop_table("topics", schema="forum")
