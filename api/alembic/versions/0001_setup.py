"""collation, version trigger function, schemas

Revision ID: 0001
Revises:
Create Date: 2024-01-15 00:00:00.000000
"""

from __future__ import annotations

from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

SCHEMAS = ("asset", "demo", "forum", '"user"')


def upgrade() -> None:
    # ICU, nondeterministic: 'Tag' = 'tag' for usernames, emails and tags
    op.execute(
        """
        CREATE COLLATION IF NOT EXISTS case_insensitive (
            provider = icu, locale = 'und-u-ks-level2', deterministic = false
        )
        """
    )

    op.execute(
        """
        CREATE OR REPLACE FUNCTION increment_version() RETURNS trigger AS $$
        BEGIN
            NEW.version = OLD.version + 1;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
        """
    )

    for schema in SCHEMAS:
        op.execute(f"CREATE SCHEMA IF NOT EXISTS {schema}")


def downgrade() -> None:
    for schema in reversed(SCHEMAS):
        op.execute(f"DROP SCHEMA IF EXISTS {schema} CASCADE")
    op.execute("DROP FUNCTION IF EXISTS increment_version()")
    op.execute("DROP COLLATION IF EXISTS case_insensitive")
