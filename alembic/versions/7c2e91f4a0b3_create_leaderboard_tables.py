"""Create leaderboards, leaderboard_entries and labels tables

Revision ID: 7c2e91f4a0b3
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7c2e91f4a0b3"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the leaderboard, entry and label tables."""
    op.create_table(
        "leaderboards",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("name", sa.String(64), nullable=False, unique=True),
    )

    op.create_table(
        "leaderboard_entries",
        sa.Column("username", sa.String(128), primary_key=True),
        sa.Column(
            "leaderboard_id",
            sa.String(26),
            sa.ForeignKey("leaderboards.id"),
            nullable=False,
        ),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index(
        "ix_leaderboard_entries_ranking",
        "leaderboard_entries",
        ["leaderboard_id", "points"],
    )

    op.create_table(
        "labels",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("name", sa.String(256), nullable=False),
    )


def downgrade() -> None:
    """Drop the leaderboard tables."""
    op.drop_table("labels")
    op.drop_index("ix_leaderboard_entries_ranking", table_name="leaderboard_entries")
    op.drop_table("leaderboard_entries")
    op.drop_table("leaderboards")
