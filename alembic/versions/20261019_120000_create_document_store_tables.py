"""Create player view and tournament document tables

Revision ID: 3c8e5a1f0b27
Revises:
Create Date: 2026-10-19 12:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# Revision identifiers, used by Alembic.
revision: str = "3c8e5a1f0b27"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_DOCUMENT = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade() -> None:
    op.create_table(
        "player_views",
        sa.Column("player_id", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("federation", sa.String(length=3), nullable=True),
        sa.Column("standard_rating", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rapid_rating", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("blitz_rating", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("view_json", JSON_DOCUMENT, nullable=False),
        sa.Column(
            "last_updated",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("player_id"),
    )

    op.create_table(
        "tournament_documents",
        sa.Column("tournament_id", sa.String(length=20), nullable=False),
        sa.Column("area_key", sa.String(length=120), nullable=True),
        sa.Column("name", sa.String(length=300), nullable=True),
        sa.Column("url", sa.String(length=500), nullable=True),
        sa.Column("end_date", sa.String(length=10), nullable=True),
        sa.Column("data_json", JSON_DOCUMENT, nullable=False),
        sa.Column("edited_fields", JSON_DOCUMENT, nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("tournament_id"),
    )
    op.create_index("idx_tournament_documents_area", "tournament_documents", ["area_key"], unique=False)
    op.create_index("idx_tournament_documents_end_date", "tournament_documents", ["end_date"], unique=False)


def downgrade() -> None:
    op.drop_index("idx_tournament_documents_end_date", table_name="tournament_documents")
    op.drop_index("idx_tournament_documents_area", table_name="tournament_documents")
    op.drop_table("tournament_documents")
    op.drop_table("player_views")
