"""Create the location_pings table.

Revision ID: 0001_location_pings
Revises:
Create Date: 2026-10-19

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision = "0001_location_pings"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "location_pings",
        sa.Column(
            "id",
            sa.BigInteger().with_variant(sa.Integer(), "sqlite"),
            primary_key=True,
            autoincrement=True,
            nullable=False,
        ),
        sa.Column("ping_id", sa.String(128), nullable=True),
        sa.Column("geohash8", sa.String(32), nullable=False),
        sa.Column("city", sa.Text(), nullable=True),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("lat_error", sa.Float(), nullable=False),
        sa.Column("lng_error", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("ping_id", name="uq_location_pings_ping_id"),
    )
    op.create_index(
        "ix_location_pings_geohash8", "location_pings", ["geohash8"], unique=False
    )
    op.create_index("ix_location_pings_city", "location_pings", ["city"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_location_pings_city", table_name="location_pings")
    op.drop_index("ix_location_pings_geohash8", table_name="location_pings")
    op.drop_table("location_pings")
