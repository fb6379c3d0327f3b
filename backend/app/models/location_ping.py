from __future__ import annotations

import datetime as dt

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, utcnow


class LocationPing(Base):
    __tablename__ = "location_pings"

    id: Mapped[int] = mapped_column(
        sa.BigInteger().with_variant(sa.Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )

    # Caller-supplied row key; re-posting the same key is a no-op.
    ping_id: Mapped[str | None] = mapped_column(sa.String(128), nullable=True)

    geohash8: Mapped[str] = mapped_column(sa.String(32), nullable=False, index=True)
    # Lower-cased, trimmed.
    city: Mapped[str | None] = mapped_column(sa.Text, nullable=True, index=True)
    recorded_at: Mapped[dt.datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )

    # Decoded cell center (WGS84) and half-width errors in degrees.
    latitude: Mapped[float] = mapped_column(sa.Float, nullable=False)
    longitude: Mapped[float] = mapped_column(sa.Float, nullable=False)
    lat_error: Mapped[float] = mapped_column(sa.Float, nullable=False)
    lng_error: Mapped[float] = mapped_column(sa.Float, nullable=False)

    created_at: Mapped[dt.datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        sa.UniqueConstraint("ping_id", name="uq_location_pings_ping_id"),
    )
