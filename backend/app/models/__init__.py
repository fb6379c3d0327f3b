"""SQLAlchemy ORM models.

Importing this module should register all tables on Base.metadata.
"""

from __future__ import annotations

from app.models.location_ping import LocationPing

__all__ = [
    "LocationPing",
]
