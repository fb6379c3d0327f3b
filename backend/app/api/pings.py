from __future__ import annotations

import dataclasses
import datetime as dt
import logging
from typing import Any, Literal

import sqlalchemy as sa
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import APIError
from app.core.settings import Settings, get_settings
from app.db.base import utcnow
from app.db.session import get_db
from app.models.location_ping import LocationPing
from app.services.pings import (
    DecodedPing,
    PingBatchAbortedError,
    bounding_box,
    decode_ping_rows,
    normalize_city,
    to_feature_collection,
)


router = APIRouter(prefix="/v1/pings", tags=["pings"])


logger = logging.getLogger(__name__)

# Keeps each INSERT well under SQLite's bound-parameter limit.
_INSERT_CHUNK = 500


class PingBatchRequest(BaseModel):
    # Keep items untyped so one bad row doesn't 422 the whole batch.
    items: list[Any] = Field(default_factory=list)


class PingRejectedItem(BaseModel):
    index: int
    ping_id: str | None
    reason_code: str
    message: str


class PingBatchResponse(BaseModel):
    accepted_count: int
    accepted_ids: list[str]
    rejected: list[PingRejectedItem]


class PingItem(BaseModel):
    ping_id: str | None
    geohash8: str
    city: str | None
    recorded_at: str | None
    latitude: float
    longitude: float
    lat_error: float
    lng_error: float


class PingQueryResponse(BaseModel):
    items: list[PingItem]


class BoundingBoxOut(BaseModel):
    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float


class PingBBoxResponse(BaseModel):
    count: int
    bbox: BoundingBoxOut | None


def _isoformat_z(value: dt.datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    s = value.astimezone(dt.timezone.utc).isoformat()
    return s.removesuffix("+00:00") + "Z"


def _dialect_name(db: AsyncSession) -> str:
    bind = db.bind or db.get_bind()
    if bind is None or getattr(bind, "dialect", None) is None:
        return ""
    return str(bind.dialect.name or "")


def _idempotent_insert_stmt(
    *, dialect: str, rows: list[dict[str, Any]]
) -> sa.sql.Insert:
    if dialect == "postgresql":
        stmt = pg_insert(LocationPing).values(rows)
        return stmt.on_conflict_do_nothing(index_elements=["ping_id"])
    if dialect == "sqlite":
        return sqlite_insert(LocationPing).values(rows).prefix_with("OR IGNORE")
    raise APIError(
        code="PINGS_UNSUPPORTED_DIALECT",
        message=f"Unsupported database dialect: {dialect!r}",
        status_code=500,
    )


def _to_row(ping: DecodedPing, *, created_at: dt.datetime) -> dict[str, Any]:
    recorded_at = ping.recorded_at
    if recorded_at is not None and recorded_at.tzinfo is None:
        recorded_at = recorded_at.replace(tzinfo=dt.timezone.utc)
    return {
        "ping_id": ping.ping_id,
        "geohash8": ping.geohash8,
        "city": ping.city,
        "recorded_at": recorded_at,
        "latitude": ping.latitude,
        "longitude": ping.longitude,
        "lat_error": ping.lat_error,
        "lng_error": ping.lng_error,
        "created_at": created_at,
    }


def _to_decoded(p: LocationPing) -> DecodedPing:
    return DecodedPing(
        geohash8=p.geohash8,
        latitude=float(p.latitude),
        longitude=float(p.longitude),
        lat_error=float(p.lat_error),
        lng_error=float(p.lng_error),
        ping_id=p.ping_id,
        city=p.city,
        recorded_at=p.recorded_at,
    )


def _select_pings(cities: list[str] | None) -> sa.Select[tuple[LocationPing]]:
    stmt = sa.select(LocationPing)
    wanted = sorted({c for c in (normalize_city(x) for x in cities or ()) if c})
    if wanted:
        stmt = stmt.where(LocationPing.city.in_(wanted))
    return stmt.order_by(LocationPing.id.asc())


@router.post("/batch", response_model=PingBatchResponse)
async def batch_upload(
    payload: PingBatchRequest,
    policy: Literal["skip", "abort"] | None = Query(None),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
) -> PingBatchResponse:
    if len(payload.items) > settings.max_batch_items:
        raise APIError(
            code="PING_BATCH_TOO_LARGE",
            message=f"Batch exceeds {settings.max_batch_items} items",
            status_code=413,
            details={"max_batch_items": settings.max_batch_items},
        )

    try:
        batch = decode_ping_rows(
            payload.items, policy=policy or settings.batch_error_policy
        )
    except PingBatchAbortedError as exc:
        raise APIError(
            code="PING_BATCH_ABORTED",
            message=str(exc),
            status_code=400,
            details=dataclasses.asdict(exc.rejected),
        ) from exc

    rejected = [PingRejectedItem(**dataclasses.asdict(r)) for r in batch.rejected]
    if not batch.accepted:
        return PingBatchResponse(accepted_count=0, accepted_ids=[], rejected=rejected)

    # Repeated ping_ids within one batch collapse onto the first occurrence.
    unique: list[DecodedPing] = []
    seen_ids: set[str] = set()
    for p in batch.accepted:
        if p.ping_id is not None:
            if p.ping_id in seen_ids:
                continue
            seen_ids.add(p.ping_id)
        unique.append(p)

    created_at = utcnow()
    rows = [_to_row(p, created_at=created_at) for p in unique]
    dialect = _dialect_name(db)
    for start in range(0, len(rows), _INSERT_CHUNK):
        chunk = rows[start : start + _INSERT_CHUNK]
        await db.execute(_idempotent_insert_stmt(dialect=dialect, rows=chunk))
    await db.commit()

    logger.info(
        "Stored ping batch: accepted=%d rejected=%d", len(rows), len(rejected)
    )
    return PingBatchResponse(
        accepted_count=len(rows),
        accepted_ids=[p.ping_id for p in unique if p.ping_id is not None],
        rejected=rejected,
    )


@router.get("/query", response_model=PingQueryResponse)
async def query_pings(
    *,
    city: list[str] | None = Query(None, description="Repeatable city filter"),
    limit: int = Query(1000, ge=1, le=5000),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> PingQueryResponse:
    stmt = _select_pings(city).limit(limit).offset(offset)
    rows = (await db.execute(stmt)).scalars().all()
    items = [
        PingItem(
            ping_id=p.ping_id,
            geohash8=p.geohash8,
            city=p.city,
            recorded_at=_isoformat_z(p.recorded_at),
            latitude=float(p.latitude),
            longitude=float(p.longitude),
            lat_error=float(p.lat_error),
            lng_error=float(p.lng_error),
        )
        for p in rows
    ]
    return PingQueryResponse(items=items)


@router.get("/bbox", response_model=PingBBoxResponse)
async def pings_bbox(
    *,
    city: list[str] | None = Query(None, description="Repeatable city filter"),
    db: AsyncSession = Depends(get_db),
) -> PingBBoxResponse:
    rows = (await db.execute(_select_pings(city))).scalars().all()
    box = bounding_box(_to_decoded(p) for p in rows)
    return PingBBoxResponse(
        count=len(rows),
        bbox=BoundingBoxOut(**dataclasses.asdict(box)) if box is not None else None,
    )


@router.get("/geojson")
async def pings_geojson(
    *,
    city: list[str] | None = Query(None, description="Repeatable city filter"),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    rows = (await db.execute(_select_pings(city))).scalars().all()
    return to_feature_collection(_to_decoded(p) for p in rows)
