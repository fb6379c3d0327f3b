from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ValidationError, field_validator

from app.utils.geohash import GeohashError, decode


logger = logging.getLogger(__name__)


ErrorPolicy = Literal["skip", "abort"]


class PingRow(BaseModel):
    """One record of a ping export (one spreadsheet row)."""

    geohash8: str
    ping_id: str | None = None
    city: str | None = None
    recorded_at: dt.datetime | None = None

    @field_validator("ping_id", mode="before")
    @classmethod
    def _ping_id_to_str(cls, value: Any) -> Any:
        # Spreadsheet exports often hand row keys over as numbers.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


@dataclass(frozen=True)
class DecodedPing:
    geohash8: str
    latitude: float
    longitude: float
    lat_error: float
    lng_error: float
    ping_id: str | None = None
    city: str | None = None
    recorded_at: dt.datetime | None = None


@dataclass(frozen=True)
class RejectedRow:
    index: int
    ping_id: str | None
    reason_code: str
    message: str


@dataclass
class DecodedBatch:
    accepted: list[DecodedPing] = field(default_factory=list)
    rejected: list[RejectedRow] = field(default_factory=list)


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float


class PingBatchAbortedError(Exception):
    """Raised under the `abort` policy on the first row that cannot be decoded."""

    def __init__(self, rejected: RejectedRow) -> None:
        super().__init__(
            f"Ping batch aborted at row {rejected.index}: {rejected.message}"
        )
        self.rejected = rejected


def normalize_city(value: str | None) -> str | None:
    if value is None:
        return None
    city = value.strip().lower()
    return city or None


def _raw_ping_id(raw: Any) -> str | None:
    if isinstance(raw, dict):
        value = raw.get("ping_id")
        if value is not None:
            return str(value)
    return None


def decode_ping_row(row: PingRow) -> DecodedPing:
    """Decode a single validated row; codec errors propagate to the caller."""

    geohash = row.geohash8.strip().lower()
    loc = decode(geohash)
    return DecodedPing(
        geohash8=geohash,
        latitude=loc.lat,
        longitude=loc.lng,
        lat_error=loc.lat_error,
        lng_error=loc.lng_error,
        ping_id=row.ping_id,
        city=normalize_city(row.city),
        recorded_at=row.recorded_at,
    )


def decode_ping_rows(
    rows: Iterable[Any], *, policy: ErrorPolicy = "skip"
) -> DecodedBatch:
    """Decode raw ping rows into coordinates.

    Rows stay independent of each other: a bad row is either recorded in
    `rejected` (``skip``) or stops the whole batch with
    `PingBatchAbortedError` (``abort``).
    """

    batch = DecodedBatch()

    for index, raw in enumerate(rows):
        rejected: RejectedRow | None = None
        try:
            row = PingRow.model_validate(raw)
            batch.accepted.append(decode_ping_row(row))
        except ValidationError as exc:
            msg = "; ".join(err.get("msg", "invalid") for err in exc.errors())
            rejected = RejectedRow(
                index=index,
                ping_id=_raw_ping_id(raw),
                reason_code="PING_ROW_INVALID",
                message=msg,
            )
        except GeohashError as exc:
            rejected = RejectedRow(
                index=index,
                ping_id=_raw_ping_id(raw),
                reason_code=exc.code,
                message=str(exc),
            )

        if rejected is None:
            continue
        if policy == "abort":
            logger.warning(
                "Aborting ping batch at row %d (%s): %s",
                rejected.index,
                rejected.reason_code,
                rejected.message,
            )
            raise PingBatchAbortedError(rejected)
        batch.rejected.append(rejected)

    logger.info(
        "Decoded ping batch: accepted=%d rejected=%d",
        len(batch.accepted),
        len(batch.rejected),
    )
    return batch


def filter_by_cities(
    pings: Iterable[DecodedPing], cities: Sequence[str] | None
) -> list[DecodedPing]:
    wanted = {c for c in (normalize_city(x) for x in cities or ()) if c}
    if not wanted:
        return list(pings)
    return [p for p in pings if p.city in wanted]


def bounding_box(pings: Iterable[DecodedPing]) -> BoundingBox | None:
    """Smallest lat/lng box containing every decoded center, or None if empty."""

    box: BoundingBox | None = None
    for p in pings:
        if box is None:
            box = BoundingBox(p.latitude, p.longitude, p.latitude, p.longitude)
            continue
        box = BoundingBox(
            min_lat=min(box.min_lat, p.latitude),
            min_lng=min(box.min_lng, p.longitude),
            max_lat=max(box.max_lat, p.latitude),
            max_lng=max(box.max_lng, p.longitude),
        )
    return box


def _isoformat_z(value: dt.datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    s = value.astimezone(dt.timezone.utc).isoformat()
    return s.removesuffix("+00:00") + "Z"


def to_feature_collection(pings: Iterable[DecodedPing]) -> dict[str, Any]:
    """GeoJSON FeatureCollection of ping centers for a map renderer."""

    features: list[dict[str, Any]] = []
    for p in pings:
        features.append(
            {
                "type": "Feature",
                "geometry": {
                    "type": "Point",
                    "coordinates": [p.longitude, p.latitude],
                },
                "properties": {
                    "ping_id": p.ping_id,
                    "geohash8": p.geohash8,
                    "city": p.city,
                    "recorded_at": _isoformat_z(p.recorded_at),
                    "lat_error": p.lat_error,
                    "lng_error": p.lng_error,
                },
            }
        )

    return {
        "type": "FeatureCollection",
        "features": features,
    }
