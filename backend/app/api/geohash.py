from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.core.errors import APIError
from app.core.settings import Settings, get_settings
from app.utils.geohash import decode, decode_bbox, encode


router = APIRouter(prefix="/v1/geohash", tags=["geohash"])


class GeohashBBoxOut(BaseModel):
    lat_min: float
    lat_max: float
    lon_min: float
    lon_max: float


class GeohashDecodeResponse(BaseModel):
    geohash: str
    latitude: float
    longitude: float
    lat_error: float
    lng_error: float
    bbox: GeohashBBoxOut


class GeohashEncodeResponse(BaseModel):
    geohash: str
    precision: int


@router.get("/decode/{geohash}", response_model=GeohashDecodeResponse)
async def decode_geohash(geohash: str) -> GeohashDecodeResponse:
    # Codec errors surface through the GeohashError handler in create_app().
    loc = decode(geohash)
    lat_min, lat_max, lon_min, lon_max = decode_bbox(geohash)
    return GeohashDecodeResponse(
        geohash=geohash.lower(),
        latitude=loc.lat,
        longitude=loc.lng,
        lat_error=loc.lat_error,
        lng_error=loc.lng_error,
        bbox=GeohashBBoxOut(
            lat_min=lat_min, lat_max=lat_max, lon_min=lon_min, lon_max=lon_max
        ),
    )


@router.get("/encode", response_model=GeohashEncodeResponse)
async def encode_geohash(
    *,
    latitude: float = Query(...),
    longitude: float = Query(...),
    precision: int | None = Query(None),
    settings: Settings = Depends(get_settings),
) -> GeohashEncodeResponse:
    p = settings.default_precision if precision is None else precision
    if p > settings.max_precision:
        raise APIError(
            code="GEOHASH_PRECISION_TOO_LARGE",
            message=f"precision must be <= {settings.max_precision}",
            status_code=400,
            details={"precision": p, "max_precision": settings.max_precision},
        )
    return GeohashEncodeResponse(
        geohash=encode(latitude, longitude, precision=p),
        precision=p,
    )
