from __future__ import annotations

from fastapi import APIRouter

from app.api.geohash import router as geohash_router
from app.api.health import router as health_router
from app.api.pings import router as pings_router


api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(geohash_router)
api_router.include_router(pings_router)
