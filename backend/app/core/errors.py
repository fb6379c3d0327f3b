from __future__ import annotations

import dataclasses
import math
from typing import Any

from app.utils.geohash import (
    GeohashError,
    InvalidCharacterError,
    InvalidPrecisionError,
    OutOfRangeError,
)


@dataclasses.dataclass(slots=True)
class APIError(Exception):
    """Error that maps onto the standard JSON error envelope."""

    code: str
    message: str
    status_code: int = 400
    details: Any | None = None


def _json_float(value: float) -> float | str:
    # JSON has no NaN/Infinity; send those as their repr ("nan", "inf").
    return value if math.isfinite(value) else repr(value)


def geohash_error_details(exc: GeohashError) -> dict[str, Any] | None:
    """Structured context for a codec failure (None when there is nothing to add)."""

    if isinstance(exc, InvalidCharacterError):
        return {"char": exc.char, "position": exc.position}
    if isinstance(exc, InvalidPrecisionError):
        return {"precision": exc.precision}
    if isinstance(exc, OutOfRangeError):
        return {
            "latitude": _json_float(exc.latitude),
            "longitude": _json_float(exc.longitude),
        }
    return None


def api_error_from_geohash(exc: GeohashError) -> APIError:
    return APIError(
        code=exc.code,
        message=str(exc),
        status_code=400,
        details=geohash_error_details(exc),
    )


def make_error_payload(
    *, code: str, message: str, trace_id: str | None, details: Any | None
) -> dict[str, Any]:
    return {
        "code": code,
        "message": message,
        "details": details,
        "trace_id": trace_id,
    }
