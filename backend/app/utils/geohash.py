"""Geohash encode/decode.

Decoding walks the 5-bit groups of each character most-significant first,
alternating axes across the whole string and starting with longitude. The
result carries the cell center plus half-width errors per axis.
"""

from __future__ import annotations

import dataclasses
import math

_BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
_DECODE_MAP = {c: i for i, c in enumerate(_BASE32)}
_BIT_MASKS = (16, 8, 4, 2, 1)


class GeohashError(ValueError):
    """Base class for codec failures; `code` is a stable machine identifier."""

    code = "GEOHASH_ERROR"


class InvalidCharacterError(GeohashError):
    code = "GEOHASH_INVALID_CHARACTER"

    def __init__(self, char: str, position: int) -> None:
        super().__init__(f"Invalid geohash character {char!r} at position {position}")
        self.char = char
        self.position = position


class EmptyInputError(GeohashError):
    code = "GEOHASH_EMPTY_INPUT"

    def __init__(self) -> None:
        super().__init__("geohash must be non-empty")


class InvalidPrecisionError(GeohashError):
    code = "GEOHASH_INVALID_PRECISION"

    def __init__(self, precision: int) -> None:
        super().__init__(f"precision must be > 0, got {precision}")
        self.precision = precision


class OutOfRangeError(GeohashError):
    code = "GEOHASH_OUT_OF_RANGE"

    def __init__(self, latitude: float, longitude: float) -> None:
        super().__init__(
            f"Coordinate out of range: latitude={latitude!r} longitude={longitude!r}"
        )
        self.latitude = latitude
        self.longitude = longitude


@dataclasses.dataclass(frozen=True, slots=True)
class DecodedLocation:
    lat: float
    lng: float
    lat_error: float
    lng_error: float


def _valid_coordinate(latitude: float, longitude: float) -> bool:
    if math.isnan(latitude) or math.isnan(longitude):
        return False
    return -90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0


def encode(latitude: float, longitude: float, *, precision: int = 8) -> str:
    if precision <= 0:
        raise InvalidPrecisionError(precision)
    if not _valid_coordinate(latitude, longitude):
        raise OutOfRangeError(latitude, longitude)

    lat_min, lat_max = -90.0, 90.0
    lon_min, lon_max = -180.0, 180.0

    bit = 0
    ch = 0
    even = True
    out: list[str] = []

    while len(out) < precision:
        if even:
            mid = (lon_min + lon_max) / 2.0
            if longitude >= mid:
                ch |= _BIT_MASKS[bit]
                lon_min = mid
            else:
                lon_max = mid
        else:
            mid = (lat_min + lat_max) / 2.0
            if latitude >= mid:
                ch |= _BIT_MASKS[bit]
                lat_min = mid
            else:
                lat_max = mid

        even = not even
        if bit < 4:
            bit += 1
            continue

        out.append(_BASE32[ch])
        bit = 0
        ch = 0

    return "".join(out)


def decode_bbox(geohash: str) -> tuple[float, float, float, float]:
    """Return (lat_min, lat_max, lon_min, lon_max) for geohash."""

    if not geohash:
        raise EmptyInputError()

    lat_min, lat_max = -90.0, 90.0
    lon_min, lon_max = -180.0, 180.0
    even = True

    for pos, c in enumerate(geohash):
        try:
            cd = _DECODE_MAP[c.lower()]
        except KeyError as e:
            raise InvalidCharacterError(c, pos) from e

        for mask in _BIT_MASKS:
            if even:
                mid = (lon_min + lon_max) / 2.0
                if cd & mask:
                    lon_min = mid
                else:
                    lon_max = mid
            else:
                mid = (lat_min + lat_max) / 2.0
                if cd & mask:
                    lat_min = mid
                else:
                    lat_max = mid
            even = not even

    return lat_min, lat_max, lon_min, lon_max


def decode(geohash: str) -> DecodedLocation:
    lat_min, lat_max, lon_min, lon_max = decode_bbox(geohash)
    return DecodedLocation(
        lat=(lat_min + lat_max) / 2.0,
        lng=(lon_min + lon_max) / 2.0,
        lat_error=(lat_max - lat_min) / 2.0,
        lng_error=(lon_max - lon_min) / 2.0,
    )


def decode_center(geohash: str) -> tuple[float, float]:
    loc = decode(geohash)
    return loc.lat, loc.lng
