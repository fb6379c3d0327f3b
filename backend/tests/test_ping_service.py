from __future__ import annotations

import datetime as dt

import pytest

from app.services.pings import (
    BoundingBox,
    DecodedPing,
    PingBatchAbortedError,
    bounding_box,
    decode_ping_rows,
    filter_by_cities,
    normalize_city,
    to_feature_collection,
)
from app.utils.geohash import decode


def _ping(lat: float, lng: float, *, city: str | None = None) -> DecodedPing:
    return DecodedPing(
        geohash8="9q5cfj59",
        latitude=lat,
        longitude=lng,
        lat_error=1e-4,
        lng_error=2e-4,
        city=city,
    )


def test_decode_rows_augments_with_coordinates() -> None:
    rows = [
        {"ping_id": 1, "geohash8": "9q5cfj59", "city": " Los Angeles "},
        {"ping_id": "p-2", "geohash8": "DR5REGW3", "city": "New York"},
    ]

    batch = decode_ping_rows(rows)

    assert batch.rejected == []
    first, second = batch.accepted
    loc = decode("9q5cfj59")
    assert first.ping_id == "1"
    assert first.city == "los angeles"
    assert (first.latitude, first.longitude) == (loc.lat, loc.lng)
    assert (first.lat_error, first.lng_error) == (loc.lat_error, loc.lng_error)
    assert second.geohash8 == "dr5regw3"
    assert second.city == "new york"


def test_decode_rows_skip_policy_collects_rejections() -> None:
    rows = [
        {"ping_id": "ok", "geohash8": "9q5cfj59"},
        {"ping_id": "bad-char", "geohash8": "9q5cfja9"},
        {"ping_id": "empty", "geohash8": "   "},
        {"ping_id": "missing"},
        "not-a-row",
        {"ping_id": "ok-2", "geohash8": "9q5cfj5b"},
    ]

    batch = decode_ping_rows(rows, policy="skip")

    assert [p.ping_id for p in batch.accepted] == ["ok", "ok-2"]
    by_index = {r.index: r for r in batch.rejected}
    assert set(by_index) == {1, 2, 3, 4}
    assert by_index[1].reason_code == "GEOHASH_INVALID_CHARACTER"
    assert by_index[1].ping_id == "bad-char"
    assert by_index[2].reason_code == "GEOHASH_EMPTY_INPUT"
    assert by_index[3].reason_code == "PING_ROW_INVALID"
    assert by_index[4].reason_code == "PING_ROW_INVALID"
    assert by_index[4].ping_id is None


def test_decode_rows_abort_policy_stops_on_first_bad_row() -> None:
    rows = [
        {"ping_id": "ok", "geohash8": "9q5cfj59"},
        {"ping_id": "bad", "geohash8": "oooo"},
        {"ping_id": "never-reached", "geohash8": "!"},
    ]

    with pytest.raises(PingBatchAbortedError) as exc_info:
        decode_ping_rows(rows, policy="abort")

    rejected = exc_info.value.rejected
    assert rejected.index == 1
    assert rejected.ping_id == "bad"
    assert rejected.reason_code == "GEOHASH_INVALID_CHARACTER"


def test_decode_rows_keeps_recorded_at() -> None:
    batch = decode_ping_rows(
        [{"geohash8": "9q5cfj59", "recorded_at": "2026-03-01T08:30:00Z"}]
    )
    assert batch.accepted[0].recorded_at == dt.datetime(
        2026, 3, 1, 8, 30, tzinfo=dt.timezone.utc
    )


def test_normalize_city() -> None:
    assert normalize_city(None) is None
    assert normalize_city("   ") is None
    assert normalize_city(" Chicago ") == "chicago"


def test_filter_by_cities_is_case_insensitive() -> None:
    pings = [
        _ping(34.0, -118.0, city="los angeles"),
        _ping(40.7, -74.0, city="new york"),
        _ping(41.8, -87.6, city=None),
    ]

    kept = filter_by_cities(pings, ["Los Angeles", " NEW YORK "])
    assert [p.city for p in kept] == ["los angeles", "new york"]

    assert filter_by_cities(pings, []) == pings
    assert filter_by_cities(pings, None) == pings


def test_bounding_box() -> None:
    pings = [_ping(34.0, -118.5), _ping(34.2, -118.1), _ping(33.9, -118.3)]
    assert bounding_box(pings) == BoundingBox(
        min_lat=33.9, min_lng=-118.5, max_lat=34.2, max_lng=-118.1
    )


def test_bounding_box_single_point_and_empty() -> None:
    assert bounding_box([_ping(1.0, 2.0)]) == BoundingBox(1.0, 2.0, 1.0, 2.0)
    assert bounding_box([]) is None


def test_feature_collection_uses_lng_lat_order() -> None:
    ping = DecodedPing(
        geohash8="9q5cfj59",
        latitude=34.08,
        longitude=-118.38,
        lat_error=1e-4,
        lng_error=2e-4,
        ping_id="p1",
        city="los angeles",
        recorded_at=dt.datetime(2026, 3, 1, 8, 30, tzinfo=dt.timezone.utc),
    )

    fc = to_feature_collection([ping])

    assert fc["type"] == "FeatureCollection"
    (feature,) = fc["features"]
    assert feature["geometry"] == {"type": "Point", "coordinates": [-118.38, 34.08]}
    assert feature["properties"] == {
        "ping_id": "p1",
        "geohash8": "9q5cfj59",
        "city": "los angeles",
        "recorded_at": "2026-03-01T08:30:00Z",
        "lat_error": 1e-4,
        "lng_error": 2e-4,
    }
