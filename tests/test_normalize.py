import logging

import pytest

from ride_overlay.errors import InsufficientDataError, MalformedInputError
from ride_overlay.models import RawPoint
from ride_overlay.normalize import coerce_coordinates, normalize_points


def _pt(t, lat=1.0, lon=2.0, ele=10.0, hr=None) -> RawPoint:
    return RawPoint(lat=lat, lon=lon, elevation=ele, time=t, heart_rate=hr)


def test_heart_rate_carry_forward() -> None:
    points, _ = normalize_points([_pt(0, hr=None), _pt(1000, hr=140), _pt(2000, hr=None)])
    assert [p.heart_rate_bpm for p in points] == [None, 140, 140]


def test_heart_rate_chain_carry_forward() -> None:
    points, _ = normalize_points([_pt(0, hr=120), _pt(1000), _pt(2000), _pt(3000, hr="150")])
    assert [p.heart_rate_bpm for p in points] == [120, 120, 120, 150]


def test_trims_leading_and_trailing_invalid_timestamps() -> None:
    raw = [_pt(None), _pt("garbage"), _pt(1000), _pt(2000), _pt(3000), _pt(None)]
    points, report = normalize_points(raw)
    assert [p.timestamp_ms for p in points] == [1000, 2000, 3000]
    assert report.trimmed == 3
    assert report.dropped_time == 0


def test_splices_out_interior_invalid_timestamps() -> None:
    raw = [_pt(1000), _pt(None), _pt(3000), _pt("nope"), _pt(5000)]
    points, report = normalize_points(raw)
    assert [p.timestamp_ms for p in points] == [1000, 3000, 5000]
    assert report.dropped_time == 2
    assert report.trimmed == 0


def test_drops_points_with_bad_coordinates() -> None:
    raw = [
        _pt(1000),
        _pt(2000, lat=None),
        _pt(3000, lon="abc"),
        _pt(4000, lat=float("inf")),
        _pt(5000, lat=91.0),
        _pt(6000),
    ]
    points, report = normalize_points(raw)
    assert [p.timestamp_ms for p in points] == [1000, 6000]
    assert report.dropped_coords == 4


def test_string_coordinates_are_parsed() -> None:
    points, _ = normalize_points([_pt(0, lat="45.5", lon=" -122.6 "), _pt(1000, lat="45.6", lon="-122.7")])
    assert points[0].lat == 45.5
    assert points[0].lon == -122.6


def test_repairs_duplicate_and_out_of_order_timestamps() -> None:
    raw = [_pt(1000), _pt(2000), _pt(2000), _pt(1500), _pt(3000)]
    points, report = normalize_points(raw)
    times = [p.timestamp_ms for p in points]
    assert times == [1000, 2000, 3000]
    assert all(b > a for a, b in zip(times, times[1:]))
    assert report.dropped_unordered == 2


def test_missing_elevation_carries_forward() -> None:
    points, _ = normalize_points([_pt(0, ele=None), _pt(1000, ele="12.5"), _pt(2000, ele="n/a")])
    assert [p.elevation_m for p in points] == [0.0, 12.5, 12.5]


def test_insufficient_data_raises() -> None:
    with pytest.raises(InsufficientDataError):
        normalize_points([_pt(1000)])
    with pytest.raises(InsufficientDataError):
        normalize_points([_pt(None), _pt(None)])
    with pytest.raises(InsufficientDataError):
        normalize_points([])


def test_warns_on_large_drop_rate(caplog: pytest.LogCaptureFixture) -> None:
    raw = [_pt(1000), _pt(2000, lat=None), _pt(3000, lat=None), _pt(4000)]
    with caplog.at_level(logging.WARNING, logger="ride_overlay.normalize"):
        normalize_points(raw, drop_warn_ratio=0.25)
    assert any("Discarded 2 of 4" in r.getMessage() for r in caplog.records)


def test_no_warning_for_clean_input(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="ride_overlay.normalize"):
        normalize_points([_pt(1000), _pt(2000)])
    assert not caplog.records


def test_coerce_coordinates_raises_malformed() -> None:
    with pytest.raises(MalformedInputError):
        coerce_coordinates(RawPoint(lat=None, lon=1.0))
    assert coerce_coordinates(RawPoint(lat="1.5", lon=2)) == (1.5, 2.0)
