import math

import pytest

from ride_overlay.config import SyncConfig
from ride_overlay.errors import InsufficientDataError
from ride_overlay.models import TrackPoint
from ride_overlay.sources import parse_gpx
from ride_overlay.track import AlignmentOffset, Track, build_track, interpolate, is_valid_target

T0_MS = 1_760_279_974_000


def test_midpoint_interpolation(three_points) -> None:
    track = build_track(three_points)
    s = interpolate(track, T0_MS + 5000)
    assert (s.idx_left, s.idx_right) == (0, 1)
    assert s.ratio == pytest.approx(0.5)
    assert s.elevation_m == pytest.approx(105.0)
    assert s.lat == pytest.approx(0.0005)
    assert s.lon == 0.0
    assert s.cumulative_miles == pytest.approx(track.points[1].cumulative_miles / 2)


def test_clamps_before_start_and_after_end(three_points) -> None:
    track = build_track(three_points)

    before = interpolate(track, T0_MS - 5000)
    assert (before.idx_left, before.idx_right, before.ratio) == (0, 0, 0.0)
    assert before.lat == 0.0
    assert before.elevation_m == 100.0

    after = interpolate(track, T0_MS + 25_000)
    assert (after.idx_left, after.idx_right, after.ratio) == (2, 2, 0.0)
    assert after.lat == 0.002
    assert after.elevation_m == 120.0


def test_exact_point_time_uses_left_bracket(three_points) -> None:
    track = build_track(three_points)
    s = interpolate(track, T0_MS + 10_000)
    assert (s.idx_left, s.idx_right) == (0, 1)
    assert s.ratio == pytest.approx(1.0)
    assert s.elevation_m == pytest.approx(110.0)


def test_repeated_queries_are_identical(steady_ride) -> None:
    track = build_track(steady_ride)
    target = T0_MS + 42_317
    first = interpolate(track, target)
    interpolate(track, T0_MS + 100_000)
    interpolate(track, T0_MS + 1_000)
    assert interpolate(track, target) == first


def test_bracket_invariant_holds(steady_ride) -> None:
    track = build_track(steady_ride)
    for k in range(1, 400):
        target = T0_MS + k * 297.5
        s = interpolate(track, target)
        if s.idx_left == s.idx_right:
            continue
        assert track.times_ms[s.idx_left] < target <= track.times_ms[s.idx_right]
        assert 0.0 <= s.ratio <= 1.0


def test_alignment_offset_shifts_target(three_points) -> None:
    track = build_track(three_points)
    s = interpolate(track, T0_MS, AlignmentOffset(offset_ms=5000))
    assert s.ratio == pytest.approx(0.5)
    assert s.timestamp_ms == T0_MS + 5000

    back = interpolate(track, T0_MS + 15_000, AlignmentOffset(offset_ms=-10_000))
    assert back.lat == pytest.approx(0.0005)


def test_alignment_scale_is_relative_to_track_start(three_points) -> None:
    track = build_track(three_points)
    s = interpolate(track, T0_MS + 20_000, AlignmentOffset(scale=0.5))
    assert s.lat == pytest.approx(0.001)
    assert AlignmentOffset(offset_ms=100.0, scale=2.0).apply(1500.0, 1000.0) == 2100.0


def test_heart_rate_requires_both_brackets(gpx_file) -> None:
    track = build_track(parse_gpx(gpx_file))
    assert [p.heart_rate_bpm for p in track.points] == [None, 140, 140]
    assert interpolate(track, T0_MS + 5000).heart_rate_bpm is None
    assert interpolate(track, T0_MS + 15_000).heart_rate_bpm == pytest.approx(140.0)


def test_heart_rate_is_blended(steady_ride) -> None:
    track = build_track(steady_ride)
    s = interpolate(track, T0_MS + 1500)
    assert s.heart_rate_bpm == pytest.approx(131.5)


def test_track_summary(three_points) -> None:
    track = build_track(three_points)
    assert len(track) == 3
    assert track.start_ms == T0_MS
    assert track.end_ms == T0_MS + 20_000
    assert track.duration_ms == 20_000
    assert track.points[0].cumulative_miles == 0.0
    assert track.total_miles == pytest.approx(0.1382, abs=1e-3)
    assert (track.elevation_min_m, track.elevation_max_m) == (100.0, 120.0)
    assert track.report is not None and track.report.points_kept == 3


def test_track_needs_two_points() -> None:
    p = TrackPoint(lat=0.0, lon=0.0, elevation_m=0.0, timestamp_ms=0.0)
    with pytest.raises(InsufficientDataError):
        Track(points=(p,), raw_speeds_mph=(0.0,), suggested_speed_gauge_max_mph=30.0)


def test_bearing_follows_bracket_segment(three_points) -> None:
    track = build_track(three_points)
    assert track.bearing_at(interpolate(track, T0_MS + 5000)) == pytest.approx(0.0)
    # boundaries use the adjacent segment
    assert track.bearing_at(interpolate(track, T0_MS - 1)) == pytest.approx(0.0)
    assert track.bearing_at(interpolate(track, T0_MS + 99_000)) == pytest.approx(0.0)


def test_slope_over_window(steady_ride) -> None:
    track = build_track(steady_ride)
    s = interpolate(track, T0_MS + 60_000)
    step_m = (track.points[61].cumulative_miles - track.points[60].cumulative_miles) * 1609.34
    assert track.slope_percent(s) == pytest.approx(0.5 / step_m * 100.0, rel=1e-3)


def test_slope_is_zero_for_short_tracks(three_points) -> None:
    track = build_track(three_points)
    assert track.slope_percent(interpolate(track, T0_MS + 5000)) == 0.0
    grades = track.segment_grades()
    assert len(grades) == 2
    assert grades[0] > 0


def test_speed_and_gauge(steady_ride) -> None:
    track = build_track(steady_ride)
    assert track.points[0].speed_mph < 15.0
    assert track.points[60].speed_mph == pytest.approx(15.0, rel=1e-2)
    assert track.suggested_speed_gauge_max_mph == 35.0


def test_reconfigured_keeps_raw_speeds(steady_ride) -> None:
    track = build_track(steady_ride)
    raw = track.reconfigured(SyncConfig(smoothing_window=1))
    assert [p.speed_mph for p in raw.points] == list(track.raw_speeds_mph)
    assert raw.points[0].speed_mph == 0.0
    assert raw.times_ms == track.times_ms
    capped = track.reconfigured(SyncConfig(gauge_cap_mph=20.0))
    assert capped.suggested_speed_gauge_max_mph == 20.0


def test_is_valid_target() -> None:
    assert is_valid_target(0)
    assert is_valid_target(1.5)
    assert not is_valid_target(None)
    assert not is_valid_target(True)
    assert not is_valid_target(math.nan)
    assert not is_valid_target("1000")
