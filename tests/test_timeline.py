import math

import pytest

from ride_overlay.timeline import (
    VideoTimeline,
    detect_units,
    estimate_fps,
    normalize_frame_times,
    resolve_speed_factor,
)

CREATION_MS = 1_760_279_974_000.0
PTS_S = [i / 30 for i in range(300)]


def test_seconds_table_is_converted_to_ms() -> None:
    frames, units = normalize_frame_times([0.0, 0.033, 0.066])
    assert units == "s"
    assert frames[1] == 33


def test_ms_table_is_kept() -> None:
    frames, units = normalize_frame_times([0, 33.3, 66.7, 100.0, 133.3])
    assert units == "ms"
    assert frames == [0.0, 33.0, 67.0, 100.0, 133.0]


def test_detect_units_threshold() -> None:
    assert detect_units([0.0, 0.5, 1.0]) == "s"
    assert detect_units([0.0, 150.0, 300.0]) == "ms"
    assert detect_units([0, 33, 66, 100, 133]) == "ms"
    assert detect_units([0.0, 0.033, 0.066, 0.1]) == "s"


def test_unusable_table() -> None:
    assert normalize_frame_times([]) == ([], None)
    assert normalize_frame_times([0.0, None, "x"]) == ([], None)


def test_non_finite_entries_stay_nan() -> None:
    frames, _ = normalize_frame_times([0.0, None, 0.066, 0.1])
    assert math.isnan(frames[1])
    assert frames[2] == 66


def test_estimate_fps() -> None:
    assert estimate_fps([i * 1000 / 30 for i in range(30)]) == 30
    assert estimate_fps([i * 1000 / 60 for i in range(30)]) == 60
    assert estimate_fps([0.0]) == 30


def test_resolve_speed_factor() -> None:
    assert resolve_speed_factor(2.0) == 2.0
    assert resolve_speed_factor(0) == 1.0
    assert resolve_speed_factor(-3) == 1.0
    assert resolve_speed_factor(math.inf) == 1.0
    assert resolve_speed_factor(None) == 1.0


def test_absolute_time_from_frame_table() -> None:
    tl = VideoTimeline(creation_ms=CREATION_MS, frame_times=PTS_S)
    assert tl.units == "s"
    assert tl.estimated_fps == 30
    assert tl.absolute_ms(0.0) == CREATION_MS
    # 1.0 s -> frame 30 -> 1000 ms
    assert tl.absolute_ms(1.0) == CREATION_MS + 1000
    # positions inside a frame snap to the frame start
    assert tl.absolute_ms(1.02) == CREATION_MS + 1000


def test_position_past_the_table_clamps_to_last_frame() -> None:
    tl = VideoTimeline(creation_ms=CREATION_MS, frame_times=PTS_S)
    assert tl.absolute_ms(3600.0) == CREATION_MS + round(299 / 30 * 1000)


def test_naive_mapping_without_table() -> None:
    tl = VideoTimeline(creation_ms=CREATION_MS)
    assert tl.frames_ms == []
    assert tl.absolute_ms(12.5) == CREATION_MS + 12_500
    assert tl.first_frame_ms == 0.0


def test_speed_factor_warps_position() -> None:
    tl = VideoTimeline(creation_ms=CREATION_MS, playback_speed_factor=4.0)
    assert tl.absolute_ms(10.0) == CREATION_MS + 40_000
    assert tl.with_speed_factor(None).absolute_ms(10.0) == CREATION_MS + 10_000


def test_negative_position_clamps_to_zero() -> None:
    tl = VideoTimeline(creation_ms=CREATION_MS, frame_times=PTS_S)
    assert tl.absolute_ms(-3.0) == tl.absolute_ms(0.0)


@pytest.mark.parametrize("bad", [None, math.nan, math.inf, "abc"])
def test_unusable_position_returns_none(bad) -> None:
    tl = VideoTimeline(creation_ms=CREATION_MS, frame_times=PTS_S)
    assert tl.absolute_ms(bad) is None


def test_backwards_scrub_is_pure() -> None:
    tl = VideoTimeline(creation_ms=CREATION_MS, frame_times=PTS_S)
    forward = [tl.absolute_ms(t / 10) for t in range(50)]
    backward = [tl.absolute_ms(t / 10) for t in reversed(range(50))]
    assert forward == list(reversed(backward))


def test_first_frame_offset() -> None:
    tl = VideoTimeline(creation_ms=CREATION_MS, frame_times=[None, 0.5, 0.533, 0.566])
    assert tl.first_frame_ms == 500.0


def test_nan_frame_falls_back_to_proportional_position() -> None:
    pts = [i / 10 for i in range(11)]
    pts[5] = None
    tl = VideoTimeline(creation_ms=CREATION_MS, frame_times=pts, duration_s=1.0)
    assert tl.estimated_fps == 10
    # frame 5 is missing; 0.5 of 1.0 s spans half of [0, 1000] ms
    assert tl.absolute_ms(0.5) == CREATION_MS + 500
