"""
The Track aggregate and the interpolation engine.

A Track is built once per load from raw points and never mutated; a new load
or a changed smoothing/gauge setting produces a new Track.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from bisect import bisect_left
from dataclasses import dataclass, field
from typing import Sequence

from ride_overlay.config import SyncConfig
from ride_overlay.errors import InsufficientDataError
from ride_overlay.geo import bearing_deg, lerp
from ride_overlay.metrics import (
    cumulative_miles,
    instantaneous_speeds_mph,
    segment_grades,
    smooth_speeds,
    suggest_gauge_max,
    window_grade_percent,
)
from ride_overlay.models import InterpolatedSample, RawPoint, TrackPoint
from ride_overlay.normalize import NormalizeReport, normalize_points

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlignmentOffset:
    """
    Manual correction between the camera clock and the GPS clock.

    The target time becomes start + (target - start) * scale + offset_ms,
    where start is the track start.
    """

    offset_ms: float = 0.0
    scale: float = 1.0

    def apply(self, target_ms: float, start_ms: float) -> float:
        if self.scale == 1.0:
            return target_ms + self.offset_ms
        return start_ms + (target_ms - start_ms) * self.scale + self.offset_ms


@dataclass(frozen=True)
class Track:
    points: tuple[TrackPoint, ...]
    raw_speeds_mph: tuple[float, ...]
    suggested_speed_gauge_max_mph: float
    report: NormalizeReport | None = None
    times_ms: tuple[float, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if len(self.points) < 2:
            raise InsufficientDataError(f"a track needs at least 2 points, got {len(self.points)}")
        object.__setattr__(self, "times_ms", tuple(p.timestamp_ms for p in self.points))

    @property
    def start_ms(self) -> float:
        return self.points[0].timestamp_ms

    @property
    def end_ms(self) -> float:
        return self.points[-1].timestamp_ms

    @property
    def duration_ms(self) -> float:
        return self.end_ms - self.start_ms

    @property
    def total_miles(self) -> float:
        return self.points[-1].cumulative_miles

    @property
    def elevation_min_m(self) -> float:
        return min(p.elevation_m for p in self.points)

    @property
    def elevation_max_m(self) -> float:
        return max(p.elevation_m for p in self.points)

    def __len__(self) -> int:
        return len(self.points)

    # -----------------------------
    # Queries
    # -----------------------------

    def sample_at(self, target_ms: float, offset: AlignmentOffset | None = None) -> InterpolatedSample:
        return interpolate(self, target_ms, offset)

    def slope_percent(self, sample: InterpolatedSample, *, window: int = 8) -> float:
        """Grade around the bracket point nearest to the sample."""
        idx = sample.idx_left if sample.ratio < 0.5 else sample.idx_right
        return window_grade_percent(self.points, idx, window=window)

    def segment_grades(self) -> list[float]:
        return segment_grades(self.points)

    def bearing_at(self, sample: InterpolatedSample) -> float | None:
        """
        Heading from the bracket points rather than the interpolated position.

        At the track boundaries (both indices equal) the adjacent segment is used.
        Returns None when the segment has zero length.
        """
        left, right = sample.idx_left, sample.idx_right
        if left == right:
            if right < len(self.points) - 1:
                right += 1
            else:
                left -= 1
        a, b = self.points[left], self.points[right]
        if a.lat == b.lat and a.lon == b.lon:
            return None
        return bearing_deg(a.lat, a.lon, b.lat, b.lon)

    # -----------------------------
    # Re-derivation
    # -----------------------------

    def reconfigured(self, config: SyncConfig) -> Track:
        """Re-smooth speeds and re-estimate the gauge range from the retained raw speeds."""
        smoothed = smooth_speeds(self.raw_speeds_mph, mode=config.smoothing_mode, window=config.smoothing_window)
        points = tuple(dataclasses.replace(p, speed_mph=s) for p, s in zip(self.points, smoothed))
        return dataclasses.replace(self, points=points, suggested_speed_gauge_max_mph=_gauge_for(smoothed, config))


def _gauge_for(speeds: Sequence[float], config: SyncConfig) -> float:
    return suggest_gauge_max(
        speeds,
        outlier_cap_mph=config.outlier_cap_mph,
        min_gauge_mph=config.min_gauge_mph,
        gauge_cap_mph=config.gauge_cap_mph,
        default_mph=config.default_gauge_mph,
    )


def build_track(raw_points: Sequence[RawPoint], config: SyncConfig | None = None) -> Track:
    """
    Normalize raw points and annotate them with distance and speed.

    Raises InsufficientDataError when fewer than two usable points remain.
    """
    config = config or SyncConfig()
    cleaned, report = normalize_points(raw_points, tz_name=config.tz_name, drop_warn_ratio=config.drop_warn_ratio)

    miles = cumulative_miles(cleaned)
    raw_speeds = instantaneous_speeds_mph(cleaned, min_window_ms=config.min_speed_window_ms)
    smoothed = smooth_speeds(raw_speeds, mode=config.smoothing_mode, window=config.smoothing_window)

    points = tuple(
        dataclasses.replace(p, cumulative_miles=m, speed_mph=s) for p, m, s in zip(cleaned, miles, smoothed)
    )
    track = Track(
        points=points,
        raw_speeds_mph=tuple(raw_speeds),
        suggested_speed_gauge_max_mph=_gauge_for(smoothed, config),
        report=report,
    )

    if logger.isEnabledFor(logging.DEBUG):
        hours = track.duration_ms / 3_600_000.0
        logger.debug("Loaded %d points (of %d)", len(track), report.points_in)
        logger.debug("Total distance: %.2f mi, duration: %.2f h", track.total_miles, hours)
        logger.debug(
            "Speed raw avg=%.2f max=%.2f, smoothed avg=%.2f max=%.2f mph",
            sum(raw_speeds) / len(raw_speeds),
            max(raw_speeds),
            sum(smoothed) / len(smoothed),
            max(smoothed),
        )
        logger.debug("Suggested speedometer max: %.0f mph", track.suggested_speed_gauge_max_mph)
    return track


# -----------------------------
# Interpolation
# -----------------------------


def _point_sample(p: TrackPoint, idx: int, target_ms: float) -> InterpolatedSample:
    return InterpolatedSample(
        lat=p.lat,
        lon=p.lon,
        elevation_m=p.elevation_m,
        cumulative_miles=p.cumulative_miles,
        speed_mph=p.speed_mph,
        heart_rate_bpm=p.heart_rate_bpm,
        timestamp_ms=target_ms,
        idx_left=idx,
        idx_right=idx,
        ratio=0.0,
    )


def interpolate(track: Track, target_ms: float, offset: AlignmentOffset | None = None) -> InterpolatedSample:
    """
    Telemetry at an absolute time, linearly blended between the bracket points.

    Targets at or before the first point return point 0; at or after the last
    point return the last point. Otherwise left/right satisfy
    t[left] < target <= t[right]. Heart rate is None when either bracket lacks it.
    """
    if offset is not None:
        target_ms = offset.apply(target_ms, track.start_ms)

    points = track.points
    if target_ms <= track.start_ms:
        return _point_sample(points[0], 0, target_ms)
    last = len(points) - 1
    if target_ms >= track.end_ms:
        return _point_sample(points[last], last, target_ms)

    right = bisect_left(track.times_ms, target_ms)
    left = right - 1
    a, b = points[left], points[right]
    span = b.timestamp_ms - a.timestamp_ms
    ratio = (target_ms - a.timestamp_ms) / span if span > 0 else 0.0

    if a.heart_rate_bpm is None or b.heart_rate_bpm is None:
        hr = None
    else:
        hr = lerp(a.heart_rate_bpm, b.heart_rate_bpm, ratio)

    return InterpolatedSample(
        lat=lerp(a.lat, b.lat, ratio),
        lon=lerp(a.lon, b.lon, ratio),
        elevation_m=lerp(a.elevation_m, b.elevation_m, ratio),
        cumulative_miles=lerp(a.cumulative_miles, b.cumulative_miles, ratio),
        speed_mph=lerp(a.speed_mph, b.speed_mph, ratio),
        heart_rate_bpm=hr,
        timestamp_ms=target_ms,
        idx_left=left,
        idx_right=right,
        ratio=ratio,
    )


def is_valid_target(target_ms: object) -> bool:
    return isinstance(target_ms, (int, float)) and not isinstance(target_ms, bool) and math.isfinite(target_ms)
