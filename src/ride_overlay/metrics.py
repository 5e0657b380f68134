"""
Derived metrics: cumulative distance, speed, smoothing, gauge range, grade.

All functions are pure and work on plain sequences so they can be tested
without building a Track.
"""

from __future__ import annotations

import math
from typing import Sequence

from ride_overlay.geo import METERS_PER_MILE, haversine_miles
from ride_overlay.models import TrackPoint

MS_PER_HOUR = 3_600_000.0


# -----------------------------
# Distance & speed
# -----------------------------


def cumulative_miles(points: Sequence[TrackPoint]) -> list[float]:
    """Path length (sum of adjacent haversine segments) at each point; 0 at point 0."""
    out: list[float] = []
    total = 0.0
    for i, p in enumerate(points):
        if i > 0:
            prev = points[i - 1]
            total += haversine_miles(prev.lat, prev.lon, p.lat, p.lon)
        out.append(total)
    return out


def instantaneous_speeds_mph(points: Sequence[TrackPoint], *, min_window_ms: int = 1000) -> list[float]:
    """
    Speed at each point over a backward window of at least min_window_ms.

    For point i the reference is the nearest earlier point j (j >= 0) with
    t[i] - t[j] >= min_window_ms, so high-frequency fixes do not divide by
    near-zero intervals. Point 0 has speed 0.
    """
    speeds = [0.0] * len(points)
    for i in range(1, len(points)):
        cur = points[i]
        j = i - 1
        while j > 0 and cur.timestamp_ms - points[j].timestamp_ms < min_window_ms:
            j -= 1
        ref = points[j]
        dt_hr = (cur.timestamp_ms - ref.timestamp_ms) / MS_PER_HOUR
        if dt_hr > 0:
            speeds[i] = haversine_miles(ref.lat, ref.lon, cur.lat, cur.lon) / dt_hr
    return speeds


def smooth_series(values: Sequence[float], window: int = 5) -> list[float]:
    """Centered moving average; edges average only the in-range samples."""
    n = len(values)
    half = window // 2
    out: list[float] = []
    for i in range(n):
        lo = max(0, i - half)
        hi = min(n - 1, i + half)
        chunk = values[lo : hi + 1]
        out.append(sum(chunk) / len(chunk))
    return out


def adaptive_half_window(speed_mph: float) -> int:
    # half-window in samples, wider at low speed
    if speed_mph < 5:
        return 6
    if speed_mph < 10:
        return 4
    if speed_mph < 20:
        return 3
    if speed_mph < 30:
        return 2
    return 1


def adaptive_smooth_series(values: Sequence[float]) -> list[float]:
    """Moving average whose half-window shrinks as the raw speed rises."""
    n = len(values)
    out: list[float] = []
    for i, v in enumerate(values):
        half = adaptive_half_window(v)
        chunk = [x for x in values[max(0, i - half) : min(n - 1, i + half) + 1] if math.isfinite(x)]
        out.append(sum(chunk) / len(chunk) if chunk else v)
    return out


def smooth_speeds(values: Sequence[float], *, mode: str = "fixed", window: int = 5) -> list[float]:
    if mode == "fixed":
        return smooth_series(values, window)
    if mode == "adaptive":
        return adaptive_smooth_series(values)
    raise ValueError(f"unknown smoothing mode: {mode}")


# -----------------------------
# Gauge range
# -----------------------------


def median(values: Sequence[float]) -> float:
    a = sorted(values)
    n = len(a)
    if n == 0:
        return 0.0
    if n % 2:
        return a[n // 2]
    return 0.5 * (a[n // 2 - 1] + a[n // 2])


def percentile(values: Sequence[float], p: float) -> float:
    """Linear-interpolated percentile, p in [0, 100]."""
    a = sorted(values)
    if not a:
        return 0.0
    idx = (p / 100.0) * (len(a) - 1)
    lo = math.floor(idx)
    hi = math.ceil(idx)
    if lo == hi:
        return a[lo]
    t = idx - lo
    return a[lo] * (1.0 - t) + a[hi] * t


def suggest_gauge_max(
    speeds_mph: Sequence[float],
    *,
    outlier_cap_mph: float = 40.0,
    min_gauge_mph: float = 8.0,
    gauge_cap_mph: float | None = None,
    default_mph: float = 30.0,
) -> float:
    """
    Robust speedometer ceiling from a speed distribution.

    Samples above outlier_cap_mph are ignored for the statistics; the smoothed
    peak only counts when it is within 2x of p99. The result is rounded up to a
    multiple of 5 after adding 2 mph of headroom.
    """
    speeds = [s for s in speeds_mph if math.isfinite(s) and s > 0]
    if not speeds:
        return default_mph

    filtered = [s for s in speeds if s <= outlier_cap_mph]
    if not filtered:
        # Nothing under the cap: use the full distribution.
        filtered = speeds
        outlier_cap_mph = math.inf

    med = median(filtered)
    p98 = percentile(filtered, 98)
    p99 = percentile(filtered, 99)

    smoothed = [s for s in smooth_series(filtered, 5) if math.isfinite(s) and 0 < s <= outlier_cap_mph]
    smoothed_max = max(smoothed) if smoothed else 0.0
    cand_raw = smoothed_max if 0 < smoothed_max <= p99 * 2.0 else 0.0

    candidate = max(p98 * 1.25, max(p99 * 1.05, med * 2.0), p99 + 5.0, cand_raw)
    candidate = max(candidate, min_gauge_mph)
    computed = math.ceil((candidate + 2.0) / 5.0) * 5.0
    if gauge_cap_mph is not None:
        computed = min(computed, gauge_cap_mph)
    return float(computed)


# -----------------------------
# Grade
# -----------------------------


def grade_percent(elev_delta_m: float, dist_miles: float) -> float:
    dist_m = dist_miles * METERS_PER_MILE
    return (elev_delta_m / dist_m) * 100.0 if dist_m > 0 else 0.0


def window_grade_percent(points: Sequence[TrackPoint], index: int, *, window: int = 8) -> float:
    """
    Grade (%) across points index-window .. index+window (clamped).

    Returns 0 for tracks too short to fill a full window on both sides.
    """
    n = len(points)
    if n <= window * 2:
        return 0.0
    index = max(0, min(n - 1, index))
    p0 = points[max(0, index - window)]
    p1 = points[min(n - 1, index + window)]
    return grade_percent(p1.elevation_m - p0.elevation_m, p1.cumulative_miles - p0.cumulative_miles)


def segment_grades(points: Sequence[TrackPoint]) -> list[float]:
    """Grade of each adjacent segment; len(points) - 1 entries."""
    return [
        grade_percent(b.elevation_m - a.elevation_m, b.cumulative_miles - a.cumulative_miles)
        for a, b in zip(points, points[1:])
    ]
