"""
Track point normalization.

Turns the raw point list from a source parser into a cleaned, strictly
time-ordered series:
  - leading / trailing runs of points without a usable timestamp are trimmed;
  - interior points without a usable timestamp are spliced out;
  - points without finite, in-range lat/lon are dropped;
  - points whose timestamp does not advance past the previous kept point are dropped;
  - missing elevation and heart rate are carried forward from the previous point.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence

from ride_overlay.errors import InsufficientDataError, MalformedInputError
from ride_overlay.models import RawPoint, TrackPoint
from ride_overlay.timeutils import coerce_epoch_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NormalizeReport:
    """Counts of what the normalizer kept and discarded."""

    points_in: int
    points_kept: int
    trimmed: int
    dropped_time: int
    dropped_coords: int
    dropped_unordered: int

    @property
    def discarded(self) -> int:
        return self.points_in - self.points_kept


def _parse_float(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        v = float(value)  # float() tolerates surrounding whitespace
    except (TypeError, ValueError):
        return None
    return v if math.isfinite(v) else None


def _parse_heart_rate(value: object) -> int | None:
    v = _parse_float(value)
    if v is None or v <= 0:
        return None
    return int(round(v))


def coerce_coordinates(raw: RawPoint) -> tuple[float, float]:
    """Return (lat, lon) or raise MalformedInputError."""
    lat = _parse_float(raw.lat)
    lon = _parse_float(raw.lon)
    if lat is None or lon is None:
        raise MalformedInputError(f"missing or non-finite coordinates: lat={raw.lat!r} lon={raw.lon!r}")
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        raise MalformedInputError(f"coordinates out of range: lat={lat} lon={lon}")
    return lat, lon


def normalize_points(
    raw_points: Sequence[RawPoint],
    *,
    tz_name: str | None = None,
    drop_warn_ratio: float = 0.05,
) -> tuple[list[TrackPoint], NormalizeReport]:
    """
    Clean raw points into a strictly increasing series.

    Raises InsufficientDataError when fewer than two points survive.
    Cumulative distance and speed are left at 0; see `ride_overlay.metrics`.
    """
    n_in = len(raw_points)
    times = [coerce_epoch_ms(p.time, tz_name) for p in raw_points]

    first = next((i for i, t in enumerate(times) if t is not None), None)
    if first is None:
        raise InsufficientDataError(f"none of {n_in} points has a valid timestamp")
    last = next(i for i in range(n_in - 1, -1, -1) if times[i] is not None)
    trimmed = first + (n_in - 1 - last)
    if first > 0:
        logger.debug("Skipping %d leading points without timestamps", first)
    if last < n_in - 1:
        logger.debug("Trimming %d trailing points without timestamps", n_in - 1 - last)

    kept: list[TrackPoint] = []
    dropped_time = dropped_coords = dropped_unordered = 0
    prev_ele = 0.0
    prev_hr: int | None = None

    for i in range(first, last + 1):
        t = times[i]
        raw = raw_points[i]
        if t is None:
            dropped_time += 1
            continue
        try:
            lat, lon = coerce_coordinates(raw)
        except MalformedInputError:
            dropped_coords += 1
            continue
        if kept and t <= kept[-1].timestamp_ms:
            dropped_unordered += 1
            continue

        ele = _parse_float(raw.elevation)
        if ele is None:
            ele = prev_ele
        hr = _parse_heart_rate(raw.heart_rate)
        if hr is None:
            hr = prev_hr

        kept.append(TrackPoint(lat=lat, lon=lon, elevation_m=ele, timestamp_ms=t, heart_rate_bpm=hr))
        prev_ele = ele
        prev_hr = hr

    report = NormalizeReport(
        points_in=n_in,
        points_kept=len(kept),
        trimmed=trimmed,
        dropped_time=dropped_time,
        dropped_coords=dropped_coords,
        dropped_unordered=dropped_unordered,
    )

    if len(kept) < 2:
        raise InsufficientDataError(
            f"only {len(kept)} usable point(s) of {n_in} after normalization (need at least 2)"
        )

    if n_in and report.discarded / n_in > drop_warn_ratio:
        logger.warning(
            "Discarded %d of %d points (trimmed=%d, bad time=%d, bad coords=%d, out of order=%d)",
            report.discarded,
            n_in,
            trimmed,
            dropped_time,
            dropped_coords,
            dropped_unordered,
        )
    return kept, report
