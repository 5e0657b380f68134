"""Data models for raw and normalized track points and query results."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class RawPoint:
    """
    One trackpoint as yielded by a source parser, unvalidated.

    Sources pass through whatever they read (attribute strings, datetimes,
    epoch-ms numbers); the normalizer decides what is usable.
    """

    lat: float | str | None
    lon: float | str | None
    elevation: float | str | None = None
    time: str | datetime | float | None = None
    heart_rate: int | str | None = None


@dataclass(frozen=True, slots=True)
class TrackPoint:
    """
    A single cleaned GPS fix.

    Attributes:
        lat, lon: Degrees.
        elevation_m: Meters.
        timestamp_ms: Absolute epoch milliseconds, strictly increasing along a track.
        heart_rate_bpm: Carried forward from the previous point when absent.
        cumulative_miles: Path length from the first point; 0 at point 0.
        speed_mph: Smoothed speed; 0 at point 0 before smoothing.
    """

    lat: float
    lon: float
    elevation_m: float
    timestamp_ms: float
    heart_rate_bpm: int | None = None
    cumulative_miles: float = 0.0
    speed_mph: float = 0.0


@dataclass(frozen=True, slots=True)
class InterpolatedSample:
    """Telemetry blended between the bracket points idx_left / idx_right."""

    lat: float
    lon: float
    elevation_m: float
    cumulative_miles: float
    speed_mph: float
    heart_rate_bpm: float | None
    timestamp_ms: float
    idx_left: int
    idx_right: int
    ratio: float

    def as_dict(self) -> dict[str, float | int | None]:
        return {
            "lat": self.lat,
            "lon": self.lon,
            "elevation_m": self.elevation_m,
            "cumulative_miles": self.cumulative_miles,
            "speed_mph": self.speed_mph,
            "heart_rate_bpm": self.heart_rate_bpm,
            "timestamp_ms": self.timestamp_ms,
            "idx_left": self.idx_left,
            "idx_right": self.idx_right,
            "ratio": self.ratio,
        }
