"""
ride_overlay

Synchronize GPX/FIT telemetry with a video timeline and serve interpolated
samples (position, elevation, distance, speed, heart rate) for overlays.

What it does
- Cleans raw track points into a strictly time-ordered series.
- Computes cumulative distance, windowed speed, smoothing and a robust speedometer range.
- Maps a video playback position to wall-clock time using the recording's
  creation time, per-frame timestamps and a playback speed factor.
- Interpolates the track at that time, with a user alignment offset/scale.

Example
  session = SyncSession()
  session.load_track("ride.gpx")
  session.load_video_metadata("GX010766_meta.json")
  sample = session.sample_at_playback(12.5)
"""

from __future__ import annotations

from ride_overlay.config import SyncConfig
from ride_overlay.errors import (
    ClockMismatchWarning,
    InsufficientDataError,
    MalformedInputError,
    MissingMetadataError,
    RideOverlayError,
)
from ride_overlay.models import InterpolatedSample, RawPoint, TrackPoint
from ride_overlay.scheduler import TickScheduler
from ride_overlay.session import SyncSession
from ride_overlay.timeline import VideoTimeline
from ride_overlay.timeutils import parse_iso8601
from ride_overlay.track import AlignmentOffset, Track, build_track, interpolate

__all__ = [
    "AlignmentOffset",
    "ClockMismatchWarning",
    "InsufficientDataError",
    "InterpolatedSample",
    "MalformedInputError",
    "MissingMetadataError",
    "RawPoint",
    "RideOverlayError",
    "SyncConfig",
    "SyncSession",
    "TickScheduler",
    "Track",
    "TrackPoint",
    "VideoTimeline",
    "build_track",
    "interpolate",
    "parse_iso8601",
]
