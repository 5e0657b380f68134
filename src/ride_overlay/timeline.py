"""
Video playback position -> absolute wall-clock time.

A VideoTimeline combines the recording creation time, the per-frame
presentation timestamps (seconds or milliseconds, auto-detected) and a
playback speed factor for sped-up footage.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Sequence

logger = logging.getLogger(__name__)

DEFAULT_FPS = 30
# Median adjacent delta at or above this means the table is already in milliseconds.
MS_UNIT_THRESHOLD = 1.0


def _finite(x: object) -> float:
    try:
        v = float(x)
    except (TypeError, ValueError):
        return math.nan
    return v if math.isfinite(v) else math.nan


def _median_delta(values: Sequence[float]) -> float:
    deltas = sorted(
        abs(b - a) for a, b in zip(values, values[1:]) if math.isfinite(a) and math.isfinite(b)
    )
    # upper median for even counts
    return deltas[len(deltas) // 2] if deltas else 0.0


def detect_units(frame_times: Sequence[float]) -> str:
    """'ms' if the median adjacent delta is at least 1, else 's'."""
    return "ms" if _median_delta(frame_times) >= MS_UNIT_THRESHOLD else "s"


def normalize_frame_times(frame_times: Sequence[object]) -> tuple[list[float], str | None]:
    """
    Convert a raw pts table to integer milliseconds.

    Non-finite entries stay NaN. Returns ([], None) when fewer than two
    entries are usable.
    """
    nums = [_finite(t) for t in frame_times]
    if sum(1 for n in nums if math.isfinite(n)) < 2:
        return [], None
    units = detect_units(nums)
    scale = 1.0 if units == "ms" else 1000.0
    return [float(round(n * scale)) if math.isfinite(n) else math.nan for n in nums], units


def estimate_fps(frame_times_ms: Sequence[float]) -> int:
    median_ms = _median_delta(frame_times_ms)
    if median_ms <= 0:
        return DEFAULT_FPS
    return max(1, round(1000.0 / median_ms))


def resolve_speed_factor(value: object) -> float:
    """Playback warp; anything non-finite or <= 0 means 1."""
    v = _finite(value)
    return v if math.isfinite(v) and v > 0 else 1.0


@dataclass
class VideoTimeline:
    creation_ms: float
    frame_times: Sequence[object] = ()
    playback_speed_factor: float = 1.0
    duration_s: float | None = None

    _frames_ms: list[float] | None = field(default=None, init=False, repr=False)
    _units: str | None = field(default=None, init=False, repr=False)
    _fps: int | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.playback_speed_factor = resolve_speed_factor(self.playback_speed_factor)

    # Derived tables are computed once per timeline.

    def _ensure_frames(self) -> list[float]:
        if self._frames_ms is None:
            self._frames_ms, self._units = normalize_frame_times(self.frame_times)
            self._fps = estimate_fps(self._frames_ms) if self._frames_ms else DEFAULT_FPS
            logger.debug(
                "Frame table: %d entries, units=%s, estimated fps=%d",
                len(self._frames_ms),
                self._units,
                self._fps,
            )
        return self._frames_ms

    @property
    def frames_ms(self) -> list[float]:
        return self._ensure_frames()

    @property
    def units(self) -> str | None:
        self._ensure_frames()
        return self._units

    @property
    def estimated_fps(self) -> int:
        self._ensure_frames()
        return self._fps or DEFAULT_FPS

    @property
    def first_frame_ms(self) -> float:
        """Offset of the first valid frame from creation time (0 without a table)."""
        return next((t for t in self.frames_ms if math.isfinite(t)), 0.0)

    def with_speed_factor(self, factor: float | None) -> VideoTimeline:
        return VideoTimeline(
            creation_ms=self.creation_ms,
            frame_times=self.frame_times,
            playback_speed_factor=factor if factor is not None else 1.0,
            duration_s=self.duration_s,
        )

    def absolute_ms(self, playback_seconds: object) -> float | None:
        """
        Wall-clock ms for a raw player position, or None for unusable input.

        Negative positions clamp to 0. Pure for a given input: scrubbing
        backwards or repeating a position gives the same answer.
        """
        raw = _finite(playback_seconds)
        if not math.isfinite(raw):
            return None
        warped = max(0.0, raw) * self.playback_speed_factor

        pts = self.frames_ms
        if not pts:
            return self.creation_ms + round(warped * 1000)

        fps = self.estimated_fps
        frame_index = max(0, min(len(pts) - 1, math.floor(warped * fps)))
        frame_ms = pts[frame_index]
        if math.isfinite(frame_ms):
            return self.creation_ms + frame_ms
        return self._proportional_ms(warped, fps)

    def _proportional_ms(self, warped: float, fps: int) -> float:
        pts = self.frames_ms
        valid = [t for t in pts if math.isfinite(t)]
        if valid and valid[-1] > valid[0]:
            first, last = valid[0], valid[-1]
            total_s = self.duration_s or (len(pts) / fps)
            prop = min(1.0, max(0.0, warped / (total_s or 1.0)))
            return self.creation_ms + round(first + prop * (last - first))
        return self.creation_ms + round(warped * 1000)
