"""
Playback session: the single owner of config, track, timeline and offsets.

Loads may fail; a failed load leaves the previous track/timeline in place.
Queries never raise: they return None until both sources are ready or when
given unusable input, so a render loop can simply skip drawing.
"""

from __future__ import annotations

import dataclasses
import logging
import math
import threading
import warnings
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Mapping, Sequence

from ride_overlay.config import SyncConfig
from ride_overlay.errors import ClockMismatchWarning
from ride_overlay.models import InterpolatedSample, RawPoint
from ride_overlay.sources import load_raw_points
from ride_overlay.timeline import VideoTimeline
from ride_overlay.track import AlignmentOffset, Track, build_track, interpolate, is_valid_target
from ride_overlay.video_meta import load_video_metadata, timeline_from_metadata

logger = logging.getLogger(__name__)

CLOCK_CORRECTION_QUANTUM_MS = 15 * 60 * 1000


def clock_correction_for(gap_ms: float) -> float:
    """Bulk correction for a large clock gap: the gap rounded to the nearest 15 minutes."""
    return float(round(gap_ms / CLOCK_CORRECTION_QUANTUM_MS) * CLOCK_CORRECTION_QUANTUM_MS)


class SyncSession:
    def __init__(self, config: SyncConfig | None = None) -> None:
        self.config = config or SyncConfig()
        self.track: Track | None = None
        self.timeline: VideoTimeline | None = None
        self.offset = AlignmentOffset(self.config.offset_ms, self.config.time_scale)
        self.clock_correction_ms = 0.0
        # Bumped on every change that can alter a sample for the same playback position.
        self.revision = 0
        self._metadata_speed_factor = 1.0
        self._generation = 0
        self._lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None

    # -----------------------------
    # Readiness
    # -----------------------------

    @property
    def is_ready(self) -> bool:
        return self.track is not None and self.timeline is not None

    # -----------------------------
    # Loading
    # -----------------------------

    def load_track(self, source: str | Path | Sequence[RawPoint]) -> Track:
        """Load a track file (.gpx/.fit/.json) or a raw point list, replacing the current track."""
        with self._lock:
            self._generation += 1
        return self._commit_track(self._build(source), None)

    def submit_track_load(self, source: str | Path | Sequence[RawPoint]) -> Future[Track | None]:
        """
        Load in the background. The most recently submitted load wins; an
        earlier one that finishes later is discarded and its future yields None.
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="track-load")
        return self._executor.submit(lambda: self._commit_track(self._build(source), generation))

    def _build(self, source: str | Path | Sequence[RawPoint]) -> Track:
        raw = load_raw_points(source) if isinstance(source, (str, Path)) else list(source)
        return build_track(raw, self.config)

    def _commit_track(self, track: Track, generation: int | None) -> Track | None:
        with self._lock:
            if generation is not None and generation != self._generation:
                logger.debug("Discarding superseded track load (generation %d)", generation)
                return None
            self.track = track
            self.clock_correction_ms = 0.0
            self.revision += 1
        self._check_clock_mismatch()
        return track

    def load_video_metadata(self, source: str | Path | Mapping[str, Any]) -> VideoTimeline:
        """Load a metadata sidecar (path or parsed mapping), replacing the current timeline."""
        if isinstance(source, Mapping):
            timeline = timeline_from_metadata(source, tz_name=self.config.tz_name)
        else:
            timeline = load_video_metadata(source, tz_name=self.config.tz_name)
        self._metadata_speed_factor = timeline.playback_speed_factor
        if self.config.playback_speed_factor is not None:
            timeline = timeline.with_speed_factor(self.config.playback_speed_factor)
        with self._lock:
            self.timeline = timeline
            self.clock_correction_ms = 0.0
            self.revision += 1
        self._check_clock_mismatch()
        return timeline

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    # -----------------------------
    # Clock mismatch
    # -----------------------------

    def clock_gap_ms(self) -> float | None:
        """
        Distance from the first video frame to the track's time span.

        0 when the video starts inside [track start, track end]; positive when
        it starts before the track (track start minus video start); negative
        when it starts after the track ends (track end minus video start).
        """
        if self.track is None or self.timeline is None:
            return None
        video_start = self.timeline.creation_ms + self.timeline.first_frame_ms
        if video_start < self.track.start_ms:
            return self.track.start_ms - video_start
        if video_start > self.track.end_ms:
            return self.track.end_ms - video_start
        return 0.0

    def _check_clock_mismatch(self) -> None:
        gap = self.clock_gap_ms()
        if gap is None or abs(gap) <= self.config.clock_mismatch_threshold_ms:
            return
        side = "before the track starts" if gap > 0 else "after the track ends"
        msg = f"Video starts {abs(gap) / 3_600_000.0:.2f} h {side}"
        if self.config.auto_correct_clock_mismatch:
            with self._lock:
                self.clock_correction_ms = clock_correction_for(gap)
                self.revision += 1
            msg += f"; applying bulk correction of {self.clock_correction_ms / 60_000.0:+.0f} min"
        logger.warning(msg)
        warnings.warn(msg, ClockMismatchWarning, stacklevel=3)

    # -----------------------------
    # Configuration
    # -----------------------------

    def set_alignment_offset(self, offset_ms: float, scale: float | None = None) -> None:
        if not math.isfinite(offset_ms):
            raise ValueError("offset_ms must be finite")
        if scale is None:
            scale = self.offset.scale
        if not (math.isfinite(scale) and scale > 0):
            raise ValueError(f"scale must be > 0, got {scale}")
        with self._lock:
            self.offset = AlignmentOffset(offset_ms=offset_ms, scale=scale)
            self.revision += 1

    def set_playback_speed_factor(self, factor: float | None) -> None:
        """None restores the sidecar's speed_factor."""
        self.config = dataclasses.replace(self.config, playback_speed_factor=factor)
        with self._lock:
            if self.timeline is not None:
                effective = factor if factor is not None else self._metadata_speed_factor
                self.timeline = self.timeline.with_speed_factor(effective)
            self.revision += 1

    def set_smoothing(self, window: int | None = None, mode: str | None = None) -> None:
        self.config = dataclasses.replace(
            self.config,
            smoothing_window=window if window is not None else self.config.smoothing_window,
            smoothing_mode=mode if mode is not None else self.config.smoothing_mode,
        )
        self._rederive_track()

    def set_outlier_cap(self, cap_mph: float) -> None:
        self.config = dataclasses.replace(self.config, outlier_cap_mph=cap_mph)
        self._rederive_track()

    def _rederive_track(self) -> None:
        with self._lock:
            if self.track is not None:
                self.track = self.track.reconfigured(self.config)
            self.revision += 1

    # -----------------------------
    # Queries (hot path)
    # -----------------------------

    def effective_offset(self) -> AlignmentOffset:
        if not self.clock_correction_ms:
            return self.offset
        return dataclasses.replace(self.offset, offset_ms=self.offset.offset_ms + self.clock_correction_ms)

    def get_current_absolute_timestamp(self, playback_seconds: float | None) -> float | None:
        timeline = self.timeline
        if timeline is None or playback_seconds is None:
            return None
        return timeline.absolute_ms(playback_seconds)

    def get_interpolated_sample(self, target_absolute_ms: float | None) -> InterpolatedSample | None:
        track = self.track
        if track is None or not is_valid_target(target_absolute_ms):
            return None
        return interpolate(track, target_absolute_ms, self.effective_offset())

    def sample_at_playback(self, playback_seconds: float | None) -> InterpolatedSample | None:
        return self.get_interpolated_sample(self.get_current_absolute_timestamp(playback_seconds))

    def slope_percent(self, sample: InterpolatedSample) -> float | None:
        """Grade around a sample over the configured slope_window; None without a track."""
        track = self.track
        if track is None:
            return None
        return track.slope_percent(sample, window=self.config.slope_window)
