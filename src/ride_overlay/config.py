from __future__ import annotations

import math
from dataclasses import dataclass

SMOOTHING_MODES = ("fixed", "adaptive")


@dataclass
class SyncConfig:
    """
    Tunables shared by the loader, the mapper and the interpolation engine.

    None of these require re-reading the track source: smoothing and gauge
    settings are re-derived from the retained speed series, offsets are applied
    at query time.
    """

    smoothing_window: int = 5
    smoothing_mode: str = "fixed"  # "fixed" | "adaptive"
    min_speed_window_ms: int = 1000

    outlier_cap_mph: float = 40.0  # 60-80 suits motor sports
    min_gauge_mph: float = 8.0
    gauge_cap_mph: float | None = None
    default_gauge_mph: float = 30.0

    offset_ms: float = 0.0
    time_scale: float = 1.0
    playback_speed_factor: float | None = None  # None: use the metadata speed_factor

    tz_name: str | None = None  # None: zone-less timestamps are system local time

    drop_warn_ratio: float = 0.05
    clock_mismatch_threshold_ms: float = 3_600_000.0
    auto_correct_clock_mismatch: bool = True

    slope_window: int = 8

    def __post_init__(self) -> None:
        if self.smoothing_window < 1:
            raise ValueError(f"smoothing_window must be >= 1, got {self.smoothing_window}")
        if self.smoothing_mode not in SMOOTHING_MODES:
            raise ValueError(
                f"unknown smoothing mode: {self.smoothing_mode} (expected one of {', '.join(SMOOTHING_MODES)})"
            )
        if self.min_speed_window_ms < 0:
            raise ValueError("min_speed_window_ms must be >= 0")
        if not (math.isfinite(self.outlier_cap_mph) and self.outlier_cap_mph > 0):
            raise ValueError(f"outlier_cap_mph must be > 0, got {self.outlier_cap_mph}")
        if self.gauge_cap_mph is not None and self.gauge_cap_mph <= 0:
            raise ValueError("gauge_cap_mph must be > 0 when set")
        if not math.isfinite(self.offset_ms):
            raise ValueError("offset_ms must be finite")
        if not (math.isfinite(self.time_scale) and self.time_scale > 0):
            raise ValueError(f"time_scale must be > 0, got {self.time_scale}")
        if self.clock_mismatch_threshold_ms <= 0:
            raise ValueError("clock_mismatch_threshold_ms must be > 0")
        if self.slope_window < 1:
            raise ValueError("slope_window must be >= 1")
