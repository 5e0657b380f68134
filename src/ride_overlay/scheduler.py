"""
Single-threaded tick source that drives overlay renderers.

Each tick pulls the current playback position, maps it to wall-clock time,
interpolates the track and hands the result to every renderer. Renderers are
plain callables `(sample, target_ms) -> None`; a renderer that raises is
logged and skipped for that tick.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable, Iterable

from ride_overlay.models import InterpolatedSample
from ride_overlay.session import SyncSession

logger = logging.getLogger(__name__)

Renderer = Callable[[InterpolatedSample, float], None]
PositionSource = Callable[[], float | None]

# Positions closer than this (ms) to the last dispatched one are not re-rendered
# unless the session changed since.
MIN_POSITION_DELTA_MS = 0.1


class TickScheduler:
    def __init__(
        self,
        session: SyncSession,
        position_source: PositionSource,
        renderers: Iterable[Renderer] = (),
    ) -> None:
        self.session = session
        self.position_source = position_source
        self.renderers: list[Renderer] = list(renderers)
        self.ticks = 0
        self.dispatches = 0
        self._last_position_ms: float | None = None
        self._last_revision: int | None = None
        self._running = False

    def add_renderer(self, renderer: Renderer) -> None:
        self.renderers.append(renderer)

    def tick(self, *, force: bool = False) -> InterpolatedSample | None:
        """
        Run one frame. Returns the dispatched sample, or None when nothing was
        dispatched (position and session unchanged, not ready, or no usable
        position).

        force=True re-renders an unchanged position (seek events).
        """
        self.ticks += 1
        position = self.position_source()
        if position is None or not math.isfinite(position):
            return None

        position_ms = position * 1000.0
        revision = self.session.revision
        if (
            not force
            and self._last_position_ms is not None
            and self._last_revision == revision
            and abs(position_ms - self._last_position_ms) <= MIN_POSITION_DELTA_MS
        ):
            return None

        target_ms = self.session.get_current_absolute_timestamp(position)
        if target_ms is None:
            logger.debug("No target time yet (video metadata not loaded)")
            return None
        sample = self.session.get_interpolated_sample(target_ms)
        if sample is None:
            logger.debug("No telemetry for %s ms (track not loaded)", target_ms)
            return None

        self._last_position_ms = position_ms
        self._last_revision = revision
        self.dispatches += 1
        for renderer in self.renderers:
            try:
                renderer(sample, target_ms)
            except Exception as e:
                logger.warning("Renderer %s failed: %s", getattr(renderer, "__name__", renderer), e)
        return sample

    def seek(self) -> InterpolatedSample | None:
        return self.tick(force=True)

    def run(
        self,
        *,
        max_ticks: int | None = None,
        interval_s: float = 1 / 60,
        sleep: Callable[[float], None] = time.sleep,
    ) -> int:
        """Tick at a fixed interval until stop() or max_ticks; returns ticks run."""
        self._running = True
        count = 0
        try:
            while self._running and (max_ticks is None or count < max_ticks):
                self.tick()
                count += 1
                if self._running and (max_ticks is None or count < max_ticks):
                    sleep(interval_s)
        finally:
            self._running = False
        return count

    def stop(self) -> None:
        self._running = False
