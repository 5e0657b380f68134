"""
Video metadata sidecars (<video>_meta.json) and ffprobe probing.

Sidecar format:
  {
    "creation_time": "2025-10-12T14:39:34Z",   # no zone: local time
    "pts_times": [0.0, 0.033, 0.066, ...],     # seconds or ms, auto-detected
    "pts_times_corrected": [...],              # optional, preferred
    "speed_factor": 1.0,                       # optional playback warp
    "duration": 123.4                          # optional, seconds
  }
"""

from __future__ import annotations

import json
import logging
import math
import subprocess
from fractions import Fraction
from pathlib import Path
from typing import Any, Mapping

from ride_overlay.errors import MissingMetadataError
from ride_overlay.timeline import VideoTimeline
from ride_overlay.timeutils import epoch_ms_from_dt, parse_iso8601

logger = logging.getLogger(__name__)

CREATION_TIME_KEYS = (
    "creation_time",
    "com.apple.quicktime.creationdate",
    "date",
    "creation_date",
    "encoded_date",
)


def sidecar_path(video_path: str | Path) -> Path:
    p = Path(video_path)
    return p.with_name(f"{p.stem}_meta.json")


# -----------------------------
# Sidecar -> timeline
# -----------------------------


def timeline_from_metadata(
    meta: Mapping[str, Any],
    *,
    tz_name: str | None = None,
    speed_factor: float | None = None,
) -> VideoTimeline:
    """
    Build a VideoTimeline from a parsed sidecar.

    speed_factor overrides the sidecar's speed_factor when given.
    Raises MissingMetadataError when creation_time or pts_times is missing.
    """
    creation = meta.get("creation_time")
    pts = meta.get("pts_times")
    if not creation or not isinstance(pts, list):
        missing = [k for k, ok in (("creation_time", bool(creation)), ("pts_times", isinstance(pts, list))) if not ok]
        raise MissingMetadataError(f"video metadata missing {', '.join(missing)}")
    try:
        creation_ms = epoch_ms_from_dt(parse_iso8601(str(creation), tz_name=tz_name))
    except ValueError as e:
        raise MissingMetadataError(f"invalid creation_time: {creation!r}") from e

    corrected = meta.get("pts_times_corrected")
    if isinstance(corrected, list) and corrected:
        logger.debug("Using corrected frame timestamps")
        pts = corrected

    factor = speed_factor if speed_factor is not None else meta.get("speed_factor")
    duration = meta.get("duration")
    try:
        duration_s = float(duration) if duration is not None else None
    except (TypeError, ValueError):
        duration_s = None
    if duration_s is not None and not (math.isfinite(duration_s) and duration_s > 0):
        duration_s = None

    timeline = VideoTimeline(
        creation_ms=float(creation_ms),
        frame_times=list(pts),
        playback_speed_factor=factor if factor is not None else 1.0,
        duration_s=duration_s,
    )
    logger.debug("Video creation time %s, %d frame timestamps", creation, len(pts))
    return timeline


def load_video_metadata(
    path: str | Path,
    *,
    tz_name: str | None = None,
    speed_factor: float | None = None,
) -> VideoTimeline:
    try:
        meta = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise MissingMetadataError(f"Could not parse video metadata JSON {path}: {e}") from e
    if not isinstance(meta, dict):
        raise MissingMetadataError(f"video metadata in {path} is not a JSON object")
    return timeline_from_metadata(meta, tz_name=tz_name, speed_factor=speed_factor)


# -----------------------------
# Video probing
# -----------------------------


def run_ffprobe(video_path: str, ffprobe_bin: str) -> dict[str, Any]:
    cmd = [
        ffprobe_bin,
        "-v",
        "error",
        "-print_format",
        "json",
        "-select_streams",
        "v:0",
        "-show_entries",
        "format=duration:format_tags:stream=width,height,r_frame_rate:stream_tags:frame=pts_time,best_effort_timestamp_time",
        "-show_frames",
        video_path,
    ]
    p = subprocess.run(cmd, capture_output=True, text=True)
    if p.returncode != 0:
        msg = f"ffprobe failed (code {p.returncode})."
        if p.stderr:
            msg += f"\nstderr:\n{p.stderr.strip()}"
        raise RuntimeError(msg)
    try:
        return json.loads(p.stdout)
    except json.JSONDecodeError as e:
        out = (p.stdout or "").strip()
        if len(out) > 800:
            out = out[:800] + "..."
        raise RuntimeError(f"Could not parse ffprobe JSON output: {e}\nstdout:\n{out}") from e


def extract_creation_time_tag(ffprobe_json: Mapping[str, Any]) -> str | None:
    fmt_tags = (ffprobe_json.get("format") or {}).get("tags") or {}
    for k in CREATION_TIME_KEYS:
        v = fmt_tags.get(k)
        if v:
            return v

    for stream in ffprobe_json.get("streams") or []:
        tags = stream.get("tags") or {}
        for k in CREATION_TIME_KEYS:
            v = tags.get(k)
            if v:
                return v

    return None


def _frame_time(frame: Mapping[str, Any]) -> float | None:
    for key in ("pts_time", "best_effort_timestamp_time"):
        v = frame.get(key)
        if v in (None, "N/A"):
            continue
        try:
            return float(v)
        except (TypeError, ValueError):
            continue
    return None


def metadata_from_ffprobe(data: Mapping[str, Any], *, file_name: str = "") -> dict[str, Any]:
    """Sidecar dict from ffprobe JSON (format, streams, frames)."""
    tag = extract_creation_time_tag(data)
    if not tag:
        raise MissingMetadataError("ffprobe reported no creation_time tag")

    streams = data.get("streams") or []
    stream = streams[0] if streams else {}
    frame_rate = None
    rate = stream.get("r_frame_rate")
    if rate and rate != "0/0":
        try:
            frame_rate = float(Fraction(rate))
        except (ValueError, ZeroDivisionError):
            frame_rate = None

    dur_text = (data.get("format") or {}).get("duration")
    return {
        "file": file_name,
        "creation_time": tag,
        "pts_times": [_frame_time(f) for f in data.get("frames") or []],
        "duration": float(dur_text) if dur_text else None,
        "frame_rate": frame_rate,
        "width": int(stream.get("width") or 0),
        "height": int(stream.get("height") or 0),
    }


def probe_video_metadata(
    video_path: str | Path,
    *,
    ffprobe_bin: str = "ffprobe",
    out_path: str | Path | None = None,
) -> Path:
    """Run ffprobe on a video and write its metadata sidecar; returns the sidecar path."""
    data = run_ffprobe(str(video_path), ffprobe_bin=ffprobe_bin)
    meta = metadata_from_ffprobe(data, file_name=Path(video_path).name)
    out = Path(out_path) if out_path else sidecar_path(video_path)
    out.write_text(json.dumps(meta, indent=2), encoding="utf-8")
    logger.info("Wrote %d frame timestamps to %s", len(meta["pts_times"]), out)
    return out
