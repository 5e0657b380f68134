"""
Command-line interface.

Examples
  ride-overlay inspect ride.gpx
  ride-overlay probe GX010766.mp4
  ride-overlay sample ride.gpx GX010766_meta.json --every 1 --until 30 --offset -2.5
"""

from __future__ import annotations

import argparse
import json
import logging
import shutil
import sys
from typing import Sequence

from ride_overlay.config import SMOOTHING_MODES, SyncConfig
from ride_overlay.geo import FEET_PER_METER
from ride_overlay.session import SyncSession
from ride_overlay.timeutils import format_clock, format_elapsed
from ride_overlay.video_meta import probe_video_metadata


def _config_from_args(args: argparse.Namespace) -> SyncConfig:
    return SyncConfig(
        smoothing_window=args.smoothing_window,
        smoothing_mode=args.smoothing,
        outlier_cap_mph=args.outlier_cap,
        offset_ms=getattr(args, "offset", 0.0) * 1000.0,
        time_scale=getattr(args, "scale", 1.0),
        playback_speed_factor=getattr(args, "speed_factor", None),
        tz_name=args.tz,
        auto_correct_clock_mismatch=not getattr(args, "no_clock_fix", False),
    )


def _cmd_inspect(args: argparse.Namespace) -> int:
    session = SyncSession(_config_from_args(args))
    try:
        track = session.load_track(args.track)
    except Exception as e:
        print(f"ERROR: Could not load track: {args.track}\n{e}", file=sys.stderr)
        return 2

    report = track.report
    print("== Track ==")
    print(f"File: {args.track}")
    if report is not None:
        print(
            f"Points: {report.points_kept} kept of {report.points_in} "
            f"(trimmed {report.trimmed}, bad time {report.dropped_time}, "
            f"bad coords {report.dropped_coords}, out of order {report.dropped_unordered})"
        )
    print(f"Start: {format_clock(track.start_ms, args.tz)}  End: {format_clock(track.end_ms, args.tz)}")
    print(f"Duration: {format_elapsed(track.duration_ms / 1000.0)}")
    print(f"Distance: {track.total_miles:.2f} mi")
    print(
        f"Elevation: {track.elevation_min_m * FEET_PER_METER:.0f}-{track.elevation_max_m * FEET_PER_METER:.0f} ft"
    )
    print(f"Max smoothed speed: {max(p.speed_mph for p in track.points):.1f} mph")
    print(f"Suggested speedometer max: {track.suggested_speed_gauge_max_mph:.0f} mph")
    return 0


def _cmd_probe(args: argparse.Namespace) -> int:
    if shutil.which(args.ffprobe_bin) is None:
        print(f"ERROR: ffprobe not found: {args.ffprobe_bin}", file=sys.stderr)
        return 2
    try:
        out = probe_video_metadata(args.video, ffprobe_bin=args.ffprobe_bin, out_path=args.out)
    except Exception as e:
        print(f"ERROR: Could not probe video: {args.video}\n{e}", file=sys.stderr)
        return 2
    print(f"Wrote video metadata: {out}")
    return 0


def _playback_positions(args: argparse.Namespace, duration_s: float | None) -> list[float]:
    if args.at:
        return list(args.at)
    until = args.until if args.until is not None else duration_s
    if until is None:
        until = 0.0
    step = args.every
    n = int(until // step) + 1
    return [round(i * step, 6) for i in range(n)]


def _cmd_sample(args: argparse.Namespace) -> int:
    session = SyncSession(_config_from_args(args))
    try:
        session.load_track(args.track)
    except Exception as e:
        print(f"ERROR: Could not load track: {args.track}\n{e}", file=sys.stderr)
        return 2
    try:
        timeline = session.load_video_metadata(args.meta)
    except Exception as e:
        print(f"ERROR: Could not load video metadata: {args.meta}\n{e}", file=sys.stderr)
        return 2

    gap = session.clock_gap_ms()
    if gap:
        print(f"# video start outside the track by: {gap / 1000.0:+.3f} s", file=sys.stderr)
    if session.clock_correction_ms:
        print(f"# bulk clock correction: {session.clock_correction_ms / 1000.0:+.0f} s", file=sys.stderr)

    track = session.track
    for pos in _playback_positions(args, timeline.duration_s):
        target = session.get_current_absolute_timestamp(pos)
        sample = session.get_interpolated_sample(target)
        if sample is None:
            continue
        row = {"video_s": pos, **sample.as_dict()}
        if track is not None:
            row["slope_pct"] = session.slope_percent(sample)
            row["bearing_deg"] = track.bearing_at(sample)
        print(json.dumps(row))
    return 0


def _add_common(ap: argparse.ArgumentParser) -> None:
    ap.add_argument("--tz", default=None, help="Timezone for zone-less timestamps (default: system local time).")
    ap.add_argument("--smoothing", choices=SMOOTHING_MODES, default="fixed", help="Speed smoothing mode.")
    ap.add_argument("--smoothing-window", type=int, default=5, help="Moving-average window (default: 5).")
    ap.add_argument(
        "--outlier-cap",
        type=float,
        default=40.0,
        help="Speeds above this (mph) are ignored for the gauge range (default: 40).",
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="ride-overlay",
        description="Align GPX/FIT telemetry to a video timeline and sample it for overlays.",
    )
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    sub = ap.add_subparsers(dest="command", required=True)

    p_inspect = sub.add_parser("inspect", help="Load a track and print a summary.")
    p_inspect.add_argument("track", help="Track file (.gpx, .fit or .json)")
    _add_common(p_inspect)
    p_inspect.set_defaults(func=_cmd_inspect)

    p_probe = sub.add_parser("probe", help="Write <video>_meta.json using ffprobe.")
    p_probe.add_argument("video")
    p_probe.add_argument("-o", "--out", default=None, help="Output path (default: <video>_meta.json).")
    p_probe.add_argument("--ffprobe-bin", default="ffprobe", help="Path to ffprobe (default: ffprobe)")
    p_probe.set_defaults(func=_cmd_probe)

    p_sample = sub.add_parser("sample", help="Print interpolated samples as JSON lines.")
    p_sample.add_argument("track", help="Track file (.gpx, .fit or .json)")
    p_sample.add_argument("meta", help="Video metadata sidecar (*_meta.json)")
    p_sample.add_argument("--at", type=float, nargs="+", default=None, help="Playback positions (s).")
    p_sample.add_argument("--every", type=float, default=1.0, help="Sampling step (s) when --at is not given.")
    p_sample.add_argument("--until", type=float, default=None, help="Last position (s); default: video duration.")
    p_sample.add_argument(
        "--offset",
        type=float,
        default=0.0,
        help="Manual alignment offset in seconds added to the video time (can be negative).",
    )
    p_sample.add_argument("--scale", type=float, default=1.0, help="Scale applied to elapsed track time.")
    p_sample.add_argument("--speed-factor", type=float, default=None, help="Override the sidecar speed_factor.")
    p_sample.add_argument(
        "--no-clock-fix",
        action="store_true",
        help="Do not apply a bulk correction when track and video clocks are hours apart.",
    )
    _add_common(p_sample)
    p_sample.set_defaults(func=_cmd_sample)
    return ap


def main(argv: Sequence[str] | None = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if args.command == "sample" and args.every <= 0:
        print("ERROR: --every must be > 0", file=sys.stderr)
        return 2
    if args.command != "probe":
        try:
            _config_from_args(args)
        except ValueError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 2
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
