"""
Track sources: GPX and FIT files -> raw point lists.

Parsers do no validation beyond structure; values are passed through as read
and cleaned by `ride_overlay.normalize`.
"""

from __future__ import annotations

import json
import xml.etree.ElementTree as ET
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Iterable

from fitparse import FitFile

from ride_overlay.models import RawPoint

SEMICIRCLES_TO_DEGREES = 180.0 / 2**31


def _local_name(tag: str) -> str:
    return tag[tag.find("}") + 1 :] if "}" in tag else tag


def _child_text(node: ET.Element, name: str) -> str | None:
    for child in node:
        if _local_name(child.tag) == name:
            return child.text
    return None


def _heart_rate(node: ET.Element) -> str | None:
    """Heart rate from <extensions>, e.g. <gpxtpx:TrackPointExtension><gpxtpx:hr>."""
    for child in node:
        if _local_name(child.tag) != "extensions":
            continue
        for ext in child.iter():
            if _local_name(ext.tag) in {"hr", "heartrate"} and ext.text:
                return ext.text
    return None


# -----------------------------
# GPX
# -----------------------------


def parse_gpx_text(text: str | bytes) -> list[RawPoint]:
    root = ET.fromstring(text)
    points: list[RawPoint] = []
    for node in root.iter():
        if _local_name(node.tag) != "trkpt":
            continue
        points.append(
            RawPoint(
                lat=node.attrib.get("lat"),
                lon=node.attrib.get("lon"),
                elevation=_child_text(node, "ele"),
                time=_child_text(node, "time"),
                heart_rate=_heart_rate(node),
            )
        )
    return points


def parse_gpx(path: str | Path) -> list[RawPoint]:
    return parse_gpx_text(Path(path).read_bytes())


# -----------------------------
# FIT
# -----------------------------


def _number(v: object) -> float | None:
    return float(v) if isinstance(v, (int, float)) and not isinstance(v, bool) else None


def parse_fit_messages(fit: Any) -> list[RawPoint]:
    """
    Raw points from the `record` messages of a parsed FIT file.

    FIT stores positions in semicircles and naive UTC timestamps.
    """
    points: list[RawPoint] = []
    for msg in fit.get_messages("record"):
        fields = {f.name: f.value for f in msg}

        ts = fields.get("timestamp")
        if isinstance(ts, datetime) and ts.tzinfo is None:
            ts = ts.replace(tzinfo=UTC)
        elif not isinstance(ts, datetime):
            ts = None

        lat = _number(fields.get("position_lat"))
        lon = _number(fields.get("position_long"))
        ele = fields.get("enhanced_altitude", fields.get("altitude"))

        points.append(
            RawPoint(
                lat=lat * SEMICIRCLES_TO_DEGREES if lat is not None else None,
                lon=lon * SEMICIRCLES_TO_DEGREES if lon is not None else None,
                elevation=_number(ele),
                time=ts,
                heart_rate=_number(fields.get("heart_rate")),
            )
        )
    return points


def parse_fit(path: str | Path) -> list[RawPoint]:
    return parse_fit_messages(FitFile(str(path)))


# -----------------------------
# JSON point lists
# -----------------------------


def points_from_records(records: Iterable[dict[str, Any]]) -> list[RawPoint]:
    """Raw points from JSON-style dicts ({lat, lon, ele, time, hr})."""
    return [
        RawPoint(
            lat=r.get("lat"),
            lon=r.get("lon"),
            elevation=r.get("ele", r.get("elevation")),
            time=r.get("time"),
            heart_rate=r.get("hr", r.get("heart_rate")),
        )
        for r in records
    ]


def parse_points_json(path: str | Path) -> list[RawPoint]:
    """A JSON array of {lat, lon, ele, time, hr} objects (GPX converted offline)."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array of points in {path}")
    return points_from_records(r for r in data if isinstance(r, dict))


# -----------------------------
# Dispatch
# -----------------------------

PARSERS = {
    ".gpx": parse_gpx,
    ".fit": parse_fit,
    ".json": parse_points_json,
}


def load_raw_points(path: str | Path) -> list[RawPoint]:
    ext = Path(path).suffix.lower()
    parser = PARSERS.get(ext)
    if parser is None:
        raise ValueError(f"Unsupported track file extension: {ext} (expected {', '.join(PARSERS)})")
    return parser(path)
