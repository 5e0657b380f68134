from pathlib import Path

import pytest

from ride_overlay.models import RawPoint

# 2025-10-12T14:39:34Z
T0_MS = 1_760_279_974_000

GPX_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<gpx version="1.1" creator="test"
     xmlns="http://www.topografix.com/GPX/1/1"
     xmlns:gpxtpx="http://www.garmin.com/xmlschemas/TrackPointExtension/v1">
  <trk><name>test</name><trkseg>
{points}
  </trkseg></trk>
</gpx>
"""


def iso(ms: int) -> str:
    from datetime import UTC, datetime

    return datetime.fromtimestamp(ms / 1000, tz=UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def gpx_point(lat: float, lon: float, ele: float, time: str | None, hr: int | None = None) -> str:
    parts = [f'    <trkpt lat="{lat}" lon="{lon}">', f"<ele>{ele}</ele>"]
    if time is not None:
        parts.append(f"<time>{time}</time>")
    if hr is not None:
        parts.append(
            "<extensions><gpxtpx:TrackPointExtension>"
            f"<gpxtpx:hr>{hr}</gpxtpx:hr>"
            "</gpxtpx:TrackPointExtension></extensions>"
        )
    parts.append("</trkpt>")
    return "".join(parts)


@pytest.fixture
def three_points() -> list[RawPoint]:
    """t=0s/10s/20s heading north, climbing 10 m per step."""
    return [
        RawPoint(lat=0.0, lon=0.0, elevation=100.0, time=iso(T0_MS)),
        RawPoint(lat=0.001, lon=0.0, elevation=110.0, time=iso(T0_MS + 10_000)),
        RawPoint(lat=0.002, lon=0.0, elevation=120.0, time=iso(T0_MS + 20_000)),
    ]


@pytest.fixture
def steady_ride() -> list[RawPoint]:
    """120 one-second fixes moving north at a constant ~15 mph, with heart rate."""
    # 15 mph = 0.0041667 mi/s; 1 deg lat ~= 69.09 mi
    step = (15.0 / 3600.0) / 69.09
    return [
        RawPoint(
            lat=40.0 + i * step,
            lon=-105.0,
            elevation=1600.0 + i * 0.5,
            time=iso(T0_MS + i * 1000),
            heart_rate=130 + (i % 10),
        )
        for i in range(120)
    ]


@pytest.fixture
def gpx_file(tmp_path: Path) -> Path:
    pts = "\n".join(
        [
            gpx_point(0.0, 0.0, 100.0, iso(T0_MS), hr=None),
            gpx_point(0.001, 0.0, 110.0, iso(T0_MS + 10_000), hr=140),
            gpx_point(0.002, 0.0, 120.0, iso(T0_MS + 20_000), hr=None),
        ]
    )
    path = tmp_path / "ride.gpx"
    path.write_text(GPX_TEMPLATE.format(points=pts), encoding="utf-8")
    return path


@pytest.fixture
def meta_dict() -> dict:
    """Sidecar for a 30 fps clip starting exactly at the track start."""
    return {
        "creation_time": iso(T0_MS),
        "pts_times": [round(i / 30, 6) for i in range(30 * 25)],
        "duration": 25.0,
    }
