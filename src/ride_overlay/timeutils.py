"""Timestamp parsing and formatting helpers."""

from __future__ import annotations

import math
import re
from datetime import UTC, datetime, tzinfo
from zoneinfo import ZoneInfo


def tzinfo_from_name(tz_name: str) -> tzinfo:
    """
    Resolve an IANA timezone name like "America/Denver".

    Raises ValueError for names unknown to this system.
    """
    try:
        return ZoneInfo(tz_name)
    except Exception as exc:  # ZoneInfoNotFoundError / ValueError, platform dependent
        raise ValueError(f"unknown timezone: {tz_name!r}") from exc


def localize(dt: datetime, tz_name: str | None = None) -> datetime:
    """
    Attach a zone to a naive datetime and return it in UTC.

    Naive values are wall-clock time in tz_name, or in the system local zone
    when tz_name is None. Aware values are only converted.
    """
    if dt.tzinfo is None:
        if tz_name:
            dt = dt.replace(tzinfo=tzinfo_from_name(tz_name))
        else:
            dt = dt.astimezone()
    return dt.astimezone(UTC)


def parse_iso8601(s: str, *, tz_name: str | None = None) -> datetime:
    """
    Parse a GPX / ffprobe style timestamp into an aware datetime in UTC.

    Expected inputs:
      - 2025-10-12T14:39:34.000000Z
      - 2025-10-12T14:39:34Z
      - 2025-10-12T18:39:34+0400
      - 2025-10-12T18:39:34+04:00
      - 2025-10-12T14:39:34        (no zone: local time, see `localize`)
    """
    s = s.strip()
    if not s:
        raise ValueError("empty datetime string")
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"

    # Convert timezone offset like +0000 to +00:00 (Python expects a colon).
    m = re.match(r"^(.*T.*)([+-]\d{2})(\d{2})$", s)
    if m:
        s = f"{m.group(1)}{m.group(2)}:{m.group(3)}"

    dt = datetime.fromisoformat(s)
    return localize(dt, tz_name)


def epoch_ms_from_dt(dt: datetime, tz_name: str | None = None) -> int:
    return int(round(localize(dt, tz_name).timestamp() * 1000))


def dt_from_epoch_ms(epoch_ms: float, tz_name: str | None = None) -> datetime:
    if tz_name:
        return datetime.fromtimestamp(epoch_ms / 1000.0, tz=tzinfo_from_name(tz_name))
    return datetime.fromtimestamp(epoch_ms / 1000.0, tz=UTC).astimezone()


def coerce_epoch_ms(value: object, tz_name: str | None = None) -> float | None:
    """
    Best-effort conversion of a raw timestamp to epoch milliseconds.

    Accepts ISO-8601 strings, datetimes and epoch-ms numbers. Returns None
    when the value is missing or does not parse to a finite number.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return float(epoch_ms_from_dt(value, tz_name))
    if isinstance(value, (int, float)):
        v = float(value)
        return v if math.isfinite(v) else None
    if isinstance(value, str):
        try:
            return float(epoch_ms_from_dt(parse_iso8601(value, tz_name=tz_name)))
        except (ValueError, OverflowError):
            return None
    return None


def format_clock(epoch_ms: float | None, tz_name: str | None = None) -> str:
    """HH:MM:SS wall-clock time, or --:--:-- when unknown."""
    if epoch_ms is None or not math.isfinite(epoch_ms) or epoch_ms == 0:
        return "--:--:--"
    return dt_from_epoch_ms(epoch_ms, tz_name).strftime("%H:%M:%S")


def format_elapsed(sec: float) -> str:
    """Format elapsed seconds as MM:SS or H:MM:SS."""
    total = int(math.floor(max(0.0, sec)))
    h = total // 3600
    m = (total % 3600) // 60
    s = total % 60
    return f"{h}:{m:02d}:{s:02d}" if h > 0 else f"{m}:{s:02d}"
