"""Local-time helpers shared by the hooks.

Every persisted timestamp is a *naive* local datetime string in the
configured time zone (``TIME_ZONE``, falling back to the system zone).
File names use a compact UTC stamp so they sort chronologically regardless
of the zone the user happened to be in.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

log = logging.getLogger(__name__)


def zone(name: str) -> tzinfo | None:
    """Return the tzinfo for *name*, or ``None`` for system local time."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        log.warning("Unknown time zone %r, using system local time: %s", name, exc)
        return None


def local_now(tz_name: str = "") -> datetime:
    """Current wall-clock time in *tz_name* as a naive datetime."""
    tz = zone(tz_name)
    if tz is None:
        return datetime.now()
    return datetime.now(tz).replace(tzinfo=None)


def iso_local(dt: datetime) -> str:
    """``2026-01-18T09:30:00`` -- the rating log format."""
    return dt.strftime("%Y-%m-%dT%H:%M:%S")


def display_local(dt: datetime) -> str:
    """``2026-01-18 09:30:00`` -- the Markdown front-matter format."""
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def year_month(dt: datetime) -> str:
    return dt.strftime("%Y-%m")


def to_utc(local: datetime, tz_name: str = "") -> datetime:
    """Interpret naive *local* in *tz_name* and convert it to UTC."""
    tz = zone(tz_name)
    if tz is not None:
        return local.replace(tzinfo=tz).astimezone(timezone.utc)
    # Naive datetimes are treated as system local time by astimezone().
    return local.astimezone(timezone.utc)


def file_stamp(local: datetime, tz_name: str = "") -> str:
    """Compact UTC stamp for file names, e.g. ``20260118T153000``."""
    return to_utc(local, tz_name).strftime("%Y%m%dT%H%M%S")


def parse_timestamp(value: object, tz_name: str = "") -> datetime | None:
    """Parse a stored timestamp back into a naive local datetime.

    Accepts both ``T`` and space separators.  Offset-aware values are
    converted into the configured zone.  Returns ``None`` for anything
    unparseable so callers can skip the record.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is not None:
        tz = zone(tz_name)
        dt = dt.astimezone(tz).replace(tzinfo=None)
    return dt
