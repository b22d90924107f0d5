"""Turn local (date, HH:MM) pairs into offset-qualified timestamps."""
import logging
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo

from outage_snapshots.config import config

logger = logging.getLogger(__name__)

TIME_RE = re.compile(r"^\d{1,2}:\d{2}$")
GROUP_KEY_RE = re.compile(r"^[A-ZА-Я]{2,}\d+\.\d+$", re.IGNORECASE)

DATE_KEYS = ("date", "day", "d")
START_KEYS = ("start", "from", "begin", "s")
END_KEYS = ("end", "to", "finish", "e")


def utc_offset_at(instant: datetime, tz: ZoneInfo) -> timedelta:
    """UTC offset of ``tz`` at an aware instant."""
    return instant.astimezone(tz).utcoffset()


def format_offset(offset: timedelta) -> str:
    total = int(offset.total_seconds() // 60)
    sign = "+" if total >= 0 else "-"
    hours, minutes = divmod(abs(total), 60)
    return f"{sign}{hours:02d}:{minutes:02d}"


def local_to_iso(date_str: str, time_str: str, tz_name: str | None = None) -> str:
    """
    Convert a wall-clock date/time in ``tz_name`` to ``YYYY-MM-DDTHH:MM:SS±HH:MM``.

    The wall-clock fields are first read as if they were UTC; the zone offset at
    that provisional instant is subtracted, and the offset at the corrected
    instant is used for the output. ``24:00`` is midnight ending ``date_str``.
    """
    tz = ZoneInfo(tz_name or config.TIMEZONE)
    day = date.fromisoformat(date_str)
    hours, minutes = (int(part) for part in time_str.split(":"))
    if not 0 <= minutes < 60 or not 0 <= hours <= 24 or (hours == 24 and minutes):
        raise ValueError(f"Invalid time {time_str!r}")

    provisional = datetime(day.year, day.month, day.day, tzinfo=timezone.utc) + timedelta(
        hours=hours, minutes=minutes
    )
    corrected = provisional - utc_offset_at(provisional, tz)
    offset = utc_offset_at(corrected, tz)
    local = (corrected + offset).replace(tzinfo=None)
    return f"{local.strftime('%Y-%m-%dT%H:%M:%S')}{format_offset(offset)}"


def _first(entry: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = entry.get(key)
        if value:
            return value
    return None


def _pad_time(value: str) -> str:
    return f"0{value}" if len(value) == 4 else value


def normalize_interval(entry: Any, tz_name: str | None = None) -> Any:
    """Return ``{date, startLocal, endLocal}`` for interval-shaped entries, else ``entry``."""
    if not isinstance(entry, dict):
        return entry
    day = _first(entry, DATE_KEYS)
    start = _first(entry, START_KEYS)
    end = _first(entry, END_KEYS)
    if not (day and isinstance(start, str) and isinstance(end, str)):
        return entry
    if not (TIME_RE.match(start) and TIME_RE.match(end)):
        return entry

    try:
        return {
            "date": str(day),
            "startLocal": local_to_iso(str(day), _pad_time(start), tz_name),
            "endLocal": local_to_iso(str(day), _pad_time(end), tz_name),
        }
    except ValueError as e:
        logger.debug(f"Leaving interval {entry!r} as-is: {e}")
        return entry


def normalize_groups(payload: Any, tz_name: str | None = None) -> Any:
    """
    Walk ``payload`` and normalize interval lists stored under outage-group keys
    (``GPV1.2`` and the like). Everything else is returned unchanged.
    """
    if isinstance(payload, dict):
        out = {}
        for key, value in payload.items():
            if isinstance(value, list) and GROUP_KEY_RE.match(str(key)):
                out[key] = [normalize_interval(item, tz_name) for item in value]
            else:
                out[key] = normalize_groups(value, tz_name)
        return out
    if isinstance(payload, list):
        return [normalize_groups(item, tz_name) for item in payload]
    return payload
