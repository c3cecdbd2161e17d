from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone


_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhdw]?)\s*$", re.IGNORECASE)
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def utcnow_iso() -> str:
    """Current UTC time as ISO-8601 string with Z."""
    return to_iso(utcnow())


def to_iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def parse_duration(value: str | int) -> timedelta:
    """Parse a token lifetime such as "7d", "12h", "30m", "45s" or "3600".

    Bare numbers are seconds. Raises ValueError on anything else (including zero).
    """
    if isinstance(value, int):
        seconds = value
    else:
        m = _DURATION_RE.match(value or "")
        if m is None:
            raise ValueError(f"invalid_duration: {value!r}")
        seconds = int(m.group(1)) * _UNIT_SECONDS[m.group(2).lower()]
    if seconds <= 0:
        raise ValueError(f"invalid_duration: {value!r}")
    return timedelta(seconds=seconds)
