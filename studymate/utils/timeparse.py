# studymate/utils/timeparse.py
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, List, Optional

# Fallback formats tried after ISO-8601 parsing fails
_DATE_FMTS: List[str] = [
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M",
]


def _to_naive_utc(dt: datetime) -> Optional[datetime]:
    if dt.tzinfo is None:
        return dt
    try:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    except OverflowError:
        # shifting to UTC walks off either end of the datetime range
        return None


def parse_instant(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp (or bare date) into a naive wall-clock datetime.

    Offsets are normalised to UTC and then dropped. Returns None for anything
    that is not a string/date/datetime or does not parse.
    """
    if isinstance(value, datetime):
        return _to_naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        return None
    s = value.strip()
    if not s:
        return None
    if s.endswith("Z") or s.endswith("z"):
        s = s[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(s)
    except ValueError:
        parsed = None
    if parsed is not None:
        return _to_naive_utc(parsed)
    for fmt in _DATE_FMTS:
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    return None


def parse_day(value: Any) -> Optional[date]:
    dt = parse_instant(value)
    return dt.date() if dt is not None else None


def format_instant(dt: datetime) -> str:
    return dt.isoformat(timespec="seconds")
