from __future__ import annotations
from typing import List, Union
from datetime import date, datetime, timezone, timedelta
import re

_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

def day_start(day: str) -> datetime:
    """UTC midnight at the start of a YYYY-MM-DD calendar day."""
    d = date.fromisoformat(day)
    return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)

def format_day(ts: Union[datetime, date]) -> str:
    if isinstance(ts, datetime):
        ts = _as_utc(ts).date()
    return ts.isoformat()

def is_valid_day(s: str) -> bool:
    if not isinstance(s, str) or not _DAY_RE.match(s):
        return False
    try:
        return format_day(day_start(s)) == s
    except ValueError:
        return False

def offset_days(day: str, delta: int) -> str:
    return format_day(day_start(day) + timedelta(days=delta))

def each_day_inclusive(start: str, end: str) -> List[str]:
    cur = day_start(start)
    stop = day_start(end)
    days = []
    while cur <= stop:
        days.append(format_day(cur))
        cur = cur + timedelta(days=1)
    return days

def day_of(ts: Union[datetime, str]) -> str:
    if isinstance(ts, str):
        ts = parse_instant(ts)
    return format_day(ts)

def _as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)

def parse_instant(s: str) -> datetime:
    """Parses an ISO-8601 instant or a bare calendar day; naive values are UTC."""
    if _DAY_RE.match(s):
        return day_start(s)
    return _as_utc(datetime.fromisoformat(s))

def format_instant(ts: datetime) -> str:
    ts = _as_utc(ts)
    return f"{ts.date().isoformat()}T{ts.hour:02d}:{ts.minute:02d}:{ts.second:02d}.{ts.microsecond // 1000:03d}Z"

def to_epoch_ms(value: Union[datetime, str]) -> int:
    if isinstance(value, str):
        value = parse_instant(value)
    value = _as_utc(value)
    delta = value - datetime(1970, 1, 1, tzinfo=timezone.utc)
    return (delta.days * 86400 + delta.seconds) * 1000 + delta.microseconds // 1000
