from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

from zora.config import settings


def _tz() -> tzinfo:
    """Business timezone; read on every call so TZ can be changed at runtime."""
    if settings.TZ.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(settings.TZ)


def local_today() -> date:
    return datetime.now(_tz()).date()


def day_bounds(start: date | None, end: date | None) -> tuple[datetime | None, datetime | None]:
    """Inclusive local calendar-day range as UTC datetimes: [start 00:00, end+1 00:00)."""
    tz = _tz()
    lo = datetime.combine(start, time.min, tzinfo=tz).astimezone(timezone.utc) if start else None
    hi = datetime.combine(end + timedelta(days=1), time.min, tzinfo=tz).astimezone(timezone.utc) if end else None
    return lo, hi


def apply_range(q, column, start: date | None, end: date | None):
    lo, hi = day_bounds(start, end)
    if lo is not None:
        q = q.filter(column >= lo)
    if hi is not None:
        q = q.filter(column < hi)
    return q


def period_key(ts: datetime, group_by: str) -> str:
    # sqlite hands back naive datetimes; they are stored in UTC
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    ts = ts.astimezone(_tz())
    if group_by == "week":
        monday = ts.date() - timedelta(days=ts.weekday())
        return monday.isoformat()
    if group_by == "month":
        return f"{ts.year}-{ts.month:02d}"
    if group_by == "year":
        return str(ts.year)
    return ts.date().isoformat()
