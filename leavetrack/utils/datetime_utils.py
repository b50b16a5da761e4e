"""
Timezone-aware datetime helpers.
- Store and compute in UTC in DB.
- SQLite hands back naive datetimes; normalise with ensure_utc before comparing.
"""
import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Optional

UTC = timezone.utc


def now_utc() -> datetime:
    """Current time in UTC (timezone-aware). Use for created_at, decided_at, escalated_at, etc."""
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """If dt is naive, treat as UTC and return timezone-aware UTC. If already aware, convert to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    else:
        dt = dt.astimezone(UTC)
    return dt


def week_start(day: date) -> date:
    """Monday of the calendar week containing day."""
    return day - timedelta(days=day.weekday())


def next_week_start(day: date) -> date:
    """Monday of the calendar week after the one containing day."""
    return week_start(day) + timedelta(days=7)


def subtract_months(moment: datetime, months: int) -> datetime:
    """Same wall-clock moment N months earlier, clamped to the month's last day."""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def iso_8601_utc(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with Z for UTC."""
    if dt is None:
        return None
    s = ensure_utc(dt).isoformat()
    if s.endswith("+00:00"):
        s = s[:-6] + "Z"
    return s
