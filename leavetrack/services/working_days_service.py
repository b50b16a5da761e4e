"""
Working-day arithmetic

A working day is any calendar day that is neither a Saturday/Sunday nor an
active, blocked holiday.
"""
from datetime import date
from decimal import Decimal
from typing import Dict, Optional, Set
from sqlalchemy.orm import Session
from leavetrack.services.holiday_service import get_blocked_dates, get_blocked_holidays
from leavetrack.utils.date_selection import DateSelection


def is_weekend(check_date: date) -> bool:
    """Saturday or Sunday (Monday=0, Sunday=6)"""
    return check_date.weekday() >= 5


def is_working_day(db: Session, check_date: date, blocked: Optional[Set[date]] = None) -> bool:
    if is_weekend(check_date):
        return False
    if blocked is None:
        blocked = get_blocked_dates(db, check_date, check_date)
    return check_date not in blocked


def calculate_working_days(db: Session, selection: DateSelection) -> Decimal:
    """
    Count working days in a selection.

    Args:
        db: Database session (for holiday lookup)
        selection: Range or explicit day set

    Returns:
        Number of working days as Decimal (balance columns are Numeric)
    """
    days = selection.days()
    if not days:
        return Decimal("0")
    start, end = selection.bounds()
    blocked = get_blocked_dates(db, start, end)
    return Decimal(sum(1 for d in days if is_working_day(db, d, blocked)))


def get_working_days_breakdown(db: Session, selection: DateSelection) -> Dict[str, object]:
    """Calendar/weekend/holiday/working split of a selection, for display."""
    days = selection.days()
    if not days:
        return {"calendar_days": 0, "working_days": 0, "weekend_days": 0, "holidays": []}
    start, end = selection.bounds()
    holidays = {h.date: h.name for h in get_blocked_holidays(db, start, end)}
    weekend_days = sum(1 for d in days if is_weekend(d))
    holiday_hits = sorted(
        (d, name) for d, name in holidays.items() if d in days and not is_weekend(d)
    )
    return {
        "calendar_days": len(days),
        "working_days": len(days) - weekend_days - len(holiday_hits),
        "weekend_days": weekend_days,
        "holidays": [{"date": d.isoformat(), "name": name} for d, name in holiday_hits],
    }
