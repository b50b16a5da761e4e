"""
Holiday calendar service - blocked-date lookups and holiday management
"""
from datetime import date
from typing import List, Optional, Set, Tuple
from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from leavetrack.constants import ACTION_CREATE, ACTION_UPDATE, ENTITY_HOLIDAY
from leavetrack.models.holiday import Holiday
from leavetrack.schemas.holiday import HolidayCreate, HolidayUpdate
from leavetrack.services.audit_service import log_audit
from leavetrack.utils.date_selection import DateSelection
from leavetrack.utils.datetime_utils import now_utc
from leavetrack.utils.json_serializer import snapshot

HOLIDAY_SNAPSHOT_FIELDS = ("date", "name", "is_blocked", "is_active")


def get_blocked_holidays(db: Session, start_date: date, end_date: date) -> List[Holiday]:
    """Active, blocked holidays between start_date and end_date (inclusive), ordered by date."""
    return (
        db.query(Holiday)
        .filter(
            Holiday.is_active == True,  # noqa: E712
            Holiday.is_blocked == True,  # noqa: E712
            Holiday.date >= start_date,
            Holiday.date <= end_date,
        )
        .order_by(Holiday.date)
        .all()
    )


def get_blocked_dates(db: Session, start_date: date, end_date: date) -> Set[date]:
    return {h.date for h in get_blocked_holidays(db, start_date, end_date)}


def check_blocked_dates(db: Session, selection: DateSelection) -> List[Tuple[date, str]]:
    """
    Blocked holidays touching a selection.

    A range matches any blocked holiday inside it; explicit days only match a
    holiday on one of the chosen days.

    Returns:
        (date, name) pairs in date order; empty when nothing is blocked
    """
    start, end = selection.bounds()
    return [
        (h.date, h.name)
        for h in get_blocked_holidays(db, start, end)
        if selection.contains(h.date)
    ]


def format_blocked_dates(blocked: List[Tuple[date, str]]) -> str:
    return ", ".join(f"{d.isoformat()} ({name})" for d, name in blocked)


def create_holiday(db: Session, data: HolidayCreate, actor_id: Optional[int] = None) -> Holiday:
    """
    Create a new holiday

    Raises:
        HTTPException: 409 if a holiday with the same date and name exists
    """
    existing = db.query(Holiday).filter(Holiday.date == data.date, Holiday.name == data.name).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Holiday '{data.name}' already exists on {data.date}"
        )

    # Explicitly set created_at/updated_at to avoid SQLite issues with server_default
    now = now_utc()
    holiday = Holiday(
        date=data.date,
        name=data.name,
        is_blocked=data.is_blocked,
        is_active=data.is_active,
        created_at=now,
        updated_at=now,
    )
    db.add(holiday)
    db.commit()
    db.refresh(holiday)

    log_audit(
        db,
        actor_id=actor_id,
        action=ACTION_CREATE,
        entity_type=ENTITY_HOLIDAY,
        entity_id=holiday.id,
        new_values=snapshot(holiday, HOLIDAY_SNAPSHOT_FIELDS),
    )
    return holiday


def list_holidays(db: Session, year: Optional[int] = None, active_only: bool = False) -> List[Holiday]:
    query = db.query(Holiday)
    if year is not None:
        query = query.filter(Holiday.date >= date(year, 1, 1), Holiday.date <= date(year, 12, 31))
    if active_only:
        query = query.filter(Holiday.is_active == True)  # noqa: E712
    return query.order_by(Holiday.date).all()


def update_holiday(db: Session, holiday_id: int, data: HolidayUpdate, actor_id: Optional[int] = None) -> Holiday:
    holiday = db.query(Holiday).filter(Holiday.id == holiday_id).first()
    if not holiday:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Holiday not found")

    before = snapshot(holiday, HOLIDAY_SNAPSHOT_FIELDS)
    for field, value in data.model_dump(exclude_none=True).items():
        setattr(holiday, field, value)
    holiday.updated_at = now_utc()
    db.commit()
    db.refresh(holiday)

    log_audit(
        db,
        actor_id=actor_id,
        action=ACTION_UPDATE,
        entity_type=ENTITY_HOLIDAY,
        entity_id=holiday.id,
        old_values=before,
        new_values=snapshot(holiday, HOLIDAY_SNAPSHOT_FIELDS),
    )
    return holiday
