"""
Leave request validation.

Validators accumulate every applicable FieldError instead of stopping at the
first failure; an empty list means the request may be created.
"""
import logging
from datetime import date, datetime, timedelta
from typing import List, Optional
from sqlalchemy.orm import Session
from leavetrack.core.config import settings
from leavetrack.models.leave import LeaveRequest, LeaveType
from leavetrack.schemas.leave import LeaveSubmitRequest
from leavetrack.schemas.validation import ErrorCode, FieldError, field_error
from leavetrack.services.holiday_service import check_blocked_dates, format_blocked_dates
from leavetrack.services.leave_balance_service import validate_leave_balance
from leavetrack.services.overlap_service import KIND_LEAVE, overlap_errors
from leavetrack.services.substitute_service import validate_substitutes
from leavetrack.services.working_days_service import calculate_working_days
from leavetrack.utils.date_selection import DateSelection
from leavetrack.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)


def validate_leave_request_dates(
    start_date: date,
    end_date: date,
    today: Optional[date] = None,
) -> List[FieldError]:
    """
    Pure date-window checks for leave: PAST_DATE, INVALID_DATE_RANGE,
    EXCEEDS_MAX_DAYS and INSUFFICIENT_NOTICE, all evaluated independently.
    """
    today = today or date.today()
    errors: List[FieldError] = []

    if start_date < today:
        errors.append(field_error("startDate", ErrorCode.PAST_DATE, "Leave start date cannot be in the past"))

    if end_date < start_date:
        errors.append(
            field_error("endDate", ErrorCode.INVALID_DATE_RANGE, "End date must be after or equal to start date")
        )

    max_days = settings.MAX_CONSECUTIVE_LEAVE_DAYS
    if (end_date - start_date).days + 1 > max_days:
        errors.append(
            field_error("endDate", ErrorCode.EXCEEDS_MAX_DAYS, f"Maximum consecutive leave days is {max_days}")
        )

    min_notice = settings.MIN_ADVANCE_NOTICE_DAYS
    if start_date < today + timedelta(days=min_notice):
        errors.append(
            field_error(
                "startDate",
                ErrorCode.INSUFFICIENT_NOTICE,
                f"Leave requests must be submitted at least {min_notice} days in advance",
            )
        )
    return errors


def blocked_date_errors(db: Session, selection: DateSelection, label: str = "The following dates are blocked") -> List[FieldError]:
    blocked = check_blocked_dates(db, selection)
    if not blocked:
        return []
    return [field_error("dates", ErrorCode.BLOCKED_DATES, f"{label}: {format_blocked_dates(blocked)}")]


def check_duplicate_request(
    db: Session,
    user_id: int,
    leave_type_id: int,
    start_date: date,
    end_date: date,
    now: Optional[datetime] = None,
) -> bool:
    """An identical leave request created inside the duplicate window is a probable double-submit."""
    now = now or now_utc()
    window_start = now - timedelta(minutes=settings.DUPLICATE_WINDOW_MINUTES)
    recent = db.query(LeaveRequest.id).filter(
        LeaveRequest.user_id == user_id,
        LeaveRequest.leave_type_id == leave_type_id,
        LeaveRequest.start_date == start_date,
        LeaveRequest.end_date == end_date,
        LeaveRequest.created_at >= window_start,
    ).first()
    return recent is not None


def validate_leave_request(
    db: Session,
    user_id: int,
    data: LeaveSubmitRequest,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
    exclude_request_id: Optional[int] = None,
) -> List[FieldError]:
    """
    Comprehensive leave request validation

    Args:
        db: Database session
        user_id: Requesting user
        data: Submitted request
        today: Reference date for window rules (defaults to the current date)
        now: Reference time for the duplicate window (defaults to the current time)
        exclude_request_id: Existing request being re-validated (skips itself and the duplicate guard)

    Returns:
        List of FieldError; empty when the request is valid
    """
    today = today or date.today()
    errors: List[FieldError] = []

    selection = data.selection
    start_date, end_date = (data.start_date, data.end_date)
    if data.selected_dates:
        start_date, end_date = selection.bounds()
    range_ok = end_date >= start_date

    errors.extend(validate_leave_request_dates(start_date, end_date, today))

    leave_type = db.query(LeaveType).filter(LeaveType.id == data.leave_type_id).first()
    if leave_type is None or not leave_type.is_active:
        errors.append(field_error("leaveTypeId", ErrorCode.INVALID_LEAVE_TYPE, "Leave type not found or inactive"))
        leave_type = None

    if range_ok:
        errors.extend(overlap_errors(db, user_id, selection, KIND_LEAVE, exclude_request_id))
        errors.extend(blocked_date_errors(db, selection))

        if data.substitute_ids:
            errors.extend(validate_substitutes(db, data.substitute_ids, selection, user_id))

        if leave_type is not None:
            required = calculate_working_days(db, selection)
            if data.total_days is not None and data.total_days != required:
                logger.debug(
                    "Client total_days=%s differs from %s working days for user %s", data.total_days, required, user_id
                )
            errors.extend(validate_leave_balance(db, user_id, leave_type.id, required, start_date.year))

    if exclude_request_id is None and check_duplicate_request(
        db, user_id, data.leave_type_id, start_date, end_date, now
    ):
        errors.append(
            field_error(
                "request",
                ErrorCode.DUPLICATE_REQUEST,
                "A similar request was recently submitted. Please check your pending requests.",
            )
        )

    if errors:
        logger.info(
            "Leave request validation failed for user %s: %s", user_id, ", ".join(e.code.value for e in errors)
        )
    return errors
