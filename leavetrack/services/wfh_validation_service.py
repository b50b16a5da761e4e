"""
Work-from-home request validation
"""
import logging
from datetime import date, datetime, timedelta
from typing import List, Optional
from sqlalchemy.orm import Session
from leavetrack.core.config import settings
from leavetrack.models.wfh import WorkFromHomeRequest
from leavetrack.schemas.validation import ErrorCode, FieldError, field_error
from leavetrack.schemas.wfh import WFHSubmitRequest
from leavetrack.services.overlap_service import KIND_WFH, overlap_errors
from leavetrack.services.validation_service import blocked_date_errors
from leavetrack.utils.datetime_utils import next_week_start, now_utc

logger = logging.getLogger(__name__)


def validate_wfh_dates(start_date: date, end_date: date, today: Optional[date] = None) -> List[FieldError]:
    """WFH must start in a week strictly after the current (Monday-start) week."""
    today = today or date.today()
    errors: List[FieldError] = []

    if start_date < next_week_start(today):
        errors.append(
            field_error(
                "startDate",
                ErrorCode.CURRENT_WEEK_NOT_ALLOWED,
                "WFH requests must be made for next week or later. Cannot request for current week.",
            )
        )
    if end_date < start_date:
        errors.append(
            field_error("endDate", ErrorCode.INVALID_DATE_RANGE, "End date must be after or equal to start date")
        )
    return errors


def validate_location(location: Optional[str]) -> List[FieldError]:
    trimmed = (location or "").strip()
    if not trimmed:
        return [field_error("location", ErrorCode.LOCATION_REQUIRED, "Location is required")]
    if len(trimmed) < settings.WFH_LOCATION_MIN_LENGTH:
        return [
            field_error(
                "location",
                ErrorCode.LOCATION_TOO_SHORT,
                f"Location must be at least {settings.WFH_LOCATION_MIN_LENGTH} characters",
            )
        ]
    if len(trimmed) > settings.WFH_LOCATION_MAX_LENGTH:
        return [
            field_error(
                "location",
                ErrorCode.LOCATION_TOO_LONG,
                f"Location must be at most {settings.WFH_LOCATION_MAX_LENGTH} characters",
            )
        ]
    return []


def check_duplicate_wfh_request(
    db: Session,
    user_id: int,
    start_date: date,
    end_date: date,
    now: Optional[datetime] = None,
) -> bool:
    now = now or now_utc()
    window_start = now - timedelta(minutes=settings.DUPLICATE_WINDOW_MINUTES)
    recent = db.query(WorkFromHomeRequest.id).filter(
        WorkFromHomeRequest.user_id == user_id,
        WorkFromHomeRequest.start_date == start_date,
        WorkFromHomeRequest.end_date == end_date,
        WorkFromHomeRequest.created_at >= window_start,
    ).first()
    return recent is not None


def validate_wfh_request(
    db: Session,
    user_id: int,
    data: WFHSubmitRequest,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
    exclude_request_id: Optional[int] = None,
) -> List[FieldError]:
    """
    Comprehensive WFH request validation: date window, overlap with other WFH
    requests, conflict with leave, blocked holidays, location and duplicate guard.
    """
    errors: List[FieldError] = []
    selection = data.selection
    start_date, end_date = (data.start_date, data.end_date)
    if data.selected_dates:
        start_date, end_date = selection.bounds()

    errors.extend(validate_wfh_dates(start_date, end_date, today))

    if end_date >= start_date:
        errors.extend(overlap_errors(db, user_id, selection, KIND_WFH, exclude_request_id))
        errors.extend(blocked_date_errors(db, selection, label="WFH not allowed on holidays"))

    errors.extend(validate_location(data.location))

    if exclude_request_id is None and check_duplicate_wfh_request(db, user_id, start_date, end_date, now):
        errors.append(
            field_error(
                "request",
                ErrorCode.DUPLICATE_REQUEST,
                "A similar WFH request was recently submitted. Please check your pending requests.",
            )
        )

    if errors:
        logger.info("WFH request validation failed for user %s: %s", user_id, ", ".join(e.code.value for e in errors))
    return errors
