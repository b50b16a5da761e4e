"""
Substitute / coverage validation

Each nominated substitute is checked on its own, stopping at the first failing
rule for that substitute; errors for different substitutes accumulate.
"""
import logging
from typing import Iterable, List, Optional
from sqlalchemy.orm import Session
from leavetrack.models.leave import ACTIVE_REQUEST_STATUSES, LeaveRequest, RequestStatus, leave_request_substitutes
from leavetrack.models.user import User
from leavetrack.models.wfh import WorkFromHomeRequest
from leavetrack.schemas.validation import ErrorCode, FieldError, field_error
from leavetrack.services.overlap_service import find_overlapping
from leavetrack.utils.date_selection import DateSelection, overlaps

logger = logging.getLogger(__name__)


def find_circular_nominations(
    db: Session,
    substitute_id: int,
    requester_id: int,
    selection: DateSelection,
) -> List[LeaveRequest]:
    """Active leave requests of substitute_id, overlapping selection, that nominate requester_id."""
    start, end = selection.bounds()
    candidates = (
        db.query(LeaveRequest)
        .join(leave_request_substitutes, leave_request_substitutes.c.leave_request_id == LeaveRequest.id)
        .filter(
            LeaveRequest.user_id == substitute_id,
            LeaveRequest.status.in_(list(ACTIVE_REQUEST_STATUSES)),
            leave_request_substitutes.c.substitute_id == requester_id,
            LeaveRequest.start_date <= end,
            LeaveRequest.end_date >= start,
        )
        .all()
    )
    return [req for req in candidates if overlaps(selection, req.selection)]


def validate_substitute(
    db: Session,
    substitute_id: int,
    selection: DateSelection,
    requester_id: int,
    exclude_request_id: Optional[int] = None,
) -> List[FieldError]:
    """
    Validate one substitute for the given window.

    Order: self-substitution, inactive, circular nomination, unavailable.
    Circular is checked before availability because a circular nomination
    always implies the substitute is also away.

    Returns:
        At most one FieldError
    """
    if substitute_id == requester_id:
        return [field_error("substituteIds", ErrorCode.SELF_SUBSTITUTION, "You cannot nominate yourself as substitute")]

    substitute = db.query(User).filter(User.id == substitute_id).first()
    if substitute is None or not substitute.is_active:
        return [
            field_error(
                "substituteIds",
                ErrorCode.SUBSTITUTE_INACTIVE,
                f"Substitute {substitute_id} is not an active user",
            )
        ]

    circular = find_circular_nominations(db, substitute_id, requester_id, selection)
    if circular:
        return [
            field_error(
                "substituteIds",
                ErrorCode.CIRCULAR_SUBSTITUTION,
                f"{substitute.full_name} has nominated you as their substitute for the same period "
                f"({', '.join(r.request_number for r in circular)})",
            )
        ]

    on_leave = find_overlapping(
        db, LeaveRequest, substitute_id, selection, exclude_request_id=exclude_request_id
    )
    if on_leave:
        return [
            field_error(
                "substituteIds",
                ErrorCode.SUBSTITUTE_UNAVAILABLE,
                f"{substitute.full_name} is on leave during this period",
            )
        ]

    # Approved WFH is weaker coverage but permitted
    on_wfh = find_overlapping(db, WorkFromHomeRequest, substitute_id, selection, statuses=(RequestStatus.APPROVED,))
    if on_wfh:
        logger.warning(
            "Substitute %s is working from home during the requested window (%s)",
            substitute_id,
            ", ".join(c.request_number for c in on_wfh),
        )
    return []


def validate_substitutes(
    db: Session,
    substitute_ids: Iterable[int],
    selection: DateSelection,
    requester_id: int,
) -> List[FieldError]:
    """Validate every distinct substitute; duplicates in the list are an error of their own."""
    ids = list(substitute_ids or [])
    errors: List[FieldError] = []
    if len(ids) != len(set(ids)):
        errors.append(
            field_error("substituteIds", ErrorCode.DUPLICATE_SUBSTITUTES, "The same substitute was selected more than once")
        )
    seen = set()
    for substitute_id in ids:
        if substitute_id in seen:
            continue
        seen.add(substitute_id)
        errors.extend(validate_substitute(db, substitute_id, selection, requester_id))
    return errors
