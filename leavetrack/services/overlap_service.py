"""
Overlap / conflict detection between a candidate date selection and a user's
existing leave and WFH requests.

Only PENDING and APPROVED requests occupy days. Ranges compare by interval
intersection; explicit day lists compare by exact day, so a single WFH day on
the 14th does not block a request for the 10th and the 20th.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import FrozenSet, List, Optional, Sequence, Type, Union
from sqlalchemy.orm import Session
from leavetrack.models.leave import ACTIVE_REQUEST_STATUSES, LeaveRequest, RequestStatus
from leavetrack.models.wfh import WorkFromHomeRequest
from leavetrack.schemas.validation import ErrorCode, FieldError, field_error
from leavetrack.utils.date_selection import DateSelection, format_selection, overlaps, shared_days

logger = logging.getLogger(__name__)

RequestModel = Union[Type[LeaveRequest], Type[WorkFromHomeRequest]]

KIND_LEAVE = "LEAVE"
KIND_WFH = "WFH"

_MODELS = {KIND_LEAVE: LeaveRequest, KIND_WFH: WorkFromHomeRequest}


@dataclass(frozen=True)
class Conflict:
    kind: str
    request_id: int
    request_number: str
    selection: DateSelection
    days: FrozenSet[date]

    def describe(self) -> str:
        return f"{self.request_number} ({format_selection(self.selection)})"


def model_for(kind: str) -> RequestModel:
    try:
        return _MODELS[kind]
    except KeyError:
        raise ValueError(f"Unknown request kind: {kind}")


def other_kind(kind: str) -> str:
    return KIND_WFH if kind == KIND_LEAVE else KIND_LEAVE


def find_overlapping(
    db: Session,
    model: RequestModel,
    user_id: int,
    selection: DateSelection,
    statuses: Sequence[RequestStatus] = ACTIVE_REQUEST_STATUSES,
    exclude_request_id: Optional[int] = None,
) -> List[Conflict]:
    """
    Requests of one kind owned by user_id that share a day with selection.

    The bounds query is a coarse prefilter (stored start/end always enclose
    any explicit day list); the exact test runs on the date selections.
    """
    if not selection.days():
        return []
    start, end = selection.bounds()
    query = db.query(model).filter(
        model.user_id == user_id,
        model.status.in_(list(statuses)),
        model.start_date <= end,
        model.end_date >= start,
    )
    if exclude_request_id is not None:
        query = query.filter(model.id != exclude_request_id)

    conflicts = []
    for existing in query.order_by(model.start_date, model.id).all():
        existing_selection = existing.selection
        if overlaps(selection, existing_selection):
            conflicts.append(
                Conflict(
                    kind=existing.kind,
                    request_id=existing.id,
                    request_number=existing.request_number,
                    selection=existing_selection,
                    days=shared_days(selection, existing_selection),
                )
            )
    return conflicts


def check_overlapping_requests(
    db: Session,
    user_id: int,
    selection: DateSelection,
    kind: str,
    exclude_request_id: Optional[int] = None,
) -> List[Conflict]:
    """Same-kind conflicts (leave vs leave, WFH vs WFH)."""
    return find_overlapping(db, model_for(kind), user_id, selection, exclude_request_id=exclude_request_id)


def check_leave_conflict(
    db: Session,
    user_id: int,
    selection: DateSelection,
    kind: str,
) -> List[Conflict]:
    """
    Cross-kind conflicts: leave and WFH for the same user may never share a day,
    whichever of the two is being requested now.
    """
    return find_overlapping(db, model_for(other_kind(kind)), user_id, selection)


def find_conflicts(
    db: Session,
    user_id: int,
    selection: DateSelection,
    kind: str,
    exclude_request_id: Optional[int] = None,
) -> List[Conflict]:
    """Every active leave or WFH request of user_id sharing a day with selection."""
    return check_overlapping_requests(db, user_id, selection, kind, exclude_request_id) + check_leave_conflict(
        db, user_id, selection, kind
    )


def overlap_errors(
    db: Session,
    user_id: int,
    selection: DateSelection,
    kind: str,
    exclude_request_id: Optional[int] = None,
) -> List[FieldError]:
    errors: List[FieldError] = []
    same_kind = check_overlapping_requests(db, user_id, selection, kind, exclude_request_id)
    if same_kind:
        label = "leave" if kind == KIND_LEAVE else "WFH"
        errors.append(
            field_error(
                "dates",
                ErrorCode.OVERLAPPING_REQUESTS,
                f"You already have {label} requests for these dates: "
                + ", ".join(c.describe() for c in same_kind),
            )
        )

    cross_kind = check_leave_conflict(db, user_id, selection, kind)
    if cross_kind:
        label = "leave" if kind == KIND_WFH else "WFH"
        errors.append(
            field_error(
                "dates",
                ErrorCode.LEAVE_CONFLICT,
                f"You have {label} requests on these dates: " + ", ".join(c.describe() for c in cross_kind),
            )
        )
    if errors:
        logger.debug("Overlap check for user %s (%s) found %d conflict group(s)", user_id, kind, len(errors))
    return errors


@dataclass(frozen=True)
class ExistingOverlap:
    user_id: int
    first: Conflict
    second: Conflict

    @property
    def days(self) -> FrozenSet[date]:
        return shared_days(self.first.selection, self.second.selection)


def find_existing_overlaps(db: Session) -> List[ExistingOverlap]:
    """
    Audit stored PENDING/APPROVED requests for pairs of the same user that
    share a day (leave-leave, WFH-WFH and leave-WFH). Each pair is reported
    once, earlier request first.
    """
    found = {}
    for kind, model in _MODELS.items():
        for request in db.query(model).filter(model.status.in_(ACTIVE_REQUEST_STATUSES)).order_by(model.id).all():
            selection = request.selection
            own = Conflict(
                kind=kind,
                request_id=request.id,
                request_number=request.request_number,
                selection=selection,
                days=selection.days(),
            )
            for other_model in _MODELS.values():
                exclude = request.id if other_model is model else None
                for other in find_overlapping(db, other_model, request.user_id, selection, exclude_request_id=exclude):
                    first, second = sorted(
                        (own, other), key=lambda c: (c.selection.bounds()[0], c.kind, c.request_id)
                    )
                    key = ((first.kind, first.request_id), (second.kind, second.request_id))
                    if key not in found:
                        found[key] = ExistingOverlap(user_id=request.user_id, first=first, second=second)

    overlaps_found = sorted(found.values(), key=lambda o: (o.user_id, o.first.selection.bounds()[0]))
    if overlaps_found:
        logger.warning("Found %d overlapping request pair(s) in stored data", len(overlaps_found))
    return overlaps_found
