"""
Approval chain service - submission, approve/reject/cancel and escalation.

Every status change is a compare-and-swap on the row's current status, so two
concurrent approvers cannot both win; the loser gets 409 "no longer pending"
and no balance change is applied twice.
"""
import logging
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple, Union
from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from leavetrack.constants import (
    ACTION_APPROVE,
    ACTION_AUTO_APPROVE,
    ACTION_CANCEL,
    ACTION_CREATE,
    ACTION_ESCALATE,
    ACTION_REJECT,
    ACTION_SELF_APPROVAL_ATTEMPT,
    APPROVAL_SNAPSHOT_FIELDS,
    ENTITY_APPROVAL,
    ENTITY_LEAVE_REQUEST,
    ENTITY_WFH_REQUEST,
    LEAVE_REQUEST_PREFIX,
    REQUEST_SNAPSHOT_FIELDS,
    WFH_REQUEST_PREFIX,
)
from leavetrack.core.config import settings
from leavetrack.core.errors import ValidationFailed
from leavetrack.models.approval import Approval, ApprovalStatus
from leavetrack.models.leave import LeaveRequest, RequestStatus
from leavetrack.models.user import Role, User
from leavetrack.models.wfh import WorkFromHomeRequest
from leavetrack.schemas.leave import LeaveSubmitRequest
from leavetrack.schemas.validation import ErrorCode, FieldError, field_error
from leavetrack.schemas.wfh import WFHSubmitRequest
from leavetrack.services import leave_balance_service as ledger
from leavetrack.services.audit_service import log_audit
from leavetrack.services.hierarchy_service import HierarchyCycleError, resolve_approver
from leavetrack.services.overlap_service import KIND_LEAVE, KIND_WFH, model_for
from leavetrack.services.validation_service import validate_leave_request
from leavetrack.services.wfh_validation_service import validate_wfh_request
from leavetrack.services.workflow import WorkflowAction, next_approval_status, next_request_status
from leavetrack.services.working_days_service import calculate_working_days
from leavetrack.utils.datetime_utils import now_utc
from leavetrack.utils.json_serializer import snapshot

logger = logging.getLogger(__name__)

AnyRequest = Union[LeaveRequest, WorkFromHomeRequest]

NO_LONGER_PENDING = "Request is no longer pending"


def _entity_type(kind: str) -> str:
    return ENTITY_LEAVE_REQUEST if kind == KIND_LEAVE else ENTITY_WFH_REQUEST


def _parent_column(kind: str):
    return Approval.leave_request_id if kind == KIND_LEAVE else Approval.wfh_request_id


def _approval_parent_kwargs(request: AnyRequest) -> dict:
    if request.kind == KIND_LEAVE:
        return {"leave_request_id": request.id}
    return {"wfh_request_id": request.id}


def generate_request_number(db: Session, kind: str, year: int) -> str:
    """Next human-readable number for the year, e.g. LR-2025-0007 or WFH-2025-0012."""
    model = model_for(kind)
    prefix = f"{LEAVE_REQUEST_PREFIX if kind == KIND_LEAVE else WFH_REQUEST_PREFIX}-{year}-"
    existing = db.query(model.request_number).filter(model.request_number.like(f"{prefix}%")).all()
    highest = 0
    for (number,) in existing:
        suffix = number[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{prefix}{highest + 1:04d}"


def get_request(db: Session, kind: str, request_id: int) -> AnyRequest:
    model = model_for(kind)
    request = db.query(model).filter(model.id == request_id).first()
    if request is None:
        label = "Leave request" if kind == KIND_LEAVE else "WFH request"
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")
    return request


def list_approvals(db: Session, kind: str, request_id: int) -> List[Approval]:
    """Full approval history of a request, including escalated and cancelled steps."""
    return (
        db.query(Approval)
        .filter(_parent_column(kind) == request_id)
        .order_by(Approval.level, Approval.id)
        .all()
    )


def get_approval_history(db: Session, actor: User, kind: str, request_id: int) -> List[Approval]:
    """
    Approval history visible to `actor`: the requester, anyone the chain was
    routed or escalated to, and HR/ADMIN. Everyone else gets 403.
    """
    request = get_request(db, kind, request_id)
    approvals = list_approvals(db, kind, request_id)
    if actor.role in (Role.HR.value, Role.ADMIN.value) or actor.id == request.user_id:
        return approvals
    involved = {a.approver_id for a in approvals} | {a.escalated_to_id for a in approvals}
    if actor.id not in involved:
        logger.warning("User %s denied approval history of %s request %s", actor.id, kind, request_id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to view this request")
    return approvals


def _pending_approvals(db: Session, kind: str, request_id: int) -> List[Approval]:
    return (
        db.query(Approval)
        .filter(_parent_column(kind) == request_id, Approval.status == ApprovalStatus.PENDING)
        .all()
    )


def _chain_approver_ids(db: Session, kind: str, request_id: int) -> List[int]:
    return [a.approver_id for a in list_approvals(db, kind, request_id) if a.approver_id is not None]


def _compare_and_set(db: Session, model, row_id: int, expected, values: dict) -> bool:
    """Conditional update: apply `values` only while the row still has status `expected`."""
    updated = (
        db.query(model)
        .filter(model.id == row_id, model.status == expected)
        .update(values, synchronize_session=False)
    )
    return updated == 1


def _lost_race(db: Session, row_id: int) -> HTTPException:
    db.rollback()
    logger.info("Conditional update lost on row %s; already decided elsewhere", row_id)
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=NO_LONGER_PENDING)


def _required_levels(request: AnyRequest) -> int:
    if request.kind == KIND_LEAVE and request.leave_type is not None:
        return max(1, request.leave_type.approval_levels or 1)
    return 1


def _balance_year(request: AnyRequest) -> int:
    return request.start_date.year


def _initial_approver(db: Session, requester: User) -> User:
    try:
        approver = resolve_approver(db, requester.id)
    except HierarchyCycleError as exc:
        logger.error("Cannot route request for user %s: %s", requester.id, exc)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Manager hierarchy contains a cycle; HR must correct the reporting lines",
        )
    if approver is None:
        raise ValidationFailed(
            [field_error("approverId", ErrorCode.NO_APPROVER_AVAILABLE, "No eligible approver could be found")]
        )
    return approver


def submit_leave_request(
    db: Session,
    requester: User,
    data: LeaveSubmitRequest,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
) -> LeaveRequest:
    """
    Validate and create a leave request with its level-1 approval, reserving
    the request's working days as pending on the balance.

    Raises:
        ValidationFailed: 400 with every validation error
        HTTPException: 409 on a manager hierarchy cycle
    """
    now = now or now_utc()
    errors = validate_leave_request(db, requester.id, data, today=today, now=now)
    if errors:
        raise ValidationFailed(errors)
    approver = _initial_approver(db, requester)

    selection = data.selection
    start_date, end_date = selection.bounds()
    total_days = calculate_working_days(db, selection)

    leave = LeaveRequest(
        request_number=generate_request_number(db, KIND_LEAVE, start_date.year),
        user_id=requester.id,
        leave_type_id=data.leave_type_id,
        start_date=start_date,
        end_date=end_date,
        selected_dates=selection.to_selected_dates(),
        total_days=total_days,
        reason=data.reason,
        status=RequestStatus.PENDING,
        created_at=now,
        updated_at=now,
    )
    if data.substitute_ids:
        leave.substitutes = db.query(User).filter(User.id.in_(set(data.substitute_ids))).all()
    db.add(leave)
    db.flush()

    db.add(Approval(leave_request_id=leave.id, level=1, approver_id=approver.id,
                    status=ApprovalStatus.PENDING, created_at=now))
    ledger.reserve_pending(db, requester.id, leave.leave_type_id, start_date.year, total_days)
    db.commit()
    db.refresh(leave)

    log_audit(
        db,
        actor_id=requester.id,
        action=ACTION_CREATE,
        entity_type=ENTITY_LEAVE_REQUEST,
        entity_id=leave.id,
        new_values=snapshot(leave, REQUEST_SNAPSHOT_FIELDS),
        meta={"request_number": leave.request_number, "approver_id": approver.id,
              "substitute_ids": sorted(data.substitute_ids)},
    )
    logger.info("Leave request %s submitted by user %s", leave.request_number, requester.id)
    return leave


def submit_wfh_request(
    db: Session,
    requester: User,
    data: WFHSubmitRequest,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
) -> WorkFromHomeRequest:
    """Validate and create a WFH request with its level-1 approval."""
    now = now or now_utc()
    errors = validate_wfh_request(db, requester.id, data, today=today, now=now)
    if errors:
        raise ValidationFailed(errors)
    approver = _initial_approver(db, requester)

    selection = data.selection
    start_date, end_date = selection.bounds()
    wfh = WorkFromHomeRequest(
        request_number=generate_request_number(db, KIND_WFH, start_date.year),
        user_id=requester.id,
        start_date=start_date,
        end_date=end_date,
        selected_dates=selection.to_selected_dates(),
        total_days=calculate_working_days(db, selection),
        location=data.location.strip(),
        reason=data.reason,
        status=RequestStatus.PENDING,
        created_at=now,
        updated_at=now,
    )
    db.add(wfh)
    db.flush()
    db.add(Approval(wfh_request_id=wfh.id, level=1, approver_id=approver.id,
                    status=ApprovalStatus.PENDING, created_at=now))
    db.commit()
    db.refresh(wfh)

    log_audit(
        db,
        actor_id=requester.id,
        action=ACTION_CREATE,
        entity_type=ENTITY_WFH_REQUEST,
        entity_id=wfh.id,
        new_values=snapshot(wfh, REQUEST_SNAPSHOT_FIELDS + ("location",)),
        meta={"request_number": wfh.request_number, "approver_id": approver.id},
    )
    logger.info("WFH request %s submitted by user %s", wfh.request_number, requester.id)
    return wfh


def validate_approval_permission(
    db: Session,
    approver_id: int,
    requester_id: int,
    request_id: int,
    kind: str = KIND_LEAVE,
) -> List[FieldError]:
    """
    Check an approver may act on a request.

    Returns:
        SELF_APPROVAL_NOT_ALLOWED when approver and requester are the same
        person, and NOT_IN_APPROVAL_CHAIN when there is no PENDING approval for
        (request, approver). Both are reported when both apply.
    """
    errors: List[FieldError] = []
    if approver_id == requester_id:
        errors.append(
            field_error("approverId", ErrorCode.SELF_APPROVAL_NOT_ALLOWED, "You cannot approve your own request")
        )
        logger.warning(
            "Self-approval attempt blocked: approver=%s request=%s (%s)", approver_id, request_id, kind
        )

    pending = (
        db.query(Approval.id)
        .filter(
            _parent_column(kind) == request_id,
            Approval.approver_id == approver_id,
            Approval.status == ApprovalStatus.PENDING,
        )
        .first()
    )
    if pending is None:
        errors.append(
            field_error("approverId", ErrorCode.NOT_IN_APPROVAL_CHAIN, "You are not authorized to approve this request")
        )
    return errors


def _authorize_decision(db: Session, actor: User, request: AnyRequest, action: str) -> Approval:
    kind = request.kind
    errors = validate_approval_permission(db, actor.id, request.user_id, request.id, kind)
    codes = {e.code for e in errors}
    if ErrorCode.SELF_APPROVAL_NOT_ALLOWED in codes:
        log_audit(
            db,
            actor_id=actor.id,
            action=ACTION_SELF_APPROVAL_ATTEMPT,
            entity_type=_entity_type(kind),
            entity_id=request.id,
            meta={"attempted_action": action, "request_number": request.request_number},
        )
        raise ValidationFailed(errors, status_code=status.HTTP_403_FORBIDDEN)
    if request.status != RequestStatus.PENDING:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=NO_LONGER_PENDING)
    if errors:
        raise ValidationFailed(errors, status_code=status.HTTP_403_FORBIDDEN)

    return (
        db.query(Approval)
        .filter(
            _parent_column(kind) == request.id,
            Approval.approver_id == actor.id,
            Approval.status == ApprovalStatus.PENDING,
        )
        .order_by(Approval.level.desc())
        .first()
    )


def _finalize_approval(db: Session, request: AnyRequest, now: datetime) -> None:
    """Move the request to APPROVED and commit its pending days as used (no db commit)."""
    new_status = next_request_status(request.status, WorkflowAction.APPROVE)
    model = type(request)
    if not _compare_and_set(db, model, request.id, RequestStatus.PENDING, {"status": new_status, "updated_at": now}):
        raise _lost_race(db, request.id)
    if request.kind == KIND_LEAVE:
        ledger.commit_pending(db, request.user_id, request.leave_type_id, _balance_year(request), request.total_days)


def approve_request(
    db: Session,
    actor: User,
    kind: str,
    request_id: int,
    comments: Optional[str] = None,
    now: Optional[datetime] = None,
) -> AnyRequest:
    """
    Record actor's approval. The request becomes APPROVED once it has as many
    APPROVED steps as its leave type requires; otherwise the next level is
    routed to the approver's superior.

    Raises:
        ValidationFailed: 403 on self-approval or when actor is not a pending approver
        HTTPException: 404 unknown request, 409 no longer pending
    """
    now = now or now_utc()
    request = get_request(db, kind, request_id)
    approval = _authorize_decision(db, actor, request, ACTION_APPROVE)
    before = snapshot(request, REQUEST_SNAPSHOT_FIELDS)

    new_status = next_approval_status(approval.status, WorkflowAction.APPROVE)
    if not _compare_and_set(db, Approval, approval.id, ApprovalStatus.PENDING,
                            {"status": new_status, "decided_at": now, "comments": comments}):
        raise _lost_race(db, approval.id)

    approved_steps = (
        db.query(Approval)
        .filter(_parent_column(kind) == request.id, Approval.status == ApprovalStatus.APPROVED)
        .count()
    )
    next_approver = None
    if approved_steps < _required_levels(request):
        try:
            next_approver = resolve_approver(
                db,
                request.user_id,
                start_from_id=actor.id,
                exclude_ids=_chain_approver_ids(db, kind, request.id),
            )
        except HierarchyCycleError as exc:
            db.rollback()
            logger.error("Cannot route next approval level for %s: %s", request.request_number, exc)
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Manager hierarchy contains a cycle; HR must correct the reporting lines",
            )
        if next_approver is None:
            logger.info(
                "No approver above level %s for %s; approving with %s of %s levels",
                approval.level, request.request_number, approved_steps, _required_levels(request),
            )

    if next_approver is not None:
        db.add(Approval(**_approval_parent_kwargs(request), level=approval.level + 1,
                        approver_id=next_approver.id, status=ApprovalStatus.PENDING, created_at=now))
    else:
        _finalize_approval(db, request, now)
    db.commit()
    db.refresh(request)

    log_audit(
        db,
        actor_id=actor.id,
        action=ACTION_APPROVE,
        entity_type=_entity_type(kind),
        entity_id=request.id,
        old_values=before,
        new_values=snapshot(request, REQUEST_SNAPSHOT_FIELDS),
        meta={"approval_id": approval.id, "level": approval.level, "comments": comments,
              "next_approver_id": next_approver.id if next_approver else None},
    )
    return request


def reject_request(
    db: Session,
    actor: User,
    kind: str,
    request_id: int,
    comments: Optional[str] = None,
    now: Optional[datetime] = None,
) -> AnyRequest:
    """Reject at the actor's level; the request is REJECTED and its pending days released."""
    now = now or now_utc()
    request = get_request(db, kind, request_id)
    approval = _authorize_decision(db, actor, request, ACTION_REJECT)
    before = snapshot(request, REQUEST_SNAPSHOT_FIELDS)

    new_status = next_approval_status(approval.status, WorkflowAction.REJECT)
    if not _compare_and_set(db, Approval, approval.id, ApprovalStatus.PENDING,
                            {"status": new_status, "decided_at": now, "comments": comments}):
        raise _lost_race(db, approval.id)

    request_status = next_request_status(request.status, WorkflowAction.REJECT)
    if not _compare_and_set(db, type(request), request.id, RequestStatus.PENDING,
                            {"status": request_status, "updated_at": now}):
        raise _lost_race(db, request.id)
    _cancel_open_approvals(db, kind, request.id, now, reason="Request rejected")
    if kind == KIND_LEAVE:
        ledger.release_pending(db, request.user_id, request.leave_type_id, _balance_year(request), request.total_days)
    db.commit()
    db.refresh(request)

    log_audit(
        db,
        actor_id=actor.id,
        action=ACTION_REJECT,
        entity_type=_entity_type(kind),
        entity_id=request.id,
        old_values=before,
        new_values=snapshot(request, REQUEST_SNAPSHOT_FIELDS),
        meta={"approval_id": approval.id, "level": approval.level, "comments": comments},
    )
    return request


def _cancel_open_approvals(db: Session, kind: str, request_id: int, now: datetime, reason: str) -> int:
    cancelled = 0
    for open_approval in _pending_approvals(db, kind, request_id):
        new_status = next_approval_status(open_approval.status, WorkflowAction.CANCEL)
        if _compare_and_set(db, Approval, open_approval.id, ApprovalStatus.PENDING,
                            {"status": new_status, "decided_at": now, "comments": reason}):
            cancelled += 1
    return cancelled


def cancel_request(
    db: Session,
    actor: User,
    kind: str,
    request_id: int,
    reason: Optional[str] = None,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
) -> AnyRequest:
    """
    Requester self-cancel. PENDING requests release their pending days;
    APPROVED requests may be cancelled only before they start and give back
    their used days.

    Raises:
        HTTPException: 403 not the owner, 400 approved and already started,
            409 already rejected or cancelled
    """
    today = today or date.today()
    now = now or now_utc()
    request = get_request(db, kind, request_id)
    if request.user_id != actor.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only cancel your own requests")

    current = RequestStatus(request.status)
    new_status = next_request_status(current, WorkflowAction.CANCEL)
    if current == RequestStatus.APPROVED and request.start_date <= today:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot cancel an approved request that has already started",
        )

    before = snapshot(request, REQUEST_SNAPSHOT_FIELDS)
    if not _compare_and_set(db, type(request), request.id, current, {"status": new_status, "updated_at": now}):
        raise _lost_race(db, request.id)
    _cancel_open_approvals(db, kind, request.id, now, reason="Request cancelled by requester")
    if kind == KIND_LEAVE:
        year = _balance_year(request)
        if current == RequestStatus.PENDING:
            ledger.release_pending(db, request.user_id, request.leave_type_id, year, request.total_days)
        else:
            ledger.release_used(db, request.user_id, request.leave_type_id, year, request.total_days)
    db.commit()
    db.refresh(request)

    log_audit(
        db,
        actor_id=actor.id,
        action=ACTION_CANCEL,
        entity_type=_entity_type(kind),
        entity_id=request.id,
        old_values=before,
        new_values=snapshot(request, REQUEST_SNAPSHOT_FIELDS),
        meta={"reason": reason or "Cancelled by requester", "previous_status": current},
    )
    return request


def _auto_approve(db: Session, approval: Approval, request: AnyRequest, now: datetime) -> bool:
    if not _compare_and_set(db, Approval, approval.id, ApprovalStatus.PENDING, {
        "status": next_approval_status(approval.status, WorkflowAction.APPROVE),
        "decided_at": now,
        "comments": "Auto-approved after maximum escalations",
    }):
        db.rollback()
        return False
    try:
        _finalize_approval(db, request, now)
    except HTTPException:
        return False
    db.commit()
    log_audit(
        db,
        actor_id=None,
        action=ACTION_AUTO_APPROVE,
        entity_type=_entity_type(request.kind),
        entity_id=request.id,
        meta={"approval_id": approval.id, "level": approval.level},
    )
    return True


def escalate_approval(db: Session, approval: Approval, now: datetime) -> Tuple[str, Optional[Approval]]:
    """
    Escalate one stale PENDING approval.

    Returns:
        ("escalated", new approval), ("auto_approved", None) or ("skipped", None)

    Raises:
        HierarchyCycleError: if the approver's manager chain loops
    """
    request = approval.request
    if request is None or request.status != RequestStatus.PENDING:
        return "skipped", None

    kind = request.kind
    target = None
    if approval.level < settings.MAX_ESCALATION_LEVELS:
        target = resolve_approver(
            db,
            request.user_id,
            start_from_id=approval.approver_id,
            exclude_ids=_chain_approver_ids(db, kind, request.id),
        )

    if target is None:
        if settings.AUTO_APPROVE_AFTER_MAX_ESCALATIONS:
            return ("auto_approved", None) if _auto_approve(db, approval, request, now) else ("skipped", None)
        logger.warning(
            "Approval %s for %s is stale at level %s with no escalation target",
            approval.id, request.request_number, approval.level,
        )
        return "skipped", None

    before = snapshot(approval, APPROVAL_SNAPSHOT_FIELDS)
    reason = f"No action within {settings.ESCALATION_THRESHOLD_DAYS} days"
    if not _compare_and_set(db, Approval, approval.id, ApprovalStatus.PENDING, {
        "status": next_approval_status(approval.status, WorkflowAction.ESCALATE),
        "escalated_at": now,
        "escalated_to_id": target.id,
        "escalation_reason": reason,
    }):
        db.rollback()
        return "skipped", None

    escalated = Approval(**_approval_parent_kwargs(request), level=approval.level + 1,
                         approver_id=target.id, status=ApprovalStatus.PENDING, created_at=now)
    db.add(escalated)
    db.commit()
    db.refresh(approval)
    db.refresh(escalated)

    log_audit(
        db,
        actor_id=None,
        action=ACTION_ESCALATE,
        entity_type=ENTITY_APPROVAL,
        entity_id=approval.id,
        old_values=before,
        new_values=snapshot(approval, APPROVAL_SNAPSHOT_FIELDS),
        meta={"request_number": request.request_number, "new_approval_id": escalated.id,
              "escalated_to_id": target.id, "reason": reason},
    )
    logger.info(
        "Escalated approval %s of %s from user %s to user %s (level %s)",
        approval.id, request.request_number, approval.approver_id, target.id, escalated.level,
    )
    return "escalated", escalated


def escalate_stale_approvals(db: Session, now: Optional[datetime] = None) -> Tuple[int, int, List[str]]:
    """
    Escalate PENDING approvals older than ESCALATION_THRESHOLD_DAYS.

    Each approval is handled on its own; a failure is recorded and the sweep
    moves on.

    Returns:
        (escalated count, auto-approved count, error messages)
    """
    if not settings.ESCALATION_ENABLED:
        logger.info("Escalation is disabled")
        return 0, 0, []

    now = now or now_utc()
    threshold = now - timedelta(days=settings.ESCALATION_THRESHOLD_DAYS)
    stale = (
        db.query(Approval)
        .filter(
            Approval.status == ApprovalStatus.PENDING,
            Approval.escalated_to_id.is_(None),
            Approval.created_at <= threshold,
        )
        .order_by(Approval.created_at, Approval.id)
        .all()
    )

    escalated = 0
    auto_approved = 0
    errors: List[str] = []
    for approval in stale:
        try:
            outcome, _ = escalate_approval(db, approval, now)
        except Exception as exc:
            db.rollback()
            logger.exception("Escalation of approval %s failed", approval.id)
            errors.append(f"escalation: approval {approval.id}: {exc}")
            continue
        if outcome == "escalated":
            escalated += 1
        elif outcome == "auto_approved":
            auto_approved += 1
    return escalated, auto_approved, errors
