"""
Leave endpoints
"""
from typing import Optional
from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.orm import Session
from leavetrack.core.deps import get_db, get_current_user, rate_limit
from leavetrack.models.user import User
from leavetrack.schemas.leave import (
    ApprovalActionRequest,
    ApprovalHistoryResponse,
    ApprovalOut,
    CancelActionRequest,
    LeaveOut,
    LeaveSubmitRequest,
    RejectActionRequest,
)
from leavetrack.schemas.validation import LeaveValidationResult, WorkingDaysBreakdown
from leavetrack.services.approval_service import (
    approve_request,
    cancel_request,
    get_approval_history,
    reject_request,
    submit_leave_request,
)
from leavetrack.services.overlap_service import KIND_LEAVE
from leavetrack.services.validation_service import validate_leave_request
from leavetrack.services.working_days_service import get_working_days_breakdown

router = APIRouter()


@router.post(
    "",
    response_model=LeaveOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("submission"))],
)
async def submit_leave(
    leave_data: LeaveSubmitRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Submit a leave request for the current user.

    The request is validated in full (dates, holidays, overlaps, substitutes,
    balance); any failure returns 400 with every error found.
    """
    leave = submit_leave_request(db, current_user, leave_data)
    return LeaveOut.from_request(leave)


@router.post("/validate", response_model=LeaveValidationResult)
async def validate_leave(
    leave_data: LeaveSubmitRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Dry-run validation; nothing is stored."""
    errors = validate_leave_request(db, current_user.id, leave_data)
    breakdown = get_working_days_breakdown(db, leave_data.selection)
    return LeaveValidationResult(
        valid=not errors,
        errors=errors,
        breakdown=WorkingDaysBreakdown.model_validate(breakdown),
    )


@router.post(
    "/{leave_request_id}/approve",
    response_model=LeaveOut,
    dependencies=[Depends(rate_limit("approval"))],
)
async def approve_leave(
    leave_request_id: int,
    action_data: Optional[ApprovalActionRequest] = Body(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Approve at the current user's level of the chain"""
    comments = action_data.comments if action_data else None
    leave = approve_request(db, current_user, KIND_LEAVE, leave_request_id, comments=comments)
    return LeaveOut.from_request(leave)


@router.post(
    "/{leave_request_id}/reject",
    response_model=LeaveOut,
    dependencies=[Depends(rate_limit("approval"))],
)
async def reject_leave(
    leave_request_id: int,
    action_data: Optional[RejectActionRequest] = Body(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Reject a leave request"""
    comments = action_data.comments if action_data else None
    leave = reject_request(db, current_user, KIND_LEAVE, leave_request_id, comments=comments)
    return LeaveOut.from_request(leave)


@router.post(
    "/{leave_request_id}/cancel",
    response_model=LeaveOut,
    dependencies=[Depends(rate_limit("approval"))],
)
async def cancel_leave(
    leave_request_id: int,
    action_data: Optional[CancelActionRequest] = Body(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Cancel one of the current user's own requests"""
    reason = action_data.reason if action_data else None
    leave = cancel_request(db, current_user, KIND_LEAVE, leave_request_id, reason=reason)
    return LeaveOut.from_request(leave)


@router.get("/{leave_request_id}/approvals", response_model=ApprovalHistoryResponse)
async def leave_approval_history(
    leave_request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Every step of the approval chain, escalated and cancelled steps included"""
    approvals = get_approval_history(db, current_user, KIND_LEAVE, leave_request_id)
    return ApprovalHistoryResponse(
        request_id=leave_request_id,
        items=[ApprovalOut.model_validate(a) for a in approvals],
    )
