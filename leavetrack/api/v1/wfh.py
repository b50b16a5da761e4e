"""
WFH (Work From Home) API endpoints
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
    RejectActionRequest,
)
from leavetrack.schemas.validation import ValidationResult
from leavetrack.schemas.wfh import WFHOut, WFHSubmitRequest
from leavetrack.services.approval_service import (
    approve_request,
    cancel_request,
    get_approval_history,
    reject_request,
    submit_wfh_request,
)
from leavetrack.services.overlap_service import KIND_WFH
from leavetrack.services.wfh_validation_service import validate_wfh_request

router = APIRouter()


@router.post(
    "",
    response_model=WFHOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("submission"))],
)
async def submit_wfh(
    wfh_data: WFHSubmitRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Apply for WFH (any authenticated user); requests must start next week or later"""
    return submit_wfh_request(db, current_user, wfh_data)


@router.post("/validate", response_model=ValidationResult)
async def validate_wfh(
    wfh_data: WFHSubmitRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    errors = validate_wfh_request(db, current_user.id, wfh_data)
    return ValidationResult(valid=not errors, errors=errors)


@router.post("/{wfh_id}/approve", response_model=WFHOut, dependencies=[Depends(rate_limit("approval"))])
async def approve_wfh(
    wfh_id: int,
    action_data: Optional[ApprovalActionRequest] = Body(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Approve WFH request (pending approver only)"""
    comments = action_data.comments if action_data else None
    return approve_request(db, current_user, KIND_WFH, wfh_id, comments=comments)


@router.post("/{wfh_id}/reject", response_model=WFHOut, dependencies=[Depends(rate_limit("approval"))])
async def reject_wfh(
    wfh_id: int,
    action_data: Optional[RejectActionRequest] = Body(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Reject WFH request (pending approver only)"""
    comments = action_data.comments if action_data else None
    return reject_request(db, current_user, KIND_WFH, wfh_id, comments=comments)


@router.post("/{wfh_id}/cancel", response_model=WFHOut, dependencies=[Depends(rate_limit("approval"))])
async def cancel_wfh(
    wfh_id: int,
    action_data: Optional[CancelActionRequest] = Body(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    reason = action_data.reason if action_data else None
    return cancel_request(db, current_user, KIND_WFH, wfh_id, reason=reason)


@router.get("/{wfh_id}/approvals", response_model=ApprovalHistoryResponse)
async def wfh_approval_history(
    wfh_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    approvals = get_approval_history(db, current_user, KIND_WFH, wfh_id)
    return ApprovalHistoryResponse(request_id=wfh_id, items=[ApprovalOut.model_validate(a) for a in approvals])
