"""
Request and approval state machines.

All status changes go through next_request_status / next_approval_status so
an illegal move (approving a CANCELLED request, deciding an ESCALATED step)
fails in one place.
"""
import enum
from typing import Dict, Tuple
from leavetrack.models.approval import ApprovalStatus
from leavetrack.models.leave import RequestStatus


class WorkflowAction(str, enum.Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"
    ESCALATE = "ESCALATE"


class IllegalTransitionError(Exception):
    """Raised when an action is not allowed from the current state."""

    def __init__(self, entity: str, current: str, action: str):
        self.entity = entity
        self.current = current
        self.action = action
        super().__init__(f"Cannot {action.lower()} {entity} in status {current}")


REQUEST_TRANSITIONS: Dict[Tuple[RequestStatus, WorkflowAction], RequestStatus] = {
    (RequestStatus.PENDING, WorkflowAction.APPROVE): RequestStatus.APPROVED,
    (RequestStatus.PENDING, WorkflowAction.REJECT): RequestStatus.REJECTED,
    (RequestStatus.PENDING, WorkflowAction.CANCEL): RequestStatus.CANCELLED,
    (RequestStatus.APPROVED, WorkflowAction.CANCEL): RequestStatus.CANCELLED,
}

APPROVAL_TRANSITIONS: Dict[Tuple[ApprovalStatus, WorkflowAction], ApprovalStatus] = {
    (ApprovalStatus.PENDING, WorkflowAction.APPROVE): ApprovalStatus.APPROVED,
    (ApprovalStatus.PENDING, WorkflowAction.REJECT): ApprovalStatus.REJECTED,
    (ApprovalStatus.PENDING, WorkflowAction.CANCEL): ApprovalStatus.CANCELLED,
    (ApprovalStatus.PENDING, WorkflowAction.ESCALATE): ApprovalStatus.ESCALATED,
}


def next_request_status(current: RequestStatus, action: WorkflowAction) -> RequestStatus:
    try:
        return REQUEST_TRANSITIONS[(RequestStatus(current), action)]
    except KeyError:
        raise IllegalTransitionError("request", RequestStatus(current).value, action.value)


def next_approval_status(current: ApprovalStatus, action: WorkflowAction) -> ApprovalStatus:
    try:
        return APPROVAL_TRANSITIONS[(ApprovalStatus(current), action)]
    except KeyError:
        raise IllegalTransitionError("approval", ApprovalStatus(current).value, action.value)


def can_transition_request(current: RequestStatus, action: WorkflowAction) -> bool:
    return (RequestStatus(current), action) in REQUEST_TRANSITIONS
