"""
Database models
"""
from leavetrack.models.user import User, Role
from leavetrack.models.leave import (
    LeaveType,
    LeaveRequest,
    LeaveBalance,
    RequestStatus,
    ACTIVE_REQUEST_STATUSES,
    leave_request_substitutes,
)
from leavetrack.models.wfh import WorkFromHomeRequest
from leavetrack.models.approval import Approval, ApprovalStatus
from leavetrack.models.holiday import Holiday
from leavetrack.models.audit_log import AuditLog
from leavetrack.models.document import GeneratedDocument, DocumentSignature
from leavetrack.models.notification import Notification
from leavetrack.models.token import PasswordResetToken

__all__ = [
    "User",
    "Role",
    "LeaveType",
    "LeaveRequest",
    "LeaveBalance",
    "RequestStatus",
    "ACTIVE_REQUEST_STATUSES",
    "leave_request_substitutes",
    "WorkFromHomeRequest",
    "Approval",
    "ApprovalStatus",
    "Holiday",
    "AuditLog",
    "GeneratedDocument",
    "DocumentSignature",
    "Notification",
    "PasswordResetToken",
]
