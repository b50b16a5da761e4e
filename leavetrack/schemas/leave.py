"""
Leave request schemas
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from leavetrack.models.leave import RequestStatus
from leavetrack.models.approval import ApprovalStatus
from leavetrack.utils.date_selection import DateSelection, from_parts
from leavetrack.utils.datetime_utils import iso_8601_utc


class LeaveSubmitRequest(BaseModel):
    """Schema for submitting (or dry-run validating) a leave request"""
    leave_type_id: int = Field(..., description="Leave type id")
    start_date: date = Field(..., description="First day of leave")
    end_date: date = Field(..., description="Last day of leave")
    selected_dates: Optional[List[date]] = Field(
        None, description="Explicit non-consecutive days; overrides the range when present"
    )
    total_days: Optional[Decimal] = Field(
        None, description="Client-side day count; informational, the server recomputes working days"
    )
    reason: Optional[str] = Field(None, description="Reason for leave")
    substitute_ids: List[int] = Field(default_factory=list, description="Users covering during the absence")

    @property
    def selection(self) -> DateSelection:
        return from_parts(self.start_date, self.end_date, self.selected_dates)


class ApprovalActionRequest(BaseModel):
    """Body for approve actions"""
    comments: Optional[str] = Field(None, description="Optional comments for approval")


class RejectActionRequest(BaseModel):
    """Body for reject actions"""
    comments: Optional[str] = Field(None, description="Reason for rejection")


class CancelActionRequest(BaseModel):
    """Body for self-cancel actions"""
    reason: Optional[str] = Field(None, description="Reason for cancellation")


class ApprovalOut(BaseModel):
    """One step of an approval chain"""
    id: int
    leave_request_id: Optional[int] = None
    wfh_request_id: Optional[int] = None
    level: int
    approver_id: Optional[int] = None
    status: ApprovalStatus
    escalated_to_id: Optional[int] = None
    escalated_at: Optional[datetime] = None
    escalation_reason: Optional[str] = None
    comments: Optional[str] = None
    decided_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("escalated_at", "decided_at", "created_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_8601_utc(dt)


class LeaveOut(BaseModel):
    """Schema for leave output"""
    id: int
    request_number: str
    user_id: int
    leave_type_id: int
    start_date: date
    end_date: date
    selected_dates: Optional[List[date]] = None
    total_days: Decimal
    reason: Optional[str] = None
    status: RequestStatus
    is_archived: bool = False
    substitute_ids: List[int] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", "updated_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_8601_utc(dt)

    @classmethod
    def from_request(cls, leave) -> "LeaveOut":
        out = cls.model_validate(leave)
        out.substitute_ids = sorted(s.id for s in leave.substitutes)
        return out


class ApprovalHistoryResponse(BaseModel):
    """GET /leaves/{id}/approvals response"""
    request_id: int
    items: List[ApprovalOut]
