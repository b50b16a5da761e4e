"""
Validation error schemas shared by leave and WFH validators
"""
import enum
from datetime import date
from typing import List, Optional
from pydantic import BaseModel, Field


class ErrorCode(str, enum.Enum):
    PAST_DATE = "PAST_DATE"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    EXCEEDS_MAX_DAYS = "EXCEEDS_MAX_DAYS"
    INSUFFICIENT_NOTICE = "INSUFFICIENT_NOTICE"
    CURRENT_WEEK_NOT_ALLOWED = "CURRENT_WEEK_NOT_ALLOWED"
    OVERLAPPING_REQUESTS = "OVERLAPPING_REQUESTS"
    LEAVE_CONFLICT = "LEAVE_CONFLICT"
    BLOCKED_DATES = "BLOCKED_DATES"
    BALANCE_NOT_FOUND = "BALANCE_NOT_FOUND"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    NEGATIVE_BALANCE_NOT_ALLOWED = "NEGATIVE_BALANCE_NOT_ALLOWED"
    SELF_SUBSTITUTION = "SELF_SUBSTITUTION"
    SUBSTITUTE_UNAVAILABLE = "SUBSTITUTE_UNAVAILABLE"
    SUBSTITUTE_INACTIVE = "SUBSTITUTE_INACTIVE"
    CIRCULAR_SUBSTITUTION = "CIRCULAR_SUBSTITUTION"
    DUPLICATE_SUBSTITUTES = "DUPLICATE_SUBSTITUTES"
    SELF_APPROVAL_NOT_ALLOWED = "SELF_APPROVAL_NOT_ALLOWED"
    NOT_IN_APPROVAL_CHAIN = "NOT_IN_APPROVAL_CHAIN"
    DUPLICATE_REQUEST = "DUPLICATE_REQUEST"
    LOCATION_REQUIRED = "LOCATION_REQUIRED"
    LOCATION_TOO_SHORT = "LOCATION_TOO_SHORT"
    LOCATION_TOO_LONG = "LOCATION_TOO_LONG"
    INVALID_LEAVE_TYPE = "INVALID_LEAVE_TYPE"
    NO_APPROVER_AVAILABLE = "NO_APPROVER_AVAILABLE"


class FieldError(BaseModel):
    """A single user-correctable validation failure"""
    field: str = Field(..., description="Request field the error refers to")
    message: str = Field(..., description="Human-readable message; callers may localise it")
    code: ErrorCode = Field(..., description="Stable machine-checkable identifier")


def field_error(field: str, code: ErrorCode, message: str) -> FieldError:
    return FieldError(field=field, message=message, code=code)


def error_codes(errors: List[FieldError]) -> List[str]:
    """Codes in the order they were raised (handy for callers and tests)."""
    return [e.code.value for e in errors]


class ValidationResult(BaseModel):
    """Response of the dry-run validate endpoints"""
    valid: bool
    errors: List[FieldError] = Field(default_factory=list)


class HolidayHit(BaseModel):
    date: date
    name: str


class WorkingDaysBreakdown(BaseModel):
    """Calendar/weekend/holiday split of a selection"""
    calendar_days: int
    working_days: int
    weekend_days: int
    holidays: List[HolidayHit] = Field(default_factory=list, description="Blocked holidays on weekdays")


class LeaveValidationResult(ValidationResult):
    """Dry-run result for leave, with the working-day breakdown the balance will be charged"""
    breakdown: Optional[WorkingDaysBreakdown] = None
