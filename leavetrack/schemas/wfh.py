"""
WFH request schemas
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from leavetrack.models.leave import RequestStatus
from leavetrack.utils.date_selection import DateSelection, from_parts
from leavetrack.utils.datetime_utils import iso_8601_utc


class WFHSubmitRequest(BaseModel):
    """Schema for submitting (or dry-run validating) a WFH request"""
    start_date: date = Field(..., description="First WFH day")
    end_date: date = Field(..., description="Last WFH day")
    selected_dates: Optional[List[date]] = Field(None, description="Explicit WFH days; overrides the range")
    location: Optional[str] = Field(None, description="Where the employee will work from")
    reason: Optional[str] = Field(None, description="Reason for WFH")

    @property
    def selection(self) -> DateSelection:
        return from_parts(self.start_date, self.end_date, self.selected_dates)


class WFHOut(BaseModel):
    """Schema for WFH output"""
    id: int
    request_number: str
    user_id: int
    start_date: date
    end_date: date
    selected_dates: Optional[List[date]] = None
    total_days: Decimal
    location: str
    reason: Optional[str] = None
    status: RequestStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", "updated_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_8601_utc(dt)
