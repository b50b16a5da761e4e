"""
Holiday schemas
"""
from datetime import date
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class HolidayCreate(BaseModel):
    date: date
    name: str = Field(..., min_length=1, max_length=255)
    is_blocked: bool = True
    is_active: bool = True


class HolidayUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    is_blocked: Optional[bool] = None
    is_active: Optional[bool] = None


class HolidayOut(BaseModel):
    id: int
    date: date
    name: str
    is_blocked: bool
    is_active: bool

    model_config = ConfigDict(from_attributes=True)
