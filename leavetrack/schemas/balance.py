"""
Leave balance schemas
"""
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class BalanceOut(BaseModel):
    """One (leave type, year) balance row"""
    id: int
    user_id: int
    leave_type_id: int
    year: int
    entitled: Decimal
    carried_forward: Decimal
    used: Decimal
    pending: Decimal
    available: Decimal

    model_config = ConfigDict(from_attributes=True)


class BalanceListResponse(BaseModel):
    """GET /balances/me response"""
    year: int
    user_id: int
    items: List[BalanceOut]


class YearEndRequest(BaseModel):
    """Close a year and open the next one with carried-forward days"""
    year: int = Field(..., ge=2000, le=2100, description="Year being closed")
    max_carry_forward: Optional[Decimal] = Field(None, ge=0, description="Override the configured cap")


class YearEndResult(BaseModel):
    year: int
    next_year: int
    balances_created: int
    balances_updated: int
    total_carried_forward: Decimal


class InitializeBalancesRequest(BaseModel):
    """Open the balance rows of one user, or of every active user, for a year"""
    year: int = Field(..., ge=2000, le=2100)
    user_id: Optional[int] = Field(None, description="Only this user; every active user when omitted")


class InitializeBalancesResult(BaseModel):
    year: int
    users_processed: int
    balances_created: int
