"""
Leave balance endpoints
"""
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from leavetrack.core.deps import get_db, get_current_user
from leavetrack.models.user import User
from leavetrack.schemas.balance import BalanceListResponse, BalanceOut
from leavetrack.services.leave_balance_service import get_balances

router = APIRouter()


@router.get("/me", response_model=BalanceListResponse)
async def balance_me(
    year: Optional[int] = Query(None, description="Calendar year (defaults to the current year)"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Current user's balances per leave type for the year"""
    year = year or date.today().year
    balances = get_balances(db, current_user.id, year)
    return BalanceListResponse(
        year=year,
        user_id=current_user.id,
        items=[BalanceOut.model_validate(b) for b in balances],
    )
