"""
Balance administration (HR/ADMIN): opening balances and year-end close
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from leavetrack.core.deps import get_db, require_roles
from leavetrack.models.user import Role, User
from leavetrack.schemas.balance import (
    InitializeBalancesRequest,
    InitializeBalancesResult,
    YearEndRequest,
    YearEndResult,
)
from leavetrack.services.leave_balance_service import initialize_balances, process_year_end

router = APIRouter()


@router.post("/initialize", response_model=InitializeBalancesResult)
async def initialize(
    request_data: InitializeBalancesRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(Role.HR)),
):
    """
    Create missing balance rows for a new hire (pro-rated from join date) or,
    without user_id, for every active user.
    """
    return initialize_balances(db, request_data.year, user_id=request_data.user_id, actor_id=current_user.id)


@router.post("/year-end", response_model=YearEndResult)
async def year_end(
    request_data: YearEndRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(Role.HR)),
):
    """
    Close a year: unused days (capped at MAX_CARRY_FORWARD_DAYS unless
    overridden) are carried into the next year's balances.
    """
    return process_year_end(
        db,
        request_data.year,
        actor_id=current_user.id,
        max_carry_forward=request_data.max_carry_forward,
    )
