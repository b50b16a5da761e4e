"""
Holiday calendar management (HR/ADMIN)
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from leavetrack.core.deps import get_db, require_roles
from leavetrack.models.user import Role, User
from leavetrack.schemas.holiday import HolidayCreate, HolidayOut, HolidayUpdate
from leavetrack.services.holiday_service import create_holiday, list_holidays, update_holiday

router = APIRouter()


@router.post("", response_model=HolidayOut, status_code=status.HTTP_201_CREATED)
async def add_holiday(
    holiday_data: HolidayCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(Role.HR)),
):
    """Create a holiday; blocked holidays reject leave and WFH on that date"""
    return create_holiday(db, holiday_data, actor_id=current_user.id)


@router.get("", response_model=List[HolidayOut])
async def get_holidays(
    year: Optional[int] = Query(None, description="Filter by calendar year"),
    active_only: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(Role.HR)),
):
    return list_holidays(db, year=year, active_only=active_only)


@router.patch("/{holiday_id}", response_model=HolidayOut)
async def patch_holiday(
    holiday_id: int,
    holiday_data: HolidayUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(Role.HR)),
):
    return update_holiday(db, holiday_id, holiday_data, actor_id=current_user.id)
