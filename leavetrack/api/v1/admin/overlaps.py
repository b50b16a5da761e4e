"""
Overlap audit (HR/ADMIN): active requests of the same user that share a day
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from leavetrack.core.deps import get_db, require_roles
from leavetrack.models.user import Role, User
from leavetrack.schemas.overlap import OverlapOut, OverlapReport
from leavetrack.services.overlap_service import find_existing_overlaps

router = APIRouter()


@router.get("", response_model=OverlapReport)
async def check_overlaps(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(Role.HR)),
):
    """Leave-leave, WFH-WFH and leave-WFH overlaps among PENDING and APPROVED requests"""
    items = [OverlapOut.from_overlap(o) for o in find_existing_overlaps(db)]
    return OverlapReport(total=len(items), items=items)
