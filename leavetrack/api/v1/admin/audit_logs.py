"""
Audit log browsing (HR/ADMIN)
"""
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from leavetrack.core.deps import get_db, require_roles
from leavetrack.models.user import Role, User
from leavetrack.schemas.audit import AuditLogListResponse, AuditLogOut
from leavetrack.services.audit_service import list_audit_logs

router = APIRouter()


@router.get("", response_model=AuditLogListResponse)
async def get_audit_logs(
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[int] = Query(None),
    actor_id: Optional[int] = Query(None),
    action: Optional[str] = Query(None),
    since: Optional[datetime] = Query(None, description="Only entries at or after this time"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(Role.HR)),
):
    """Newest first"""
    items, total = list_audit_logs(
        db,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor_id,
        action=action,
        since=since,
        skip=skip,
        limit=limit,
    )
    return AuditLogListResponse(items=[AuditLogOut.model_validate(i) for i in items], total=total)
