"""
Reconciliation trigger.

Normally run by a scheduler; HR can run it on demand. Partial failures are
reported in the body, the call itself still returns 200.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from leavetrack.core.deps import get_db, require_roles
from leavetrack.models.user import Role, User
from leavetrack.schemas.reconciliation import ReconciliationReport
from leavetrack.services.reconciliation_service import run_reconciliation

router = APIRouter()


@router.post("", response_model=ReconciliationReport)
async def reconcile(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(Role.HR)),
):
    return run_reconciliation(db, actor_id=current_user.id)
