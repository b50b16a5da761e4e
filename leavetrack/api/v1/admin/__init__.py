"""Admin API (HR/ADMIN only)."""
from fastapi import APIRouter
from leavetrack.api.v1.admin import audit_logs as admin_audit_logs
from leavetrack.api.v1.admin import balances as admin_balances
from leavetrack.api.v1.admin import holidays as admin_holidays
from leavetrack.api.v1.admin import overlaps as admin_overlaps
from leavetrack.api.v1.admin import reconcile as admin_reconcile

admin_router = APIRouter(prefix="/admin", tags=["admin"])
admin_router.include_router(admin_reconcile.router, prefix="/reconcile", tags=["admin-reconcile"])
admin_router.include_router(admin_audit_logs.router, prefix="/audit-logs", tags=["admin-audit"])
admin_router.include_router(admin_holidays.router, prefix="/holidays", tags=["admin-holidays"])
admin_router.include_router(admin_balances.router, prefix="/balances", tags=["admin-balances"])
admin_router.include_router(admin_overlaps.router, prefix="/check-overlaps", tags=["admin-overlaps"])
