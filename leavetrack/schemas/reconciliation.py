"""
Reconciliation report schema
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class ReconciliationReport(BaseModel):
    """Counts of repaired/deleted rows per category plus partial-failure messages"""
    escalated_approvals: int = 0
    auto_approved_requests: int = 0
    purged_cancelled_requests: int = 0
    deleted_orphan_approvals: int = 0
    deleted_orphan_documents: int = 0
    deleted_orphan_signatures: int = 0
    deleted_notifications: int = 0
    deleted_expired_tokens: int = 0
    deleted_audit_logs: int = 0
    corrected_balances: int = 0
    repaired_approvers: int = 0
    cancelled_unroutable_approvals: int = 0
    archived_requests: int = 0
    auto_cancelled_wfh: int = 0
    errors: List[str] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
