"""
Reconciliation sweep - periodic self-healing of the leave data.

Every category runs in its own unit of work. A failing category is rolled
back, logged and reported in `errors`; the remaining categories still run.
Re-running the sweep is safe: a second pass over unchanged data changes
nothing.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple
from sqlalchemy.orm import Session
from leavetrack.constants import (
    ACTION_APPROVER_REPAIR,
    ACTION_ARCHIVE,
    ACTION_AUTO_CANCEL,
    ACTION_BALANCE_RECOMPUTE,
    ACTION_RECONCILE,
    APPROVAL_SNAPSHOT_FIELDS,
    BALANCE_SNAPSHOT_FIELDS,
    ENTITY_APPROVAL,
    ENTITY_LEAVE_BALANCE,
    ENTITY_LEAVE_REQUEST,
    ENTITY_RECONCILIATION,
    ENTITY_WFH_REQUEST,
)
from leavetrack.core.config import settings
from leavetrack.models.approval import Approval, ApprovalStatus
from leavetrack.models.audit_log import AuditLog
from leavetrack.models.document import DocumentSignature, GeneratedDocument
from leavetrack.models.leave import LeaveBalance, LeaveRequest, RequestStatus
from leavetrack.models.notification import Notification
from leavetrack.models.token import PasswordResetToken
from leavetrack.models.user import User
from leavetrack.models.wfh import WorkFromHomeRequest
from leavetrack.schemas.reconciliation import ReconciliationReport
from leavetrack.services.approval_service import escalate_stale_approvals
from leavetrack.services.audit_service import log_audit
from leavetrack.services.hierarchy_service import resolve_approver
from leavetrack.services.leave_balance_service import recompute_balance
from leavetrack.services.workflow import WorkflowAction, next_approval_status, next_request_status
from leavetrack.utils.date_selection import DateRange, overlaps
from leavetrack.utils.datetime_utils import now_utc, subtract_months, week_start
from leavetrack.utils.json_serializer import snapshot

logger = logging.getLogger(__name__)


def escalate(db: Session, report: ReconciliationReport, now: datetime) -> None:
    escalated, auto_approved, errors = escalate_stale_approvals(db, now)
    report.escalated_approvals += escalated
    report.auto_approved_requests += auto_approved
    report.errors.extend(errors)


def auto_cancel_current_week_wfh(db: Session, report: ReconciliationReport, now: datetime) -> None:
    """PENDING WFH that reaches into the current week can no longer be approved in time."""
    monday = week_start(now.date())
    week = DateRange(monday, monday + timedelta(days=6))
    candidates = (
        db.query(WorkFromHomeRequest)
        .filter(
            WorkFromHomeRequest.status == RequestStatus.PENDING,
            WorkFromHomeRequest.start_date <= week.end,
            WorkFromHomeRequest.end_date >= week.start,
        )
        .all()
    )
    cancelled: List[Tuple[int, str]] = []
    for wfh in candidates:
        if not overlaps(wfh.selection, week):
            continue
        wfh.status = next_request_status(wfh.status, WorkflowAction.CANCEL)
        wfh.updated_at = now
        for approval in wfh.approvals:
            if approval.status == ApprovalStatus.PENDING:
                approval.status = next_approval_status(approval.status, WorkflowAction.CANCEL)
                approval.decided_at = now
                approval.comments = "Not approved before the start of the week"
        cancelled.append((wfh.id, wfh.request_number))
    db.commit()

    for wfh_id, number in cancelled:
        log_audit(db, actor_id=None, action=ACTION_AUTO_CANCEL, entity_type=ENTITY_WFH_REQUEST,
                  entity_id=wfh_id, new_values={"status": RequestStatus.CANCELLED},
                  meta={"request_number": number, "week_start": monday})
    report.auto_cancelled_wfh += len(cancelled)


def purge_cancelled_requests(db: Session, report: ReconciliationReport, now: datetime) -> None:
    """Hard-delete CANCELLED leave/WFH requests untouched for the retention window."""
    cutoff = subtract_months(now, settings.CANCELLED_REQUEST_RETENTION_MONTHS)
    purged = 0
    for model in (LeaveRequest, WorkFromHomeRequest):
        old = db.query(model).filter(model.status == RequestStatus.CANCELLED, model.updated_at < cutoff).all()
        for request in old:
            # ORM delete nulls the approvals' FK; the orphan pass removes them
            db.delete(request)
        purged += len(old)
    db.commit()
    report.purged_cancelled_requests += purged


def delete_orphan_approvals(db: Session, report: ReconciliationReport, now: datetime) -> None:
    orphan_ids = [
        row.id
        for row in db.query(Approval.id)
        .outerjoin(LeaveRequest, LeaveRequest.id == Approval.leave_request_id)
        .outerjoin(WorkFromHomeRequest, WorkFromHomeRequest.id == Approval.wfh_request_id)
        .filter(LeaveRequest.id.is_(None), WorkFromHomeRequest.id.is_(None))
        .all()
    ]
    if orphan_ids:
        db.query(Approval).filter(Approval.id.in_(orphan_ids)).delete(synchronize_session=False)
        db.commit()
        logger.info("Deleted %d orphaned approvals", len(orphan_ids))
    report.deleted_orphan_approvals += len(orphan_ids)


def delete_orphan_documents(db: Session, report: ReconciliationReport, now: datetime) -> None:
    """Documents whose parent request is gone, signatures first."""
    orphan_ids = [
        row.id
        for row in db.query(GeneratedDocument.id)
        .outerjoin(LeaveRequest, LeaveRequest.id == GeneratedDocument.leave_request_id)
        .outerjoin(WorkFromHomeRequest, WorkFromHomeRequest.id == GeneratedDocument.wfh_request_id)
        .filter(LeaveRequest.id.is_(None), WorkFromHomeRequest.id.is_(None))
        .all()
    ]
    if not orphan_ids:
        return
    signatures = (
        db.query(DocumentSignature)
        .filter(DocumentSignature.document_id.in_(orphan_ids))
        .delete(synchronize_session=False)
    )
    documents = (
        db.query(GeneratedDocument)
        .filter(GeneratedDocument.id.in_(orphan_ids))
        .delete(synchronize_session=False)
    )
    db.commit()
    report.deleted_orphan_signatures += signatures
    report.deleted_orphan_documents += documents


def purge_read_notifications(db: Session, report: ReconciliationReport, now: datetime) -> None:
    cutoff = now - timedelta(days=settings.NOTIFICATION_RETENTION_DAYS)
    deleted = (
        db.query(Notification)
        .filter(Notification.is_read == True, Notification.created_at < cutoff)  # noqa: E712
        .delete(synchronize_session=False)
    )
    db.commit()
    report.deleted_notifications += deleted


def purge_expired_tokens(db: Session, report: ReconciliationReport, now: datetime) -> None:
    deleted = (
        db.query(PasswordResetToken)
        .filter(PasswordResetToken.expires_at < now)
        .delete(synchronize_session=False)
    )
    db.commit()
    report.deleted_expired_tokens += deleted


def purge_old_audit_logs(db: Session, report: ReconciliationReport, now: datetime) -> None:
    cutoff = subtract_months(now, settings.AUDIT_LOG_RETENTION_MONTHS)
    deleted = db.query(AuditLog).filter(AuditLog.created_at < cutoff).delete(synchronize_session=False)
    db.commit()
    report.deleted_audit_logs += deleted


def recompute_balances(db: Session, report: ReconciliationReport, now: datetime) -> None:
    """Rebuild used/pending/available of every active user's balances from request history."""
    balances = (
        db.query(LeaveBalance)
        .join(User, User.id == LeaveBalance.user_id)
        .filter(User.is_active == True)  # noqa: E712
        .order_by(LeaveBalance.id)
        .all()
    )
    corrections = []
    for balance in balances:
        before = snapshot(balance, BALANCE_SNAPSHOT_FIELDS)
        if recompute_balance(db, balance):
            corrections.append((balance.id, before, snapshot(balance, BALANCE_SNAPSHOT_FIELDS)))
    db.commit()

    for balance_id, before, after in corrections:
        log_audit(db, actor_id=None, action=ACTION_BALANCE_RECOMPUTE, entity_type=ENTITY_LEAVE_BALANCE,
                  entity_id=balance_id, old_values=before, new_values=after)
    report.corrected_balances += len(corrections)


def repair_null_approvers(db: Session, report: ReconciliationReport, now: datetime) -> None:
    """
    PENDING approvals that lost their approver get one re-derived from the
    requester's current manager chain, or are cancelled when there is none.
    """
    broken = (
        db.query(Approval)
        .filter(Approval.status == ApprovalStatus.PENDING, Approval.approver_id.is_(None))
        .order_by(Approval.id)
        .all()
    )
    repaired = 0
    cancelled = 0
    for approval in broken:
        request = approval.request
        if request is None:
            continue
        before = snapshot(approval, APPROVAL_SNAPSHOT_FIELDS)
        chain_ids = [a.approver_id for a in request.approvals if a.approver_id is not None]
        approver = resolve_approver(db, request.user_id, exclude_ids=chain_ids, include_fallback=False)
        if approver is not None:
            approval.approver_id = approver.id
            repaired += 1
        else:
            approval.status = next_approval_status(approval.status, WorkflowAction.CANCEL)
            approval.decided_at = now
            approval.comments = "No manager available to approve"
            cancelled += 1
            logger.warning(
                "Cancelled approval %s of %s: requester %s has no manager",
                approval.id, request.request_number, request.user_id,
            )
        db.commit()
        log_audit(db, actor_id=None, action=ACTION_APPROVER_REPAIR, entity_type=ENTITY_APPROVAL,
                  entity_id=approval.id, old_values=before,
                  new_values=snapshot(approval, APPROVAL_SNAPSHOT_FIELDS))
    report.repaired_approvers += repaired
    report.cancelled_unroutable_approvals += cancelled


def archive_old_requests(db: Session, report: ReconciliationReport, now: datetime) -> None:
    """Flag (never delete) approved leave that ended before the archive horizon."""
    cutoff = subtract_months(now, settings.ARCHIVE_AFTER_MONTHS).date()
    old = (
        db.query(LeaveRequest)
        .filter(
            LeaveRequest.status == RequestStatus.APPROVED,
            LeaveRequest.is_archived == False,  # noqa: E712
            LeaveRequest.end_date < cutoff,
        )
        .all()
    )
    for request in old:
        request.is_archived = True
        request.archived_at = now
    db.commit()
    if old:
        log_audit(db, actor_id=None, action=ACTION_ARCHIVE, entity_type=ENTITY_LEAVE_REQUEST,
                  meta={"request_ids": [r.id for r in old], "cutoff": cutoff})
    report.archived_requests += len(old)


Category = Callable[[Session, ReconciliationReport, datetime], None]

CATEGORIES: List[Tuple[str, Category]] = [
    ("escalation", escalate),
    ("wfh_auto_cancel", auto_cancel_current_week_wfh),
    ("purge_cancelled_requests", purge_cancelled_requests),
    ("orphan_approvals", delete_orphan_approvals),
    ("orphan_documents", delete_orphan_documents),
    ("read_notifications", purge_read_notifications),
    ("expired_tokens", purge_expired_tokens),
    ("audit_logs", purge_old_audit_logs),
    ("balance_recompute", recompute_balances),
    ("null_approvers", repair_null_approvers),
    ("archive", archive_old_requests),
]


def run_reconciliation(
    db: Session,
    now: Optional[datetime] = None,
    actor_id: Optional[int] = None,
) -> ReconciliationReport:
    """
    Run every reconciliation category and report what changed.

    Args:
        db: Database session
        now: Reference time for thresholds (defaults to the current UTC time)
        actor_id: User who triggered the run, if any

    Returns:
        ReconciliationReport with per-category counts and collected errors
    """
    now = now or now_utc()
    report = ReconciliationReport(started_at=now)
    for name, category in CATEGORIES:
        try:
            category(db, report, now)
        except Exception as exc:
            db.rollback()
            logger.exception("Reconciliation category %s failed", name)
            report.errors.append(f"{name}: {exc}")
    report.finished_at = now_utc()

    log_audit(db, actor_id=actor_id, action=ACTION_RECONCILE, entity_type=ENTITY_RECONCILIATION,
              meta=report.model_dump(exclude={"started_at", "finished_at"}))
    logger.info("Reconciliation finished with %d error(s)", len(report.errors))
    return report
