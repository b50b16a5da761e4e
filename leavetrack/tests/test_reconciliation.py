"""
Tests for the reconciliation sweep
"""
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from leavetrack.models import (
    Approval,
    ApprovalStatus,
    AuditLog,
    DocumentSignature,
    GeneratedDocument,
    LeaveRequest,
    Notification,
    PasswordResetToken,
    RequestStatus,
    Role,
    WorkFromHomeRequest,
)
from leavetrack.services import reconciliation_service
from leavetrack.services.reconciliation_service import run_reconciliation

# Wednesday; the current week runs Mon 2 June .. Sun 8 June
NOW = datetime(2025, 6, 4, 12, 0, tzinfo=timezone.utc)

COUNT_FIELDS = (
    "escalated_approvals",
    "auto_approved_requests",
    "purged_cancelled_requests",
    "deleted_orphan_approvals",
    "deleted_orphan_documents",
    "deleted_orphan_signatures",
    "deleted_notifications",
    "deleted_expired_tokens",
    "deleted_audit_logs",
    "corrected_balances",
    "repaired_approvers",
    "cancelled_unroutable_approvals",
    "archived_requests",
    "auto_cancelled_wfh",
)


def add_approval(db, request, approver=None, status=ApprovalStatus.PENDING, created_at=NOW):
    parent = {"leave_request_id": request.id} if request.kind == "LEAVE" else {"wfh_request_id": request.id}
    approval = Approval(
        **parent,
        level=1,
        approver_id=approver.id if approver is not None else None,
        status=status,
        created_at=created_at,
    )
    db.add(approval)
    db.commit()
    return approval


def counts(report):
    return {name: getattr(report, name) for name in COUNT_FIELDS}


def test_pending_wfh_in_current_week_is_auto_cancelled(db, org, make_wfh):
    employee = org["employee"]
    this_week = make_wfh(employee, date(2025, 6, 5), date(2025, 6, 6))
    approval = add_approval(db, this_week, org["manager"])
    next_week = make_wfh(employee, date(2025, 6, 10), date(2025, 6, 10))
    approved = make_wfh(org["colleague"], date(2025, 6, 5), date(2025, 6, 5), status=RequestStatus.APPROVED)

    report = run_reconciliation(db, now=NOW)

    assert report.auto_cancelled_wfh == 1
    for row, expected in ((this_week, RequestStatus.CANCELLED), (next_week, RequestStatus.PENDING),
                          (approved, RequestStatus.APPROVED)):
        db.refresh(row)
        assert row.status == expected
    db.refresh(approval)
    assert approval.status == ApprovalStatus.CANCELLED
    assert db.query(AuditLog).filter(AuditLog.action == "AUTO_CANCEL").count() == 1


def test_old_cancelled_requests_are_purged_with_their_approvals(db, org, leave_type, make_leave, make_wfh):
    employee = org["employee"]
    long_ago = NOW - timedelta(days=400)
    old_leave = make_leave(employee, leave_type, date(2024, 4, 1), date(2024, 4, 2),
                           status=RequestStatus.CANCELLED, created_at=long_ago)
    add_approval(db, old_leave, org["manager"], status=ApprovalStatus.CANCELLED, created_at=long_ago)
    make_wfh(employee, date(2024, 4, 8), date(2024, 4, 8), status=RequestStatus.CANCELLED, created_at=long_ago)
    recent = make_leave(employee, leave_type, date(2025, 5, 5), date(2025, 5, 5),
                        status=RequestStatus.CANCELLED, created_at=NOW - timedelta(days=30))

    report = run_reconciliation(db, now=NOW)

    assert report.purged_cancelled_requests == 2
    assert report.deleted_orphan_approvals == 1
    assert [r.id for r in db.query(LeaveRequest).all()] == [recent.id]
    assert db.query(WorkFromHomeRequest).count() == 0
    assert db.query(Approval).count() == 0


def test_orphan_documents_go_with_their_signatures(db, org, leave_type, make_leave):
    leave = make_leave(org["employee"], leave_type, date(2025, 6, 10), date(2025, 6, 10))
    kept = GeneratedDocument(leave_request_id=leave.id, file_name="LR-kept.pdf")
    orphan = GeneratedDocument(file_name="LR-orphan.pdf")
    db.add_all([kept, orphan])
    db.commit()
    db.add_all([
        DocumentSignature(document_id=orphan.id, signer_id=org["manager"].id, signed_at=NOW),
        DocumentSignature(document_id=orphan.id, signer_id=org["director"].id, signed_at=NOW),
        DocumentSignature(document_id=kept.id, signer_id=org["manager"].id, signed_at=NOW),
    ])
    db.commit()

    report = run_reconciliation(db, now=NOW)

    assert (report.deleted_orphan_documents, report.deleted_orphan_signatures) == (1, 2)
    assert [d.file_name for d in db.query(GeneratedDocument).all()] == ["LR-kept.pdf"]
    assert db.query(DocumentSignature).count() == 1


def test_retention_purges(db, org):
    employee = org["employee"]
    old = NOW - timedelta(days=45)
    db.add_all([
        Notification(user_id=employee.id, title="old read", is_read=True, created_at=old),
        Notification(user_id=employee.id, title="old unread", is_read=False, created_at=old),
        Notification(user_id=employee.id, title="recent read", is_read=True, created_at=NOW - timedelta(days=2)),
        PasswordResetToken(user_id=employee.id, token="expired", expires_at=NOW - timedelta(hours=1)),
        PasswordResetToken(user_id=employee.id, token="live", expires_at=NOW + timedelta(hours=1)),
        AuditLog(actor_id=employee.id, action="UPDATE", entity_type="holiday",
                 created_at=datetime(2024, 11, 1, tzinfo=timezone.utc)),
    ])
    db.commit()

    report = run_reconciliation(db, now=NOW)

    assert (report.deleted_notifications, report.deleted_expired_tokens, report.deleted_audit_logs) == (1, 1, 1)
    assert sorted(n.title for n in db.query(Notification).all()) == ["old unread", "recent read"]
    assert [t.token for t in db.query(PasswordResetToken).all()] == ["live"]


def test_drifted_balance_is_recomputed(db, org, leave_type, make_balance, make_leave):
    employee = org["employee"]
    balance = make_balance(employee, leave_type, 2025, entitled=20, used=1, pending=7)
    make_leave(employee, leave_type, date(2025, 3, 3), date(2025, 3, 4), status=RequestStatus.APPROVED, total_days=2)

    report = run_reconciliation(db, now=NOW)

    assert report.corrected_balances == 1
    db.refresh(balance)
    assert (balance.used, balance.pending, balance.available) == (Decimal("2"), Decimal("0"), Decimal("18"))
    recompute = db.query(AuditLog).filter(AuditLog.action == "BALANCE_RECOMPUTE").one()
    assert recompute.entity_id == balance.id


def test_null_approvers_are_rerouted_or_cancelled(db, org, make_user, leave_type, make_leave):
    routed = make_leave(org["employee"], leave_type, date(2025, 6, 10), date(2025, 6, 10))
    routed_step = add_approval(db, routed)
    loner = make_user(Role.EMPLOYEE)
    stranded = make_leave(loner, leave_type, date(2025, 6, 11), date(2025, 6, 11))
    stranded_step = add_approval(db, stranded)

    report = run_reconciliation(db, now=NOW)

    assert (report.repaired_approvers, report.cancelled_unroutable_approvals) == (1, 1)
    db.refresh(routed_step)
    db.refresh(stranded_step)
    assert (routed_step.approver_id, routed_step.status) == (org["manager"].id, ApprovalStatus.PENDING)
    assert (stranded_step.approver_id, stranded_step.status) == (None, ApprovalStatus.CANCELLED)
    assert db.query(AuditLog).filter(AuditLog.action == "APPROVER_REPAIR").count() == 2


def test_old_approved_leave_is_archived_not_deleted(db, org, leave_type, make_leave):
    employee = org["employee"]
    old = make_leave(employee, leave_type, date(2023, 1, 9), date(2023, 1, 10), status=RequestStatus.APPROVED)
    recent = make_leave(employee, leave_type, date(2024, 9, 2), date(2024, 9, 3), status=RequestStatus.APPROVED)

    report = run_reconciliation(db, now=NOW)

    assert report.archived_requests == 1
    db.refresh(old)
    db.refresh(recent)
    assert old.is_archived and old.archived_at is not None
    assert not recent.is_archived
    assert db.query(LeaveRequest).count() == 2


def test_second_run_changes_nothing(db, org, leave_type, make_balance, make_leave, make_wfh):
    employee = org["employee"]
    make_balance(employee, leave_type, 2025, entitled=20, used=5)
    stale = make_leave(employee, leave_type, date(2025, 6, 16), date(2025, 6, 17))
    add_approval(db, stale, org["manager"], created_at=NOW - timedelta(days=5))
    make_leave(employee, leave_type, date(2023, 1, 9), date(2023, 1, 10), status=RequestStatus.APPROVED)
    make_wfh(employee, date(2025, 6, 5), date(2025, 6, 5))

    first = run_reconciliation(db, now=NOW)
    assert first.errors == []
    assert first.escalated_approvals == 1
    assert first.corrected_balances == 1

    second = run_reconciliation(db, now=NOW)
    assert second.errors == []
    assert all(value == 0 for value in counts(second).values())


def test_failing_category_is_reported_and_others_still_run(db, org, leave_type, make_leave, monkeypatch):
    make_leave(org["employee"], leave_type, date(2023, 1, 9), date(2023, 1, 10), status=RequestStatus.APPROVED)

    def broken(db, report, now):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(reconciliation_service, "CATEGORIES", [
        ("read_notifications", broken),
        ("archive", reconciliation_service.archive_old_requests),
    ])

    report = run_reconciliation(db, now=NOW, actor_id=org["hr"].id)

    assert report.errors == ["read_notifications: disk on fire"]
    assert report.archived_requests == 1
    summary = db.query(AuditLog).filter(AuditLog.action == "RECONCILE").one()
    assert summary.actor_id == org["hr"].id
    assert summary.meta_json["errors"] == ["read_notifications: disk on fire"]
    assert summary.meta_json["archived_requests"] == 1
