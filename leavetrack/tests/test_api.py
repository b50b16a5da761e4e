"""
End-to-end tests through the HTTP API
"""
from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi import status
from leavetrack.models import Holiday, LeaveBalance, LeaveRequest, RequestStatus
from leavetrack.models.audit_log import AuditLog

API = "/api/v1"


def upcoming_monday() -> date:
    """A Monday 8 to 14 days ahead: clear of the notice period and the current week"""
    today = date.today()
    return today + timedelta(days=14 - today.weekday())


@pytest.fixture
def start():
    return upcoming_monday()


@pytest.fixture
def funded(org, leave_type, make_balance, start):
    return make_balance(org["employee"], leave_type, start.year, entitled=10)


def leave_body(leave_type, start, days=3, **extra):
    body = {
        "leave_type_id": leave_type.id,
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(days=days - 1)).isoformat(),
    }
    body.update(extra)
    return body


def test_health_endpoint(client):
    response = client.get(f"{API}/health")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "leavetrack"
    assert "version" in data


def test_submit_leave(client, org, leave_type, funded, start, auth_headers):
    response = client.post(
        f"{API}/leaves",
        json=leave_body(leave_type, start, reason="Family visit", substitute_ids=[org["colleague"].id]),
        headers=auth_headers(org["employee"]),
    )
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["request_number"] == f"LR-{start.year}-0001"
    assert data["status"] == "PENDING"
    assert Decimal(data["total_days"]) == 3
    assert data["substitute_ids"] == [org["colleague"].id]
    assert data["created_at"].endswith("Z")


def test_validate_is_a_dry_run(client, db, org, leave_type, funded, start, auth_headers):
    response = client.post(
        f"{API}/leaves/validate", json=leave_body(leave_type, start), headers=auth_headers(org["employee"])
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert (data["valid"], data["errors"]) == (True, [])
    assert data["breakdown"] == {"calendar_days": 3, "working_days": 3, "weekend_days": 0, "holidays": []}
    assert db.query(LeaveRequest).count() == 0


def test_invalid_submission_returns_every_error(client, org, leave_type, funded, auth_headers):
    yesterday = date.today() - timedelta(days=1)
    response = client.post(
        f"{API}/leaves",
        json=leave_body(leave_type, yesterday, days=40, substitute_ids=[org["employee"].id]),
        headers=auth_headers(org["employee"]),
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    body = response.json()
    assert body["detail"] == "Validation failed"
    codes = {e["code"] for e in body["errors"]}
    assert {"PAST_DATE", "EXCEEDS_MAX_DAYS", "INSUFFICIENT_NOTICE", "SELF_SUBSTITUTION"} <= codes
    assert all({"field", "message", "code"} <= set(e) for e in body["errors"])


def test_malformed_body_is_422(client, org, auth_headers):
    response = client.post(f"{API}/leaves", json={"start_date": "soon"}, headers=auth_headers(org["employee"]))
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_approval_flow(client, org, leave_type, funded, start, auth_headers):
    created = client.post(f"{API}/leaves", json=leave_body(leave_type, start), headers=auth_headers(org["employee"]))
    leave_id = created.json()["id"]

    self_approve = client.post(f"{API}/leaves/{leave_id}/approve", headers=auth_headers(org["employee"]))
    assert self_approve.status_code == status.HTTP_403_FORBIDDEN
    assert [e["code"] for e in self_approve.json()["errors"]] == [
        "SELF_APPROVAL_NOT_ALLOWED", "NOT_IN_APPROVAL_CHAIN"
    ]

    approved = client.post(
        f"{API}/leaves/{leave_id}/approve", json={"comments": "Have fun"}, headers=auth_headers(org["manager"])
    )
    assert approved.status_code == status.HTTP_200_OK
    assert approved.json()["status"] == "APPROVED"

    again = client.post(f"{API}/leaves/{leave_id}/approve", headers=auth_headers(org["manager"]))
    assert again.status_code == status.HTTP_409_CONFLICT
    assert again.json()["detail"] == "Request is no longer pending"

    history = client.get(f"{API}/leaves/{leave_id}/approvals", headers=auth_headers(org["employee"]))
    assert history.status_code == status.HTTP_200_OK
    items = history.json()["items"]
    assert [(i["level"], i["approver_id"], i["status"], i["comments"]) for i in items] == [
        (1, org["manager"].id, "APPROVED", "Have fun")
    ]

    balances = client.get(f"{API}/balances/me", params={"year": start.year}, headers=auth_headers(org["employee"]))
    assert balances.status_code == status.HTTP_200_OK
    (row,) = balances.json()["items"]
    assert (Decimal(row["used"]), Decimal(row["pending"]), Decimal(row["available"])) == (3, 0, 7)


def test_reject_then_cancel_is_a_conflict(client, org, leave_type, funded, start, auth_headers):
    created = client.post(f"{API}/leaves", json=leave_body(leave_type, start), headers=auth_headers(org["employee"]))
    leave_id = created.json()["id"]

    rejected = client.post(
        f"{API}/leaves/{leave_id}/reject", json={"comments": "Release week"}, headers=auth_headers(org["manager"])
    )
    assert rejected.json()["status"] == "REJECTED"

    cancelled = client.post(f"{API}/leaves/{leave_id}/cancel", headers=auth_headers(org["employee"]))
    assert cancelled.status_code == status.HTTP_409_CONFLICT


def test_unknown_request_is_404(client, org, auth_headers):
    response = client.post(f"{API}/leaves/4040/approve", headers=auth_headers(org["manager"]))
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_wfh_submit_and_cancel(client, org, start, auth_headers):
    body = {"start_date": start.isoformat(), "end_date": start.isoformat(), "location": "Home office"}
    created = client.post(f"{API}/wfh", json=body, headers=auth_headers(org["employee"]))
    assert created.status_code == status.HTTP_201_CREATED
    wfh_id = created.json()["id"]
    assert created.json()["location"] == "Home office"

    cancelled = client.post(
        f"{API}/wfh/{wfh_id}/cancel", json={"reason": "Back in the office"}, headers=auth_headers(org["employee"])
    )
    assert cancelled.status_code == status.HTTP_200_OK
    assert cancelled.json()["status"] == RequestStatus.CANCELLED.value


def test_authentication_required(client):
    assert client.get(f"{API}/balances/me").status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)
    bad = client.get(f"{API}/balances/me", headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == status.HTTP_401_UNAUTHORIZED


def test_inactive_user_is_forbidden(client, make_user, auth_headers):
    retired = make_user(is_active=False)
    response = client.get(f"{API}/balances/me", headers=auth_headers(retired))
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_admin_routes_require_hr(client, org, auth_headers):
    response = client.post(f"{API}/admin/reconcile", headers=auth_headers(org["employee"]))
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_hr_runs_reconciliation(client, org, auth_headers):
    response = client.post(f"{API}/admin/reconcile", headers=auth_headers(org["hr"]))
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["errors"] == []
    assert data["finished_at"] is not None

    logs = client.get(f"{API}/admin/audit-logs", params={"action": "RECONCILE"}, headers=auth_headers(org["hr"]))
    assert logs.status_code == status.HTTP_200_OK


def test_hr_manages_holidays(client, org, auth_headers):
    day = upcoming_monday()
    created = client.post(
        f"{API}/admin/holidays",
        json={"date": day.isoformat(), "name": "Founders Day"},
        headers=auth_headers(org["hr"]),
    )
    assert created.status_code == status.HTTP_201_CREATED
    holiday_id = created.json()["id"]
    assert created.json()["is_blocked"] is True

    patched = client.patch(
        f"{API}/admin/holidays/{holiday_id}", json={"is_blocked": False}, headers=auth_headers(org["hr"])
    )
    assert patched.json()["is_blocked"] is False

    listed = client.get(f"{API}/admin/holidays", params={"year": day.year}, headers=auth_headers(org["hr"]))
    assert [h["name"] for h in listed.json()] == ["Founders Day"]


def test_submission_rate_limit(client, org, auth_headers):
    start = upcoming_monday()
    # Unknown leave type: every call fails validation but still counts against the budget
    body = {"leave_type_id": 999, "start_date": start.isoformat(), "end_date": start.isoformat()}
    headers = auth_headers(org["employee"])

    for _ in range(10):
        assert client.post(f"{API}/leaves", json=body, headers=headers).status_code == status.HTTP_400_BAD_REQUEST

    throttled = client.post(f"{API}/leaves", json=body, headers=headers)
    assert throttled.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert int(throttled.headers["Retry-After"]) >= 1
    assert throttled.json()["retry_after"] >= 1

    # The budget is per user
    other = client.post(f"{API}/leaves", json=body, headers=auth_headers(org["colleague"]))
    assert other.status_code == status.HTTP_400_BAD_REQUEST


def test_hr_closes_the_year(client, org, leave_type, make_balance, auth_headers):
    make_balance(org["employee"], leave_type, 2025, entitled=20, used=18)
    response = client.post(
        f"{API}/admin/balances/year-end",
        json={"year": 2025, "max_carry_forward": 5},
        headers=auth_headers(org["hr"]),
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert (data["next_year"], data["balances_created"]) == (2026, 1)
    assert Decimal(data["total_carried_forward"]) == 2


def test_actions_accept_an_empty_body(client, db, org, leave_type, funded, start, auth_headers):
    employee = auth_headers(org["employee"])
    manager = auth_headers(org["manager"])
    leave = client.post(f"{API}/leaves", json=leave_body(leave_type, start), headers=employee).json()

    self_approve = client.post(f"{API}/leaves/{leave['id']}/approve", headers=employee)
    assert self_approve.status_code == status.HTTP_403_FORBIDDEN
    assert db.query(AuditLog).filter(AuditLog.action == "SELF_APPROVAL_ATTEMPT").count() == 1

    approved = client.post(f"{API}/leaves/{leave['id']}/approve", headers=manager)
    assert approved.status_code == status.HTTP_200_OK
    assert approved.json()["status"] == "APPROVED"

    def wfh_on(day):
        body = {"start_date": day.isoformat(), "end_date": day.isoformat(), "location": "Home office"}
        return client.post(f"{API}/wfh", json=body, headers=employee).json()

    to_reject = wfh_on(start + timedelta(days=3))
    rejected = client.post(f"{API}/wfh/{to_reject['id']}/reject", headers=manager)
    assert rejected.status_code == status.HTTP_200_OK
    assert rejected.json()["status"] == "REJECTED"

    to_cancel = wfh_on(start + timedelta(days=4))
    cancelled = client.post(f"{API}/wfh/{to_cancel['id']}/cancel", headers=employee)
    assert cancelled.status_code == status.HTTP_200_OK
    assert cancelled.json()["status"] == "CANCELLED"


def test_approval_history_is_limited_to_the_people_involved(client, org, leave_type, funded, start, auth_headers):
    created = client.post(f"{API}/leaves", json=leave_body(leave_type, start), headers=auth_headers(org["employee"]))
    url = f"{API}/leaves/{created.json()['id']}/approvals"

    for user in ("employee", "manager", "hr"):
        assert client.get(url, headers=auth_headers(org[user])).status_code == status.HTTP_200_OK

    for user in ("colleague", "director"):
        assert client.get(url, headers=auth_headers(org[user])).status_code == status.HTTP_403_FORBIDDEN

    assert client.get(f"{API}/leaves/4040/approvals", headers=auth_headers(org["hr"])).status_code == 404


def test_validate_reports_holidays_in_the_breakdown(client, db, org, leave_type, funded, start, auth_headers):
    holiday = start + timedelta(days=1)
    db.add(Holiday(date=holiday, name="Founders Day", is_blocked=True, is_active=True))
    db.commit()

    response = client.post(
        f"{API}/leaves/validate", json=leave_body(leave_type, start, days=7), headers=auth_headers(org["employee"])
    )
    data = response.json()
    assert data["valid"] is False
    assert "BLOCKED_DATES" in {e["code"] for e in data["errors"]}
    assert data["breakdown"] == {
        "calendar_days": 7,
        "working_days": 4,
        "weekend_days": 2,
        "holidays": [{"date": holiday.isoformat(), "name": "Founders Day"}],
    }


def test_hr_initializes_balances(client, db, org, leave_type, auth_headers):
    url = f"{API}/admin/balances/initialize"
    one = client.post(url, json={"year": 2025, "user_id": org["employee"].id}, headers=auth_headers(org["hr"]))
    assert one.status_code == status.HTTP_200_OK
    assert one.json() == {"year": 2025, "users_processed": 1, "balances_created": 1}

    everyone = client.post(url, json={"year": 2025}, headers=auth_headers(org["hr"]))
    assert everyone.json() == {"year": 2025, "users_processed": 5, "balances_created": 4}
    assert db.query(LeaveBalance).filter(LeaveBalance.year == 2025).count() == 5

    balances = client.get(f"{API}/balances/me", params={"year": 2025}, headers=auth_headers(org["employee"]))
    (row,) = balances.json()["items"]
    assert Decimal(row["available"]) == 20

    missing = client.post(url, json={"year": 2025, "user_id": 4040}, headers=auth_headers(org["hr"]))
    assert missing.status_code == status.HTTP_404_NOT_FOUND
    denied = client.post(url, json={"year": 2025}, headers=auth_headers(org["employee"]))
    assert denied.status_code == status.HTTP_403_FORBIDDEN


def test_hr_checks_existing_overlaps(client, org, leave_type, make_leave, make_wfh, auth_headers):
    employee = org["employee"]
    leave = make_leave(employee, leave_type, date(2025, 6, 10), date(2025, 6, 12), status=RequestStatus.APPROVED)
    wfh = make_wfh(employee, date(2025, 6, 11), date(2025, 6, 11), selected_dates=[date(2025, 6, 11)])

    response = client.get(f"{API}/admin/check-overlaps", headers=auth_headers(org["hr"]))
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["total"] == 1
    (item,) = data["items"]
    assert item["user_id"] == employee.id
    assert (item["first"]["request_number"], item["second"]["request_number"]) == (
        leave.request_number, wfh.request_number
    )
    assert item["days"] == ["2025-06-11"]

    denied = client.get(f"{API}/admin/check-overlaps", headers=auth_headers(org["employee"]))
    assert denied.status_code == status.HTTP_403_FORBIDDEN
