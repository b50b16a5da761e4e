"""
Tests for overlap and leave/WFH conflict detection
"""
from datetime import date

from leavetrack.models import RequestStatus
from leavetrack.schemas.validation import error_codes
from leavetrack.schemas.wfh import WFHSubmitRequest
from leavetrack.services.overlap_service import (
    KIND_LEAVE,
    KIND_WFH,
    check_leave_conflict,
    find_conflicts,
    find_existing_overlaps,
    overlap_errors,
)
from leavetrack.services.wfh_validation_service import validate_wfh_request
from leavetrack.utils.date_selection import DateRange, ExplicitDays

TODAY = date(2025, 6, 1)


def test_wfh_day_inside_approved_leave_is_a_leave_conflict(db, org, leave_type, make_leave):
    employee = org["employee"]
    make_leave(employee, leave_type, date(2025, 6, 10), date(2025, 6, 12), status=RequestStatus.APPROVED)

    data = WFHSubmitRequest(
        start_date=date(2025, 6, 11),
        end_date=date(2025, 6, 11),
        selected_dates=[date(2025, 6, 11)],
        location="Home office",
    )
    codes = error_codes(validate_wfh_request(db, employee.id, data, today=TODAY))
    assert codes == ["LEAVE_CONFLICT"]


def test_conflict_is_symmetric(db, org, leave_type, make_leave, make_wfh):
    employee = org["employee"]
    make_wfh(employee, date(2025, 6, 11), date(2025, 6, 11), selected_dates=[date(2025, 6, 11)])

    leave_window = DateRange(date(2025, 6, 10), date(2025, 6, 12))
    assert [c.kind for c in check_leave_conflict(db, employee.id, leave_window, KIND_LEAVE)] == ["WFH"]

    colleague = org["colleague"]
    make_leave(colleague, leave_type, date(2025, 6, 10), date(2025, 6, 12))
    wfh_day = ExplicitDays(frozenset({date(2025, 6, 11)}))
    assert [c.kind for c in check_leave_conflict(db, colleague.id, wfh_day, KIND_WFH)] == ["LEAVE"]


def test_explicit_days_do_not_conflict_between_selected_days(db, org, leave_type, make_leave, make_wfh):
    employee = org["employee"]
    make_leave(
        employee, leave_type, date(2025, 6, 10), date(2025, 6, 20),
        selected_dates=[date(2025, 6, 10), date(2025, 6, 20)], total_days=2,
    )
    wfh_day = ExplicitDays(frozenset({date(2025, 6, 14)}))
    assert find_conflicts(db, employee.id, wfh_day, KIND_WFH) == []


def test_same_kind_overlap(db, org, leave_type, make_leave):
    employee = org["employee"]
    existing = make_leave(employee, leave_type, date(2025, 6, 10), date(2025, 6, 12))
    window = DateRange(date(2025, 6, 12), date(2025, 6, 13))

    errors = overlap_errors(db, employee.id, window, KIND_LEAVE)
    assert error_codes(errors) == ["OVERLAPPING_REQUESTS"]
    assert existing.request_number in errors[0].message

    # Re-validating the request itself does not collide with itself
    assert overlap_errors(db, employee.id, window, KIND_LEAVE, exclude_request_id=existing.id) == []


def test_inactive_statuses_do_not_occupy_days(db, org, leave_type, make_leave, make_wfh):
    employee = org["employee"]
    make_leave(employee, leave_type, date(2025, 6, 10), date(2025, 6, 12), status=RequestStatus.CANCELLED)
    make_wfh(employee, date(2025, 6, 10), date(2025, 6, 12), status=RequestStatus.REJECTED)
    window = DateRange(date(2025, 6, 10), date(2025, 6, 12))
    assert find_conflicts(db, employee.id, window, KIND_LEAVE) == []


def test_other_users_requests_are_ignored(db, org, leave_type, make_leave):
    make_leave(org["colleague"], leave_type, date(2025, 6, 10), date(2025, 6, 12))
    window = DateRange(date(2025, 6, 10), date(2025, 6, 12))
    assert find_conflicts(db, org["employee"].id, window, KIND_LEAVE) == []


def test_existing_overlaps_are_reported_once_per_pair(db, org, leave_type, make_leave, make_wfh):
    employee, colleague = org["employee"], org["colleague"]
    first = make_leave(employee, leave_type, date(2025, 6, 10), date(2025, 6, 12), status=RequestStatus.APPROVED)
    second = make_leave(employee, leave_type, date(2025, 6, 12), date(2025, 6, 13))
    make_leave(employee, leave_type, date(2025, 6, 11), date(2025, 6, 11), status=RequestStatus.CANCELLED)
    # Explicit days around the 14th share nothing with the WFH day
    make_leave(employee, leave_type, date(2025, 6, 20), date(2025, 6, 24),
               selected_dates=[date(2025, 6, 20), date(2025, 6, 24)])
    make_wfh(employee, date(2025, 6, 23), date(2025, 6, 23), selected_dates=[date(2025, 6, 23)])
    wfh_a = make_wfh(colleague, date(2025, 6, 16), date(2025, 6, 17))
    wfh_b = make_wfh(colleague, date(2025, 6, 17), date(2025, 6, 17), selected_dates=[date(2025, 6, 17)],
                     status=RequestStatus.APPROVED)

    found = find_existing_overlaps(db)

    assert [(o.user_id, o.first.request_id, o.second.request_id, sorted(o.days)) for o in found] == [
        (employee.id, first.id, second.id, [date(2025, 6, 12)]),
        (colleague.id, wfh_a.id, wfh_b.id, [date(2025, 6, 17)]),
    ]
    assert [(o.first.kind, o.second.kind) for o in found] == [(KIND_LEAVE, KIND_LEAVE), (KIND_WFH, KIND_WFH)]


def test_no_existing_overlaps(db, org, leave_type, make_leave, make_wfh):
    make_leave(org["employee"], leave_type, date(2025, 6, 10), date(2025, 6, 12))
    make_wfh(org["employee"], date(2025, 6, 13), date(2025, 6, 13))
    make_wfh(org["colleague"], date(2025, 6, 10), date(2025, 6, 12))
    assert find_existing_overlaps(db) == []
