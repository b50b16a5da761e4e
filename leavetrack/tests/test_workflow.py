"""
Tests for the request/approval state machines and the manager hierarchy walk
"""
import pytest
from leavetrack.models import ApprovalStatus, RequestStatus, Role
from leavetrack.services.hierarchy_service import (
    HierarchyCycleError,
    find_fallback_approver,
    get_manager_chain,
    resolve_approver,
)
from leavetrack.services.workflow import (
    IllegalTransitionError,
    WorkflowAction,
    can_transition_request,
    next_approval_status,
    next_request_status,
)


@pytest.mark.parametrize(
    "current,action,expected",
    [
        (RequestStatus.PENDING, WorkflowAction.APPROVE, RequestStatus.APPROVED),
        (RequestStatus.PENDING, WorkflowAction.REJECT, RequestStatus.REJECTED),
        (RequestStatus.PENDING, WorkflowAction.CANCEL, RequestStatus.CANCELLED),
        (RequestStatus.APPROVED, WorkflowAction.CANCEL, RequestStatus.CANCELLED),
    ],
)
def test_request_transitions(current, action, expected):
    assert next_request_status(current, action) == expected


@pytest.mark.parametrize("current", [RequestStatus.REJECTED, RequestStatus.CANCELLED])
def test_terminal_requests_cannot_move(current):
    for action in WorkflowAction:
        assert not can_transition_request(current, action)
    with pytest.raises(IllegalTransitionError):
        next_request_status(current, WorkflowAction.CANCEL)


def test_approved_request_cannot_be_approved_again():
    with pytest.raises(IllegalTransitionError) as exc:
        next_request_status("APPROVED", WorkflowAction.APPROVE)
    assert "APPROVED" in str(exc.value)


def test_only_pending_approvals_move():
    assert next_approval_status(ApprovalStatus.PENDING, WorkflowAction.ESCALATE) == ApprovalStatus.ESCALATED
    for status in (ApprovalStatus.APPROVED, ApprovalStatus.ESCALATED, ApprovalStatus.CANCELLED):
        with pytest.raises(IllegalTransitionError):
            next_approval_status(status, WorkflowAction.APPROVE)


def test_manager_chain_nearest_first(db, org):
    chain = get_manager_chain(db, org["employee"].id)
    assert [u.id for u in chain] == [org["manager"].id, org["director"].id]


def test_chain_depth_is_bounded(db, make_user):
    top = make_user(Role.EXECUTIVE)
    current = top
    for _ in range(7):
        current = make_user(Role.MANAGER, manager=current)
    assert len(get_manager_chain(db, current.id, max_depth=5)) == 5


def test_cycle_is_reported(db, make_user):
    a = make_user(Role.MANAGER)
    b = make_user(Role.MANAGER, manager=a)
    a.manager_id = b.id
    db.commit()
    with pytest.raises(HierarchyCycleError) as exc:
        get_manager_chain(db, a.id)
    assert exc.value.start_user_id == a.id


def test_resolve_skips_inactive_and_excluded(db, org):
    org["manager"].is_active = False
    db.commit()
    assert resolve_approver(db, org["employee"].id).id == org["director"].id
    # Director excluded and chain exhausted: fallback roles in priority order (EXECUTIVE, then HR)
    assert resolve_approver(db, org["employee"].id, exclude_ids=[org["director"].id]).id == org["hr"].id
    assert resolve_approver(
        db, org["employee"].id, exclude_ids=[org["director"].id], include_fallback=False
    ) is None


def test_fallback_never_returns_excluded(db, org):
    excluded = {org["director"].id, org["hr"].id}
    assert find_fallback_approver(db, excluded) is None
