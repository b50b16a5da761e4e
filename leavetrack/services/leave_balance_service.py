"""
Leave balance ledger.

One row per (user, leave type, year) holding
available = entitled + carried_forward - used - pending.

The mutation helpers (reserve/commit/release) never commit: they run inside
the caller's unit of work so the balance change lands atomically with the
request or approval transition that caused it.
"""
import logging
import math
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple
from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session
from leavetrack.constants import ACTION_BALANCE_ADJUST, ACTION_YEAR_END, BALANCE_SNAPSHOT_FIELDS, ENTITY_LEAVE_BALANCE
from leavetrack.core.config import settings
from leavetrack.models.leave import LeaveBalance, LeaveRequest, LeaveType, RequestStatus
from leavetrack.models.user import User
from leavetrack.schemas.balance import InitializeBalancesResult, YearEndResult
from leavetrack.schemas.validation import ErrorCode, FieldError, field_error
from leavetrack.services.audit_service import log_audit
from leavetrack.utils.datetime_utils import now_utc
from leavetrack.utils.json_serializer import snapshot

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_days(value) -> Decimal:
    """Round a day count to the 2-decimal precision balances are displayed with."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def expected_available(balance: LeaveBalance) -> Decimal:
    return (
        to_decimal(balance.entitled)
        + to_decimal(balance.carried_forward)
        - to_decimal(balance.used)
        - to_decimal(balance.pending)
    )


def _refresh_available(balance: LeaveBalance) -> None:
    balance.available = expected_available(balance)
    if balance.available < ZERO:
        logger.warning(
            "Balance %s (user %s, type %s, year %s) is over-committed: available=%s",
            balance.id, balance.user_id, balance.leave_type_id, balance.year, balance.available,
        )
    balance.updated_at = now_utc()


def get_balance(
    db: Session,
    user_id: int,
    leave_type_id: int,
    year: int,
    for_update: bool = False,
) -> Optional[LeaveBalance]:
    query = db.query(LeaveBalance).filter(
        LeaveBalance.user_id == user_id,
        LeaveBalance.leave_type_id == leave_type_id,
        LeaveBalance.year == year,
    )
    if for_update:
        query = query.with_for_update()
    return query.first()


def get_balances(db: Session, user_id: int, year: int) -> List[LeaveBalance]:
    return (
        db.query(LeaveBalance)
        .filter(LeaveBalance.user_id == user_id, LeaveBalance.year == year)
        .order_by(LeaveBalance.leave_type_id)
        .all()
    )


def validate_leave_balance(
    db: Session,
    user_id: int,
    leave_type_id: int,
    required_days,
    year: int,
) -> List[FieldError]:
    """
    Check that a request for `required_days` working days fits the balance.

    Args:
        db: Database session
        user_id: Requesting user
        leave_type_id: Leave type being requested
        required_days: Working days the request consumes
        year: Balance year (year of the request's first day)

    Returns:
        BALANCE_NOT_FOUND alone when the row is missing; otherwise any of
        INSUFFICIENT_BALANCE (2-decimal comparison) and
        NEGATIVE_BALANCE_NOT_ALLOWED (exact comparison)
    """
    balance = get_balance(db, user_id, leave_type_id, year)
    if balance is None:
        return [
            field_error(
                "leaveTypeId",
                ErrorCode.BALANCE_NOT_FOUND,
                f"Leave balance not found for {year}",
            )
        ]

    errors: List[FieldError] = []
    available = to_decimal(balance.available)
    required = to_decimal(required_days)
    if quantize_days(available) < quantize_days(required):
        errors.append(
            field_error(
                "totalDays",
                ErrorCode.INSUFFICIENT_BALANCE,
                f"Insufficient leave balance. Available: {quantize_days(available)} days, "
                f"requested: {quantize_days(required)} days",
            )
        )
    if available - required < ZERO:
        errors.append(
            field_error(
                "totalDays",
                ErrorCode.NEGATIVE_BALANCE_NOT_ALLOWED,
                "This request would leave a negative balance",
            )
        )

    if to_decimal(balance.carried_forward) >= Decimal(settings.MAX_CARRY_FORWARD_DAYS):
        logger.info(
            "User %s holds the maximum carried-forward days (%s) for leave type %s",
            user_id, balance.carried_forward, leave_type_id,
        )
    return errors


def _locked_balance(db: Session, user_id: int, leave_type_id: int, year: int) -> LeaveBalance:
    balance = get_balance(db, user_id, leave_type_id, year, for_update=True)
    if balance is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Leave balance not found for user {user_id}, leave type {leave_type_id}, year {year}",
        )
    return balance


def reserve_pending(db: Session, user_id: int, leave_type_id: int, year: int, days) -> LeaveBalance:
    """Submission: hold the request's days as pending."""
    balance = _locked_balance(db, user_id, leave_type_id, year)
    balance.pending = to_decimal(balance.pending) + to_decimal(days)
    _refresh_available(balance)
    return balance


def commit_pending(db: Session, user_id: int, leave_type_id: int, year: int, days) -> LeaveBalance:
    """Final approval: move the request's days from pending to used."""
    balance = _locked_balance(db, user_id, leave_type_id, year)
    days = to_decimal(days)
    pending = to_decimal(balance.pending)
    if pending < days:
        logger.warning(
            "Balance %s has pending=%s below the %s days being committed; clamping at zero",
            balance.id, pending, days,
        )
    balance.pending = max(ZERO, pending - days)
    balance.used = to_decimal(balance.used) + days
    _refresh_available(balance)
    return balance


def release_pending(db: Session, user_id: int, leave_type_id: int, year: int, days) -> LeaveBalance:
    """Rejection or cancellation of a pending request: give the days back."""
    balance = _locked_balance(db, user_id, leave_type_id, year)
    pending = to_decimal(balance.pending)
    days = to_decimal(days)
    if pending < days:
        logger.warning(
            "Balance %s has pending=%s below the %s days being released; clamping at zero",
            balance.id, pending, days,
        )
    balance.pending = max(ZERO, pending - days)
    _refresh_available(balance)
    return balance


def release_used(db: Session, user_id: int, leave_type_id: int, year: int, days) -> LeaveBalance:
    """Cancellation of an approved request before it starts."""
    balance = _locked_balance(db, user_id, leave_type_id, year)
    used = to_decimal(balance.used)
    balance.used = max(ZERO, used - to_decimal(days))
    _refresh_available(balance)
    return balance


def compute_usage(db: Session, user_id: int, leave_type_id: int, year: int) -> Tuple[Decimal, Decimal]:
    """(used, pending) for a balance row, summed from APPROVED and PENDING requests starting in `year`."""
    rows = (
        db.query(LeaveRequest.status, func.coalesce(func.sum(LeaveRequest.total_days), 0))
        .filter(
            LeaveRequest.user_id == user_id,
            LeaveRequest.leave_type_id == leave_type_id,
            LeaveRequest.start_date >= date(year, 1, 1),
            LeaveRequest.start_date <= date(year, 12, 31),
            LeaveRequest.status.in_([RequestStatus.APPROVED, RequestStatus.PENDING]),
        )
        .group_by(LeaveRequest.status)
        .all()
    )
    totals: Dict[RequestStatus, Decimal] = {row_status: to_decimal(total) for row_status, total in rows}
    return totals.get(RequestStatus.APPROVED, ZERO), totals.get(RequestStatus.PENDING, ZERO)


def recompute_balance(db: Session, balance: LeaveBalance, epsilon: Optional[Decimal] = None) -> bool:
    """
    Rewrite used/pending/available from request history when they drift.

    Returns:
        True if the row was corrected (caller commits)
    """
    if epsilon is None:
        epsilon = to_decimal(settings.BALANCE_EPSILON)
    used, pending = compute_usage(db, balance.user_id, balance.leave_type_id, balance.year)

    drifted = (
        abs(to_decimal(balance.used) - used) > epsilon
        or abs(to_decimal(balance.pending) - pending) > epsilon
        or abs(
            to_decimal(balance.available)
            - (to_decimal(balance.entitled) + to_decimal(balance.carried_forward) - used - pending)
        ) > epsilon
    )
    if not drifted:
        return False

    logger.info(
        "Correcting balance %s (user %s, type %s, year %s): used %s->%s pending %s->%s",
        balance.id, balance.user_id, balance.leave_type_id, balance.year,
        balance.used, used, balance.pending, pending,
    )
    balance.used = used
    balance.pending = pending
    _refresh_available(balance)
    return True


def pro_rated_entitlement(annual_days, join_date: Optional[date], year: int) -> Decimal:
    """
    Entitlement for a user joining during `year`: the share of the year left
    from the join date, rounded up to a whole day.
    """
    annual = to_decimal(annual_days)
    year_start = date(year, 1, 1)
    if join_date is None or join_date <= year_start:
        return annual
    if join_date.year > year:
        return ZERO
    year_end = date(year, 12, 31)
    days_in_year = (year_end - year_start).days + 1
    remaining = (year_end - join_date).days + 1
    return Decimal(max(0, math.ceil(remaining / days_in_year * float(annual))))


def initialize_user_balances(
    db: Session,
    user: User,
    year: int,
    actor_id: Optional[int] = None,
) -> List[LeaveBalance]:
    """Create the missing balance rows of `user` for every active leave type in `year`."""
    leave_types = db.query(LeaveType).filter(LeaveType.is_active == True).all()  # noqa: E712
    created = []
    now = now_utc()
    for leave_type in leave_types:
        if get_balance(db, user.id, leave_type.id, year) is not None:
            continue
        entitled = to_decimal(leave_type.default_days)
        if settings.PRO_RATE_ENABLED:
            entitled = pro_rated_entitlement(entitled, user.join_date, year)
        balance = LeaveBalance(
            user_id=user.id,
            leave_type_id=leave_type.id,
            year=year,
            entitled=entitled,
            carried_forward=ZERO,
            used=ZERO,
            pending=ZERO,
            available=entitled,
            created_at=now,
            updated_at=now,
        )
        db.add(balance)
        created.append(balance)
    db.commit()

    for balance in created:
        db.refresh(balance)
        log_audit(
            db,
            actor_id=actor_id,
            action=ACTION_BALANCE_ADJUST,
            entity_type=ENTITY_LEAVE_BALANCE,
            entity_id=balance.id,
            new_values=snapshot(balance, BALANCE_SNAPSHOT_FIELDS),
            meta={"reason": "initialize", "year": year, "join_date": user.join_date},
        )
    return created


def initialize_balances(
    db: Session,
    year: int,
    user_id: Optional[int] = None,
    actor_id: Optional[int] = None,
) -> InitializeBalancesResult:
    """
    Run initialize_user_balances for one user (404 if unknown) or for every
    active user. Rows that already exist are left untouched.
    """
    if user_id is not None:
        user = db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        users = [user]
    else:
        users = db.query(User).filter(User.is_active == True).order_by(User.id).all()  # noqa: E712

    created = 0
    for user in users:
        created += len(initialize_user_balances(db, user, year, actor_id=actor_id))
    logger.info("Initialized %d balance rows for %d user(s) in %s", created, len(users), year)
    return InitializeBalancesResult(year=year, users_processed=len(users), balances_created=created)


def process_year_end(
    db: Session,
    year: int,
    actor_id: Optional[int] = None,
    max_carry_forward=None,
) -> YearEndResult:
    """
    Close `year`: carry each active user's unused days (capped) into `year + 1`,
    creating next-year rows at the leave type's default entitlement when needed.
    """
    cap = to_decimal(settings.MAX_CARRY_FORWARD_DAYS if max_carry_forward is None else max_carry_forward)
    next_year = year + 1
    rows = (
        db.query(LeaveBalance)
        .join(User, User.id == LeaveBalance.user_id)
        .filter(LeaveBalance.year == year, User.is_active == True)  # noqa: E712
        .all()
    )

    created = 0
    updated = 0
    total_carried = ZERO
    details = []
    now = now_utc()
    for balance in rows:
        carry = min(max(to_decimal(balance.available), ZERO), cap)
        next_balance = get_balance(db, balance.user_id, balance.leave_type_id, next_year, for_update=True)
        if next_balance is None:
            leave_type = db.query(LeaveType).filter(LeaveType.id == balance.leave_type_id).first()
            entitled = to_decimal(leave_type.default_days if leave_type else ZERO)
            next_balance = LeaveBalance(
                user_id=balance.user_id,
                leave_type_id=balance.leave_type_id,
                year=next_year,
                entitled=entitled,
                carried_forward=carry,
                used=ZERO,
                pending=ZERO,
                created_at=now,
            )
            db.add(next_balance)
            created += 1
        else:
            next_balance.carried_forward = carry
            updated += 1
        _refresh_available(next_balance)
        total_carried += carry
        details.append({"user_id": balance.user_id, "leave_type_id": balance.leave_type_id, "carried_forward": carry})
    db.commit()

    log_audit(
        db,
        actor_id=actor_id,
        action=ACTION_YEAR_END,
        entity_type=ENTITY_LEAVE_BALANCE,
        meta={"year": year, "next_year": next_year, "cap": cap, "rows": details},
    )
    logger.info(
        "Year-end %s closed: %d rows created, %d updated, %s days carried forward",
        year, created, updated, total_carried,
    )
    return YearEndResult(
        year=year,
        next_year=next_year,
        balances_created=created,
        balances_updated=updated,
        total_carried_forward=total_carried,
    )
