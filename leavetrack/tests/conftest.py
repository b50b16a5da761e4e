"""
Pytest configuration and fixtures
"""
import itertools
import os
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("APP_ENV", "local")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.engine import Engine
from leavetrack.main import app
from leavetrack.db.base import Base
from leavetrack.core.deps import get_db
from leavetrack.core.security import create_user_token
from leavetrack.services.rate_limiter import rate_limiter

# Import all models to ensure they're registered with Base.metadata
from leavetrack.models import (
    User,
    Role,
    LeaveType,
    LeaveBalance,
    LeaveRequest,
    RequestStatus,
    WorkFromHomeRequest,
)  # noqa


# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Enable foreign keys for SQLite
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_rate_limits():
    rate_limiter.store.reset()
    yield
    rate_limiter.store.reset()


@pytest.fixture(scope="function")
def client(db):
    """Test client fixture with database override"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Factory: make_user(role=Role.EMPLOYEE, manager=None, is_active=True, join_date=None)"""
    counter = itertools.count(1)

    def _make(role=Role.EMPLOYEE, manager=None, is_active=True, join_date=None, first_name=None):
        n = next(counter)
        user = User(
            email=f"user{n}@example.com",
            first_name=first_name or f"User{n}",
            last_name="Test",
            role=Role(role).value,
            manager_id=manager.id if manager is not None else None,
            join_date=join_date,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def org(make_user):
    """
    director (EXECUTIVE) <- manager (MANAGER) <- employee, colleague
    plus an HR user outside the chain.
    """
    director = make_user(Role.EXECUTIVE, first_name="Dana")
    manager = make_user(Role.MANAGER, manager=director, first_name="Morgan")
    employee = make_user(Role.EMPLOYEE, manager=manager, first_name="Emery")
    colleague = make_user(Role.EMPLOYEE, manager=manager, first_name="Casey")
    hr = make_user(Role.HR, first_name="Harper")
    return {"director": director, "manager": manager, "employee": employee, "colleague": colleague, "hr": hr}


@pytest.fixture
def leave_type(db):
    lt = LeaveType(code="AL", name="Annual Leave", default_days=Decimal("20"), approval_levels=1, is_active=True)
    db.add(lt)
    db.commit()
    db.refresh(lt)
    return lt


@pytest.fixture
def make_balance(db):
    """Factory: make_balance(user, leave_type, year, entitled=20)"""
    def _make(user, leave_type, year, entitled=Decimal("20"), used=Decimal("0"), pending=Decimal("0")):
        entitled, used, pending = Decimal(str(entitled)), Decimal(str(used)), Decimal(str(pending))
        balance = LeaveBalance(
            user_id=user.id,
            leave_type_id=leave_type.id,
            year=year,
            entitled=entitled,
            carried_forward=Decimal("0"),
            used=used,
            pending=pending,
            available=entitled - used - pending,
        )
        db.add(balance)
        db.commit()
        db.refresh(balance)
        return balance
    return _make


@pytest.fixture
def auth_headers():
    """auth_headers(user) -> Authorization header carrying a token for user"""
    def _headers(user) -> dict:
        return {"Authorization": f"Bearer {create_user_token(user.id)}"}
    return _headers


def _timestamps(created_at, updated_at) -> dict:
    """Only explicit timestamps; None would bypass the server default"""
    values = {}
    if created_at is not None:
        values["created_at"] = created_at
    if updated_at is not None or created_at is not None:
        values["updated_at"] = updated_at or created_at
    return values


@pytest.fixture
def make_leave(db):
    """Factory inserting a leave request row directly (no validation, no balance change)"""
    counter = itertools.count(1)

    def _make(user, leave_type, start, end, selected_dates=None, status=RequestStatus.PENDING,
              total_days=None, substitutes=(), created_at=None, updated_at=None):
        n = next(counter)
        leave = LeaveRequest(
            request_number=f"LR-{start.year}-{9000 + n:04d}",
            user_id=user.id,
            leave_type_id=leave_type.id,
            start_date=start,
            end_date=end,
            selected_dates=[d.isoformat() for d in selected_dates] if selected_dates else None,
            total_days=Decimal(str(total_days)) if total_days is not None else Decimal((end - start).days + 1),
            status=status,
            **_timestamps(created_at, updated_at),
        )
        leave.substitutes = list(substitutes)
        db.add(leave)
        db.commit()
        db.refresh(leave)
        return leave
    return _make


@pytest.fixture
def make_wfh(db):
    """Factory inserting a WFH request row directly"""
    counter = itertools.count(1)

    def _make(user, start, end, selected_dates=None, status=RequestStatus.PENDING, location="Home office",
              created_at=None, updated_at=None):
        n = next(counter)
        wfh = WorkFromHomeRequest(
            request_number=f"WFH-{start.year}-{9000 + n:04d}",
            user_id=user.id,
            start_date=start,
            end_date=end,
            selected_dates=[d.isoformat() for d in selected_dates] if selected_dates else None,
            total_days=Decimal(len(selected_dates) if selected_dates else (end - start).days + 1),
            location=location,
            status=status,
            **_timestamps(created_at, updated_at),
        )
        db.add(wfh)
        db.commit()
        db.refresh(wfh)
        return wfh
    return _make
