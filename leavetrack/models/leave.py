"""
Leave models
"""
from sqlalchemy import (
    Column,
    Integer,
    Date,
    DateTime,
    ForeignKey,
    String,
    Text,
    Numeric,
    Enum as SQLEnum,
    Boolean,
    JSON,
    Table,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text
import enum
from leavetrack.db.base import Base
from leavetrack.utils.date_selection import DateSelection, from_parts


class RequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


# Statuses that occupy calendar days for overlap purposes
ACTIVE_REQUEST_STATUSES = (RequestStatus.PENDING, RequestStatus.APPROVED)


leave_request_substitutes = Table(
    "leave_request_substitutes",
    Base.metadata,
    Column("leave_request_id", Integer, ForeignKey("leave_requests.id", ondelete="CASCADE"), primary_key=True),
    Column("substitute_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class LeaveType(Base):
    __tablename__ = "leave_types"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(20), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    default_days = Column(Numeric(6, 2), nullable=False, default=0)
    approval_levels = Column(Integer, nullable=False, default=1)  # approvals needed before APPROVED
    is_active = Column(Boolean, nullable=False, default=True)


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)
    request_number = Column(String(30), unique=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    leave_type_id = Column(Integer, ForeignKey("leave_types.id"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    selected_dates = Column(JSON, nullable=True)  # ISO dates; authoritative when present
    total_days = Column(Numeric(6, 2), nullable=False)  # working days
    reason = Column(Text, nullable=True)
    status = Column(SQLEnum(RequestStatus), nullable=False, server_default=text("'PENDING'"))
    is_archived = Column(Boolean, nullable=False, default=False)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    user = relationship("User", foreign_keys=[user_id])
    leave_type = relationship("LeaveType")
    substitutes = relationship("User", secondary=leave_request_substitutes)
    approvals = relationship("Approval", back_populates="leave_request", order_by="Approval.level")

    __table_args__ = (
        Index("ix_leave_requests_user_dates", "user_id", "start_date", "end_date"),
        CheckConstraint("start_date <= end_date", name="check_leave_start_le_end"),
    )

    kind = "LEAVE"

    @property
    def selection(self) -> DateSelection:
        return from_parts(self.start_date, self.end_date, self.selected_dates)


class LeaveBalance(Base):
    """
    One row per (user_id, leave_type_id, year).
    available = entitled + carried_forward - used - pending.
    """
    __tablename__ = "leave_balances"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    leave_type_id = Column(Integer, ForeignKey("leave_types.id"), nullable=False)
    year = Column(Integer, nullable=False, index=True)
    entitled = Column(Numeric(6, 2), nullable=False, default=0)
    carried_forward = Column(Numeric(6, 2), nullable=False, default=0)
    used = Column(Numeric(6, 2), nullable=False, default=0)
    pending = Column(Numeric(6, 2), nullable=False, default=0)
    available = Column(Numeric(6, 2), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    user = relationship("User", backref="leave_balances")
    leave_type = relationship("LeaveType")

    __table_args__ = (
        UniqueConstraint("user_id", "leave_type_id", "year", name="uq_leave_balances_user_type_year"),
    )
