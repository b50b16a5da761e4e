"""
WFH (Work From Home) request model
"""
from sqlalchemy import Column, Integer, Date, DateTime, ForeignKey, String, Text, Numeric, JSON, Enum as SQLEnum, CheckConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func, text
from leavetrack.db.base import Base
from leavetrack.models.leave import RequestStatus
from leavetrack.utils.date_selection import DateSelection, from_parts


class WorkFromHomeRequest(Base):
    __tablename__ = "wfh_requests"

    id = Column(Integer, primary_key=True, index=True)
    request_number = Column(String(30), unique=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    selected_dates = Column(JSON, nullable=True)
    total_days = Column(Numeric(6, 2), nullable=False)
    location = Column(String(100), nullable=False)
    reason = Column(Text, nullable=True)
    status = Column(SQLEnum(RequestStatus), nullable=False, server_default=text("'PENDING'"))
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    user = relationship("User", foreign_keys=[user_id])
    approvals = relationship("Approval", back_populates="wfh_request", order_by="Approval.level")

    __table_args__ = (
        Index("ix_wfh_requests_user_dates", "user_id", "start_date", "end_date"),
        CheckConstraint("start_date <= end_date", name="check_wfh_start_le_end"),
    )

    kind = "WFH"

    @property
    def selection(self) -> DateSelection:
        return from_parts(self.start_date, self.end_date, self.selected_dates)
