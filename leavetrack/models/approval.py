"""
Approval chain model

One row per (request, level) decision. Escalation appends a new row and marks
the previous one ESCALATED, so the chain history is never rewritten.
"""
from sqlalchemy import Column, Integer, DateTime, ForeignKey, String, Text, Enum as SQLEnum, Index, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text
import enum
from leavetrack.db.base import Base


class ApprovalStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    ESCALATED = "ESCALATED"


class Approval(Base):
    __tablename__ = "approvals"

    id = Column(Integer, primary_key=True, index=True)
    # Exactly one of the two parents is set while the parent exists
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id", ondelete="SET NULL"), nullable=True, index=True)
    wfh_request_id = Column(Integer, ForeignKey("wfh_requests.id", ondelete="SET NULL"), nullable=True, index=True)
    level = Column(Integer, nullable=False, default=1)
    approver_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    status = Column(SQLEnum(ApprovalStatus), nullable=False, server_default=text("'PENDING'"))
    escalated_to_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    escalated_at = Column(DateTime(timezone=True), nullable=True)
    escalation_reason = Column(String(255), nullable=True)
    comments = Column(Text, nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)

    leave_request = relationship("LeaveRequest", back_populates="approvals")
    wfh_request = relationship("WorkFromHomeRequest", back_populates="approvals")
    approver = relationship("User", foreign_keys=[approver_id])
    escalated_to = relationship("User", foreign_keys=[escalated_to_id])

    __table_args__ = (
        Index("ix_approvals_status_created", "status", "created_at"),
        CheckConstraint("level >= 1", name="check_approval_level_positive"),
    )

    @property
    def request(self):
        """The parent leave or WFH request, or None for an orphan."""
        return self.leave_request if self.leave_request_id is not None else self.wfh_request
