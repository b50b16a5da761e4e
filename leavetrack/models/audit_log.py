"""
Audit log model
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON, Index
from leavetrack.db.base import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    # No FK: entries must outlive the actor and the entity they describe
    actor_id = Column(Integer, nullable=True, index=True)
    action = Column(String(50), nullable=False)  # e.g., "LEAVE_APPROVE", "BALANCE_RECOMPUTE"
    entity_type = Column(String(50), nullable=False)  # e.g., "leave_request", "approval", "leave_balance"
    entity_id = Column(Integer, nullable=True)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    meta_json = Column(JSON, nullable=True)
    # Set explicitly by log_audit (SQLite server_default is unreliable across migrations)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )
