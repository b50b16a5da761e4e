"""
Audit logging service

Audit writes are best-effort: they run after the business action has been
committed, and a failure here is logged and swallowed.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
from leavetrack.models.audit_log import AuditLog
from leavetrack.utils.datetime_utils import now_utc
from leavetrack.utils.json_serializer import sanitize_for_json

logger = logging.getLogger(__name__)


def log_audit(
    db: Session,
    actor_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> Optional[AuditLog]:
    """
    Create an audit log entry

    Args:
        db: Database session
        actor_id: ID of the user performing the action (None for the system)
        action: Action type (e.g., "APPROVE", "ESCALATE", "BALANCE_RECOMPUTE")
        entity_type: Type of entity (e.g., "leave_request", "approval")
        entity_id: ID of the affected entity (optional)
        old_values: Snapshot before the change (optional)
        new_values: Snapshot after the change (optional)
        meta: Additional metadata as dictionary (optional)

    Returns:
        Created AuditLog instance, or None if the write failed
    """
    try:
        # Explicitly set created_at to avoid SQLite issues with server_default
        audit_log = AuditLog(
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_values=sanitize_for_json(old_values),
            new_values=sanitize_for_json(new_values),
            meta_json=sanitize_for_json(meta),
            created_at=now_utc(),
        )
        db.add(audit_log)
        db.commit()
        db.refresh(audit_log)
        return audit_log
    except Exception:
        logger.exception(
            "Audit write failed: action=%s entity=%s:%s actor=%s", action, entity_type, entity_id, actor_id
        )
        db.rollback()
        return None


def list_audit_logs(
    db: Session,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    actor_id: Optional[int] = None,
    action: Optional[str] = None,
    since: Optional[datetime] = None,
    skip: int = 0,
    limit: int = 100,
) -> Tuple[List[AuditLog], int]:
    """Filtered, newest-first page of audit entries and the total match count."""
    query = db.query(AuditLog)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(AuditLog.entity_id == entity_id)
    if actor_id is not None:
        query = query.filter(AuditLog.actor_id == actor_id)
    if action:
        query = query.filter(AuditLog.action == action)
    if since is not None:
        query = query.filter(AuditLog.created_at >= since)
    total = query.count()
    items = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(skip).limit(limit).all()
    return items, total
